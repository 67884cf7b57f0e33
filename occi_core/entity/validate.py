"""
Attribute value validation.

This module provides validation utilities shared by entities and actions:
- Single-value checks against a descriptor (type and range)
- Unknown-name errors with suggestions for similar names
- Action attribute validation

Invariants:
    - Validation never mutates its inputs
    - None is accepted by every descriptor (it means "no value");
      requiredness is checked separately at submission
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..category.types import Action, Attribute
from ..errors import (
    AttributeRangeError,
    AttributeTypeError,
    MissingRequiredAttributeError,
    UnknownAttributeError,
)


def check_value(attribute: Attribute, value: Any) -> None:
    """Validate a single value against an attribute descriptor.

    Raises:
        AttributeTypeError: If the value has the wrong type
        AttributeRangeError: If the value lies outside the range
    """
    if value is None:
        return
    expected = attribute.type.value
    if not attribute.type.accepts(value):
        raise AttributeTypeError(attribute.name, expected, value)
    if not attribute.in_range(value):
        raise AttributeRangeError(attribute.name, expected, value, attribute.range)


def unknown_attribute(name: str, known: Iterable[str], owner: str) -> UnknownAttributeError:
    """Build an UnknownAttributeError suggesting similar known names."""
    suggestions = get_close_matches(name, list(known), n=3)
    return UnknownAttributeError(name, owner, suggestions)


def missing_required(attributes: Iterable[Attribute], values: Mapping[str, Any]) -> List[str]:
    """Names of required attributes without an explicit value."""
    return [a.name for a in attributes if a.required and values.get(a.name) is None]


def validate_action_attributes(
    action: Action,
    attributes: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Validate invocation attributes against an action's descriptors.

    Args:
        action: The action being invoked
        attributes: Supplied attribute values

    Returns:
        The supplied values with defaults filled in for absent attributes

    Raises:
        UnknownAttributeError: If a name is not declared by the action
        AttributeTypeError: If a value has the wrong type or range
        MissingRequiredAttributeError: If required attributes are absent
    """
    attributes = dict(attributes or {})
    known = {a.name: a for a in action.attributes}

    for name, value in attributes.items():
        descriptor = known.get(name)
        if descriptor is None:
            raise unknown_attribute(name, known, f"action '{action.identity}'")
        check_value(descriptor, value)

    missing = missing_required(action.attributes, attributes)
    if missing:
        raise MissingRequiredAttributeError(missing, f"action '{action.identity}'")

    resolved = {
        a.name: a.default for a in action.attributes if a.default is not None
    }
    resolved.update((k, v) for k, v in attributes.items() if v is not None)
    return resolved
