"""
Core type definitions for the OCCI category model.

This module defines the descriptors resources are typed by:
- Attribute: A named, typed field with mutability/requirement flags
- Category: Identity primitive (scheme + term + title)
- Action: An invocable operation with its own attributes
- Kind: Single-inheritance resource type (parent via `related`)
- Mixin: Independently attachable trait type

Invariants:
    - identity = scheme + term, and schemes end with '#'
    - Attribute names are unique within one category
    - References to other categories (parent Kind, actions, mixin
      dependencies) are either the referenced object or its identity string
    - Two definitions are identical iff their canonical dicts are equal

How to change safely:
    - Add new optional fields with defaults and emit them in to_dict()
      only when they differ from the default
    - Keep to_dict() canonical (sorted attributes and references), the
      registry fingerprint depends on it

Example:
    >>> from occi_core.category.types import Kind, attribute
    >>> network = Kind(
    ...     term="network",
    ...     scheme="http://schemas.ogf.org/occi/infrastructure#",
    ...     title="Network Resource",
    ...     attributes=(
    ...         attribute("occi.network.label"),
    ...         attribute("occi.network.state", mutable=False, required=True),
    ...     ),
    ... )
    >>> network.identity
    'http://schemas.ogf.org/occi/infrastructure#network'
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any, ClassVar, Optional, Tuple, Union

NumberRange = Tuple[Optional[float], Optional[float]]


class AttributeType(Enum):
    """Supported attribute value types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"

    @classmethod
    def from_str(cls, value: str) -> AttributeType:
        """Convert string representation to AttributeType.

        Raises:
            ValueError: If value is not a valid attribute type
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid attribute type '{value}'. Valid types: {valid}")

    def accepts(self, value: Any) -> bool:
        """Whether a Python value is of this attribute type.

        bool is checked explicitly since it is a subclass of int. Numbers
        must be finite.
        """
        if self is AttributeType.STRING:
            return isinstance(value, str)
        if self is AttributeType.NUMBER:
            return (
                isinstance(value, (int, float))
                and not isinstance(value, bool)
                and (isinstance(value, int) or math.isfinite(value))
            )
        return isinstance(value, bool)


@dataclass(frozen=True)
class Attribute:
    """Definition of a single attribute of a Kind, Mixin or Action.

    Attributes:
        name: Attribute name, e.g. 'occi.network.vlan'
        type: Value type
        mutable: Whether the value may change after the entity is created
        required: Whether a value must be set before submission
        unique: Whether the value must be unique among entities of a Kind
        default: Value reported when none has been set
        range: Regex for strings, inclusive (min, max) for numbers

    Invariants:
        - default, when given, satisfies type and range
        - boolean attributes carry no range
    """

    name: str
    type: AttributeType = AttributeType.STRING
    mutable: bool = True
    required: bool = False
    unique: bool = False
    default: Any = None
    range: Union[str, NumberRange, None] = None

    def __post_init__(self) -> None:
        """Validate attribute definition."""
        if not self.name:
            raise ValueError("Attribute name cannot be empty")
        if self.range is not None:
            if self.type is AttributeType.STRING:
                if not isinstance(self.range, str):
                    raise ValueError(f"Range of string attribute '{self.name}' must be a regex")
                try:
                    re.compile(self.range)
                except re.error as e:
                    raise ValueError(f"Invalid range pattern for '{self.name}': {e}") from e
            elif self.type is AttributeType.NUMBER:
                if not isinstance(self.range, (tuple, list)) or len(self.range) != 2:
                    raise ValueError(
                        f"Range of number attribute '{self.name}' must be a (min, max) pair"
                    )
                low, high = self.range
                for bound in (low, high):
                    if bound is not None and not AttributeType.NUMBER.accepts(bound):
                        raise ValueError(
                            f"Range bounds of '{self.name}' must be finite numbers or None"
                        )
                if low is not None and high is not None and low > high:
                    raise ValueError(f"Range of '{self.name}' has min > max")
                object.__setattr__(self, "range", (low, high))
            else:
                raise ValueError(f"Boolean attribute '{self.name}' cannot have a range")
        if self.default is not None:
            if not self.type.accepts(self.default):
                raise ValueError(
                    f"Default of attribute '{self.name}' is not a {self.type.value}"
                )
            if not self.in_range(self.default):
                raise ValueError(f"Default of attribute '{self.name}' is outside its range")

    def in_range(self, value: Any) -> bool:
        """Check a value of the right type against the range constraint."""
        if self.range is None:
            return True
        if self.type is AttributeType.STRING:
            return re.fullmatch(self.range, value) is not None
        low, high = self.range
        if low is not None and value < low:
            return False
        if high is not None and value > high:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
        }
        if not self.mutable:
            result["mutable"] = False
        if self.required:
            result["required"] = True
        if self.unique:
            result["unique"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.range is not None:
            result["range"] = self.range if isinstance(self.range, str) else list(self.range)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attribute:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            type=AttributeType.from_str(data.get("type", "string")),
            mutable=data.get("mutable", True),
            required=data.get("required", False),
            unique=data.get("unique", False),
            default=data.get("default"),
            range=data.get("range"),
        )


def attribute(
    name: str,
    type: Union[str, AttributeType] = AttributeType.STRING,
    *,
    mutable: bool = True,
    required: bool = False,
    unique: bool = False,
    default: Any = None,
    range: Union[str, NumberRange, None] = None,
) -> Attribute:
    """Convenience function to create an Attribute.

    Example:
        >>> vlan = attribute("occi.network.vlan", "number", range=(0, 4095))
        >>> state = attribute("occi.network.state", mutable=False, required=True)
    """
    if isinstance(type, str):
        type = AttributeType.from_str(type)
    return Attribute(
        name=name,
        type=type,
        mutable=mutable,
        required=required,
        unique=unique,
        default=default,
        range=range,
    )


def _check_attribute_names(owner: str, attributes: Tuple[Attribute, ...]) -> None:
    names = [a.name for a in attributes]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate attribute name in '{owner}'")


def _ref_id(ref: Union[Category, str]) -> str:
    return ref if isinstance(ref, str) else ref.identity


@dataclass(frozen=True)
class Category:
    """Identity shared by Kinds, Mixins and Actions.

    Attributes:
        term: Short name unique within the scheme
        scheme: Namespace URI ending in '#'
        title: Human-readable title
    """

    category_type: ClassVar[str] = "category"

    term: str
    scheme: str
    title: str = ""

    def __post_init__(self) -> None:
        """Validate category identity."""
        if not self.term:
            raise ValueError("Category term cannot be empty")
        if any(c.isspace() for c in self.term) or "#" in self.term:
            raise ValueError(f"Invalid category term '{self.term}'")
        if not self.scheme.endswith("#"):
            raise ValueError(f"Category scheme must end with '#', got '{self.scheme}'")

    @property
    def identity(self) -> str:
        """Registry key: scheme followed by term."""
        return self.scheme + self.term

    def same_definition(self, other: Category) -> bool:
        """Whether `other` is an identical definition of this category."""
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "type": self.category_type,
            "term": self.term,
            "scheme": self.scheme,
        }
        if self.title:
            result["title"] = self.title
        return result


@dataclass(frozen=True)
class Action(Category):
    """An invocable operation.

    Example:
        >>> resize = Action(
        ...     term="resize",
        ...     scheme="http://schemas.ogf.org/occi/infrastructure/storage/action#",
        ...     attributes=(attribute("size", "number", required=True),),
        ... )
    """

    category_type: ClassVar[str] = "action"

    attributes: Tuple[Attribute, ...] = dataclass_field(default_factory=tuple)

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_attribute_names(self.identity, self.attributes)

    def get_attribute(self, name: str) -> Optional[Attribute]:
        for a in self.attributes:
            if a.name == name:
                return a
        return None

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attributes"] = [a.to_dict() for a in sorted(self.attributes, key=lambda a: a.name)]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        return cls(
            term=data["term"],
            scheme=data["scheme"],
            title=data.get("title", ""),
            attributes=tuple(Attribute.from_dict(a) for a in data.get("attributes", [])),
        )


@dataclass(frozen=True)
class Kind(Category):
    """A resource type with at most one parent Kind.

    Attributes:
        related: Parent Kind (object or identity), None for a root
        attributes: Attributes declared by this Kind itself
        actions: Actions declared by this Kind itself (objects or identities)

    Invariants:
        - Kinds form a forest, a Kind never reaches itself via `related`
        - Inherited attributes are resolved by occi_core.category.resolve
    """

    category_type: ClassVar[str] = "kind"

    related: Union[Kind, str, None] = None
    attributes: Tuple[Attribute, ...] = dataclass_field(default_factory=tuple)
    actions: Tuple[Union[Action, str], ...] = dataclass_field(default_factory=tuple)

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_attribute_names(self.identity, self.attributes)
        if self.related_id == self.identity:
            raise ValueError(f"Kind '{self.identity}' cannot be its own parent")

    @property
    def related_id(self) -> Optional[str]:
        """Identity of the parent Kind."""
        if self.related is None:
            return None
        return _ref_id(self.related)

    @property
    def action_ids(self) -> Tuple[str, ...]:
        return tuple(_ref_id(a) for a in self.actions)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.related is not None:
            result["related"] = self.related_id
        result["attributes"] = [a.to_dict() for a in sorted(self.attributes, key=lambda a: a.name)]
        result["actions"] = sorted(self.action_ids)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Kind:
        """Create from dictionary representation.

        References stay identity strings until the Kind is registered.
        """
        return cls(
            term=data["term"],
            scheme=data["scheme"],
            title=data.get("title", ""),
            related=data.get("related"),
            attributes=tuple(Attribute.from_dict(a) for a in data.get("attributes", [])),
            actions=tuple(data.get("actions", [])),
        )


@dataclass(frozen=True)
class Mixin(Category):
    """An attachable trait adding attributes and actions to an entity.

    Attributes:
        attributes: Attributes contributed while attached
        actions: Actions contributed while attached
        depends_on: Mixins that must be attached before this one
    """

    category_type: ClassVar[str] = "mixin"

    attributes: Tuple[Attribute, ...] = dataclass_field(default_factory=tuple)
    actions: Tuple[Union[Action, str], ...] = dataclass_field(default_factory=tuple)
    depends_on: Tuple[Union[Mixin, str], ...] = dataclass_field(default_factory=tuple)

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_attribute_names(self.identity, self.attributes)
        if self.identity in self.dependency_ids:
            raise ValueError(f"Mixin '{self.identity}' cannot depend on itself")

    @property
    def action_ids(self) -> Tuple[str, ...]:
        return tuple(_ref_id(a) for a in self.actions)

    @property
    def dependency_ids(self) -> Tuple[str, ...]:
        return tuple(_ref_id(m) for m in self.depends_on)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attributes"] = [a.to_dict() for a in sorted(self.attributes, key=lambda a: a.name)]
        result["actions"] = sorted(self.action_ids)
        if self.depends_on:
            result["depends_on"] = sorted(self.dependency_ids)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Mixin:
        return cls(
            term=data["term"],
            scheme=data["scheme"],
            title=data.get("title", ""),
            attributes=tuple(Attribute.from_dict(a) for a in data.get("attributes", [])),
            actions=tuple(data.get("actions", [])),
            depends_on=tuple(data.get("depends_on", [])),
        )


_CATEGORY_TYPES = {cls.category_type: cls for cls in (Action, Kind, Mixin)}


def category_from_dict(data: dict[str, Any]) -> Union[Action, Kind, Mixin]:
    """Create a Kind, Mixin or Action from its dictionary form.

    Raises:
        ValueError: If the 'type' entry is missing or unknown
    """
    category_type = data.get("type")
    cls = _CATEGORY_TYPES.get(category_type)
    if cls is None:
        raise ValueError(
            f"Invalid category type '{category_type}'. Valid types: {sorted(_CATEGORY_TYPES)}"
        )
    return cls.from_dict(data)
