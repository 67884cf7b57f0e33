"""
Error types for the OCCI category model.

Every failure the core detects is reported locally, before any backend
call is made:
- OcciError: Base exception
- Registry errors: DuplicateCategoryError, UnknownCategoryError,
  CategoryInUseError
- Schema errors: CyclicKindError, SchemaConflictError, MixinDependencyError
- Attribute errors: UnknownAttributeError, ImmutableAttributeError,
  AttributeTypeError, AttributeRangeError, MissingRequiredAttributeError,
  UniqueConstraintViolation
- Entity errors: UnrelatedMixinError, ActionNotApplicableError,
  EntityStateError, UnknownEntityError

Invariants:
    - All errors inherit from OcciError
    - A raised error leaves registry, schema and values unchanged
    - Backend errors are never wrapped in these types
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class OcciError(Exception):
    """Base exception for all category-model errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "OCCI_ERROR"
        self.details = details or {}


class DuplicateCategoryError(OcciError):
    """A different definition is already registered under this identity."""

    def __init__(self, identity: str) -> None:
        super().__init__(
            f"Category '{identity}' is already registered with a different definition",
            code="DUPLICATE_CATEGORY",
            details={"identity": identity},
        )
        self.identity = identity


class UnknownCategoryError(OcciError):
    """No category is registered under this identity."""

    def __init__(self, identity: str, expected: Optional[str] = None) -> None:
        if expected:
            msg = f"No {expected} registered as '{identity}'"
        else:
            msg = f"Unknown category '{identity}'"
        super().__init__(
            msg,
            code="UNKNOWN_CATEGORY",
            details={"identity": identity, "expected": expected},
        )
        self.identity = identity
        self.expected = expected


class CategoryInUseError(OcciError):
    """Category cannot be removed while something still references it.

    Raised when:
    - A live entity uses it as Kind or attached Mixin
    - Another registered category names it as parent, dependency or action
    """

    def __init__(self, identity: str, referrers: List[str]) -> None:
        super().__init__(
            f"Category '{identity}' is still referenced by: {', '.join(referrers)}",
            code="CATEGORY_IN_USE",
            details={"identity": identity, "referrers": referrers},
        )
        self.identity = identity
        self.referrers = referrers


class CyclicKindError(OcciError):
    """The `related` chain of a Kind loops back on itself."""

    def __init__(self, chain: List[str]) -> None:
        super().__init__(
            f"Cyclic kind chain: {' -> '.join(chain)}",
            code="CYCLIC_KIND",
            details={"chain": chain},
        )
        self.chain = chain


class SchemaConflictError(OcciError):
    """Two sources contribute incompatible definitions of one attribute."""

    def __init__(self, name: str, sources: List[str], reason: str) -> None:
        super().__init__(
            f"Attribute '{name}' conflicts between {' and '.join(sources)}: {reason}",
            code="SCHEMA_CONFLICT",
            details={"name": name, "sources": sources, "reason": reason},
        )
        self.name = name
        self.sources = sources
        self.reason = reason


class MixinDependencyError(OcciError):
    """Mixin dependencies would be left unsatisfied."""

    def __init__(self, mixin: str, missing: List[str], message: str) -> None:
        super().__init__(
            message,
            code="MIXIN_DEPENDENCY",
            details={"mixin": mixin, "missing": missing},
        )
        self.mixin = mixin
        self.missing = missing


class UnknownAttributeError(OcciError):
    """Attribute name is not part of the effective schema.

    Includes suggestions for similar attribute names.
    """

    def __init__(
        self,
        name: str,
        owner: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown attribute '{name}' on {owner}"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"
        super().__init__(
            msg,
            code="UNKNOWN_ATTRIBUTE",
            details={"name": name, "owner": owner, "suggestions": suggestions},
        )
        self.name = name
        self.owner = owner
        self.suggestions = suggestions


class ImmutableAttributeError(OcciError):
    """Attribute may only be set before the entity is created."""

    def __init__(self, name: str, entity_id: str) -> None:
        super().__init__(
            f"Attribute '{name}' of entity '{entity_id}' is immutable after creation",
            code="IMMUTABLE_ATTRIBUTE",
            details={"name": name, "entity_id": entity_id},
        )
        self.name = name
        self.entity_id = entity_id


class AttributeTypeError(OcciError):
    """Value does not match the attribute descriptor."""

    def __init__(self, name: str, expected: str, value: Any, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or f"Attribute '{name}' must be a {expected}, got {type(value).__name__}",
            code="ATTRIBUTE_TYPE",
            details={"name": name, "expected": expected, "value": value},
        )
        self.name = name
        self.expected = expected
        self.value = value


class AttributeRangeError(AttributeTypeError):
    """Value has the right type but lies outside the attribute's range."""

    def __init__(self, name: str, expected: str, value: Any, constraint: Any) -> None:
        super().__init__(
            name,
            expected,
            value,
            message=f"Attribute '{name}' value {value!r} is outside range {constraint!r}",
        )
        self.code = "ATTRIBUTE_RANGE"
        self.details["range"] = constraint
        self.constraint = constraint


class MissingRequiredAttributeError(OcciError):
    """One or more required attributes hold no value."""

    def __init__(self, missing: List[str], owner: str) -> None:
        super().__init__(
            f"Missing required attributes on {owner}: {', '.join(missing)}",
            code="MISSING_REQUIRED",
            details={"missing": missing, "owner": owner},
        )
        self.missing = missing
        self.owner = owner


class UniqueConstraintViolation(OcciError):
    """Another entity of the same Kind already holds this value."""

    def __init__(self, name: str, value: Any, kind: str) -> None:
        super().__init__(
            f"Value {value!r} for unique attribute '{name}' is already used by another '{kind}'",
            code="UNIQUE_VIOLATION",
            details={"name": name, "value": value, "kind": kind},
        )
        self.name = name
        self.value = value
        self.kind = kind


class UnrelatedMixinError(OcciError):
    """Mixin is not attached to the entity."""

    def __init__(self, mixin: str, entity_id: str) -> None:
        super().__init__(
            f"Mixin '{mixin}' is not attached to entity '{entity_id}'",
            code="UNRELATED_MIXIN",
            details={"mixin": mixin, "entity_id": entity_id},
        )
        self.mixin = mixin
        self.entity_id = entity_id


class ActionNotApplicableError(OcciError):
    """Neither the entity's Kind chain nor its Mixins declare the action."""

    def __init__(self, action: str, entity_id: str) -> None:
        super().__init__(
            f"Action '{action}' is not applicable to entity '{entity_id}'",
            code="ACTION_NOT_APPLICABLE",
            details={"action": action, "entity_id": entity_id},
        )
        self.action = action
        self.entity_id = entity_id


class EntityStateError(OcciError):
    """Operation is not allowed in the entity's lifecycle state."""

    def __init__(self, entity_id: str, state: str, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} entity '{entity_id}' in state {state}",
            code="ENTITY_STATE",
            details={"entity_id": entity_id, "state": state, "operation": operation},
        )
        self.entity_id = entity_id
        self.state = state
        self.operation = operation


class UnknownEntityError(OcciError):
    """No entity with this id is held by the service."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(
            f"Unknown entity '{entity_id}'",
            code="UNKNOWN_ENTITY",
            details={"entity_id": entity_id},
        )
        self.entity_id = entity_id
