"""
Entities: instances typed by one Kind and any number of Mixins.

An Entity holds:
- Its Kind (fixed at construction)
- Attached Mixins, in attachment order
- A value map keyed by attribute name
- The effective schema, recomputed whenever Mixins change

Lifecycle:
    BOUND -> VALIDATED -> SUBMITTED -> ACTIVE -> DELETED

    validate_for_submission() moves BOUND to VALIDATED. A write, attach or
    detach on a VALIDATED entity moves it back to BOUND. The backend create
    call moves VALIDATED through SUBMITTED to ACTIVE. DELETED is terminal.

Invariants:
    - Every key of the value map is in the effective schema
    - Immutable attributes are only written before SUBMITTED
    - Every operation is all-or-nothing: on error the Mixins, values,
      schema and state are unchanged
    - Mutating operations on one entity are serialized by its lock

Example:
    >>> entity = Entity(NETWORK, registry, attributes={"occi.network.state": "active"})
    >>> entity.attach(IPNETWORK)
    >>> entity.set("occi.network.address", "10.0.0.1")
    >>> entity.detach(IPNETWORK)
    >>> "occi.network.address" in entity.values
    False
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple, Union

from ..category.resolve import EffectiveSchema, entity_schema, missing_dependencies
from ..category.types import Action, Attribute, Kind, Mixin
from ..errors import (
    ActionNotApplicableError,
    EntityStateError,
    ImmutableAttributeError,
    MissingRequiredAttributeError,
    MixinDependencyError,
    UniqueConstraintViolation,
    UnknownCategoryError,
    UnrelatedMixinError,
)
from .validate import check_value, missing_required, unknown_attribute, validate_action_attributes

if TYPE_CHECKING:
    from ..backend.base import ActionResult, Backend
    from ..category.registry import CategoryRegistry

logger = logging.getLogger(__name__)


class EntityState(Enum):
    """Lifecycle states of an entity."""

    BOUND = "bound"
    VALIDATED = "validated"
    SUBMITTED = "submitted"
    ACTIVE = "active"
    DELETED = "deleted"


_CREATED_STATES = (EntityState.SUBMITTED, EntityState.ACTIVE)


class UniquenessCheck(Protocol):
    """Existence lookup used to enforce unique attributes."""

    def exists_with_attribute_value(self, kind: Kind, name: str, value: Any) -> bool: ...


class Entity:
    """A resource instance bound to one Kind.

    Attributes:
        id: Entity identifier
        kind: The entity's Kind (immutable)
        mixins: Attached Mixins in attachment order
        values: Copy of the explicitly set attribute values
        schema: Current effective schema
        state: Lifecycle state

    Thread safety:
        Mutations take a per-entity reentrant lock. Reads of a single
        property are safe at any time.
    """

    def __init__(
        self,
        kind: Union[Kind, str],
        registry: CategoryRegistry,
        *,
        id: Optional[str] = None,
        mixins: Iterable[Union[Mixin, str]] = (),
        attributes: Optional[Mapping[str, Any]] = None,
        uniqueness: Optional[UniquenessCheck] = None,
    ) -> None:
        """Bind a new entity to a registered Kind.

        Args:
            kind: Registered Kind (object or identity)
            registry: Registry the Kind and Mixins are resolved against
            id: Entity id (a UUID is generated if omitted)
            mixins: Mixins to attach, dependencies first
            attributes: Initial attribute values
            uniqueness: Lookup for unique attribute checks

        Raises:
            UnknownCategoryError: If the Kind or a Mixin is not registered
            SchemaConflictError: If the Mixins conflict with the Kind chain
        """
        self._registry = registry
        self._kind = registry.get_kind(kind)
        self.id = id or str(uuid.uuid4())
        self._uniqueness = uniqueness
        self._lock = threading.RLock()
        self._state = EntityState.BOUND
        self._mixins: Dict[str, Mixin] = {}
        self._values: Dict[str, Any] = {}
        self._schema = entity_schema(self._kind, (), registry)

        for mixin in mixins:
            self.attach(mixin)
        if attributes:
            self.update(attributes)

        registry.track(self)
        logger.debug(f"Bound entity {self.id} to {self._kind.identity}")

    def __repr__(self) -> str:
        return f"Entity(id={self.id!r}, kind={self._kind.term!r}, state={self._state.value})"

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def mixins(self) -> Tuple[Mixin, ...]:
        return tuple(self._mixins.values())

    @property
    def values(self) -> Dict[str, Any]:
        return dict(self._values)

    @property
    def schema(self) -> EffectiveSchema:
        return self._schema

    @property
    def state(self) -> EntityState:
        return self._state

    def references(self, identity: str) -> bool:
        """Whether the Kind or an attached Mixin has this identity."""
        return identity == self._kind.identity or identity in self._mixins

    def category_ids(self) -> Tuple[str, ...]:
        """Identities of the Kind and the attached Mixins."""
        # Must not take self._lock; the registry calls this under its own lock.
        return (self._kind.identity, *tuple(self._mixins))

    def has_mixin(self, mixin: Union[Mixin, str]) -> bool:
        return _identity(mixin) in self._mixins

    # Attribute access

    def effective_attributes(self) -> Dict[str, Attribute]:
        return dict(self._schema.attributes)

    def get(self, name: str) -> Any:
        """Read an attribute value, falling back to its default.

        Raises:
            UnknownAttributeError: If `name` is not in the effective schema
        """
        descriptor = self._require_attribute(name)
        return self._values.get(name, descriptor.default)

    def set(self, name: str, value: Any) -> None:
        """Write one attribute value. None clears the value.

        Raises:
            UnknownAttributeError: If `name` is not in the effective schema
            ImmutableAttributeError: If immutable and the entity was created
            AttributeTypeError: If the value does not match the descriptor
            UniqueConstraintViolation: If another entity holds the value
        """
        self.update({name: value})

    def update(self, values: Mapping[str, Any]) -> None:
        """Write several attribute values at once, all or nothing."""
        with self._lock:
            self._check_alive("update")
            for name, value in values.items():
                self._check_write(self._require_attribute(name), value)
            for name, value in values.items():
                if value is None:
                    self._values.pop(name, None)
                else:
                    self._values[name] = value
            self._invalidate()

    def _require_attribute(self, name: str) -> Attribute:
        descriptor = self._schema.get(name)
        if descriptor is None:
            raise unknown_attribute(name, self._schema.names(), f"entity '{self.id}'")
        return descriptor

    def _check_write(self, descriptor: Attribute, value: Any) -> None:
        if not descriptor.mutable and self._state in _CREATED_STATES:
            raise ImmutableAttributeError(descriptor.name, self.id)
        check_value(descriptor, value)
        if (
            descriptor.unique
            and value is not None
            and self._values.get(descriptor.name) != value
            and self._is_taken(descriptor.name, value)
        ):
            raise UniqueConstraintViolation(descriptor.name, value, self._kind.identity)

    def _is_taken(self, name: str, value: Any) -> bool:
        if self._uniqueness is None:
            return False
        return self._uniqueness.exists_with_attribute_value(self._kind, name, value)

    # Mixins

    def attach(self, mixin: Union[Mixin, str]) -> bool:
        """Attach a registered Mixin.

        Returns:
            False if it was already attached (no-op), True otherwise

        Raises:
            UnknownCategoryError: If the Mixin is not registered
            MixinDependencyError: If a dependency is not attached
            SchemaConflictError: If it conflicts with the current schema
        """
        with self._lock:
            self._check_alive("attach a mixin to")
            resolved = self._registry.get_mixin(mixin)
            if resolved.identity in self._mixins:
                logger.debug(f"Mixin {resolved.identity} already attached to {self.id}")
                return False

            missing = missing_dependencies(resolved, self._mixins)
            if missing:
                raise MixinDependencyError(
                    resolved.identity,
                    missing,
                    f"Mixin '{resolved.identity}' requires {', '.join(missing)} to be attached first",
                )

            schema = entity_schema(self._kind, [*self._mixins.values(), resolved], self._registry)
            self._mixins[resolved.identity] = resolved
            try:
                self._registry.ensure_bound(self)
            except UnknownCategoryError:
                del self._mixins[resolved.identity]
                raise
            self._schema = schema
            self._invalidate()
            logger.debug(f"Attached {resolved.identity} to {self.id}")
            return True

    def detach(self, mixin: Union[Mixin, str]) -> List[str]:
        """Detach an attached Mixin.

        Values of attributes no longer in the schema are dropped.

        Returns:
            Names of the dropped values

        Raises:
            UnrelatedMixinError: If the Mixin is not attached
            MixinDependencyError: If another attached Mixin depends on it
        """
        identity = _identity(mixin)
        with self._lock:
            self._check_alive("detach a mixin from")
            if identity not in self._mixins:
                raise UnrelatedMixinError(identity, self.id)

            dependents = [m.identity for m in self._mixins.values() if identity in m.dependency_ids]
            if dependents:
                raise MixinDependencyError(
                    identity,
                    [],
                    f"Mixin '{identity}' is required by {', '.join(dependents)}",
                )

            remaining = [m for i, m in self._mixins.items() if i != identity]
            schema = entity_schema(self._kind, remaining, self._registry)
            dropped = [name for name in self._values if name not in schema]

            del self._mixins[identity]
            for name in dropped:
                del self._values[name]
            self._schema = schema
            self._invalidate()
            logger.debug(f"Detached {identity} from {self.id}, dropped {dropped}")
            return dropped

    # Actions

    def applicable_actions(self) -> Dict[str, Action]:
        """Actions of the Kind chain and all attached Mixins."""
        return dict(self._schema.actions)

    def prepare_action(
        self,
        action: Union[Action, str],
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[Action, Dict[str, Any]]:
        """Check an action applies and validate its attributes.

        Raises:
            ActionNotApplicableError: If no source of the schema declares it
            UnknownAttributeError, AttributeTypeError,
            MissingRequiredAttributeError: If `attributes` are invalid
        """
        self._check_alive("invoke an action on")
        identity = _identity(action)
        resolved = self._schema.actions.get(identity)
        if resolved is None:
            raise ActionNotApplicableError(identity, self.id)
        return resolved, validate_action_attributes(resolved, attributes)

    def invoke(
        self,
        action: Union[Action, str],
        attributes: Optional[Mapping[str, Any]] = None,
        *,
        backend: Backend,
    ) -> ActionResult:
        """Validate an action invocation and forward it to the backend."""
        with self._lock:
            resolved, validated = self.prepare_action(action, attributes)
            logger.debug(f"Invoking {resolved.identity} on {self.id}")
            return backend.invoke_action(self, resolved, validated)

    # Lifecycle

    def validate_for_submission(self) -> None:
        """Check the entity may be sent to the backend.

        Raises:
            MissingRequiredAttributeError: Listing every required attribute
                without a value
            UniqueConstraintViolation: If a unique value was claimed by
                another entity since it was set (before creation only)
            EntityStateError: If the entity was deleted
        """
        with self._lock:
            self._check_alive("validate")
            missing = missing_required(self._schema.attributes.values(), self._values)
            if missing:
                raise MissingRequiredAttributeError(missing, f"entity '{self.id}'")

            if self._state not in _CREATED_STATES:
                for descriptor in self._schema.attributes.values():
                    value = self._values.get(descriptor.name)
                    if descriptor.unique and value is not None and self._is_taken(descriptor.name, value):
                        raise UniqueConstraintViolation(descriptor.name, value, self._kind.identity)

            if self._state is EntityState.BOUND:
                self._state = EntityState.VALIDATED

    def mark_submitted(self) -> None:
        self._transition(EntityState.VALIDATED, EntityState.SUBMITTED)

    def mark_active(self) -> None:
        self._transition(EntityState.SUBMITTED, EntityState.ACTIVE)

    def mark_deleted(self) -> None:
        """Enter the terminal state and stop pinning the entity's categories."""
        with self._lock:
            self._check_alive("delete")
            self._state = EntityState.DELETED
            self._registry.release(self)
            logger.debug(f"Entity {self.id} deleted")

    @contextmanager
    def transaction(self) -> Iterator[Entity]:
        """Hold the entity lock and restore all state if the block raises.

        Used to keep a local mutation and the backend call that publishes
        it all-or-nothing.
        """
        with self._lock:
            saved = (dict(self._mixins), dict(self._values), self._schema, self._state)
            try:
                yield self
            except BaseException:
                self._mixins, self._values, self._schema, self._state = saved
                raise

    def _transition(self, expected: EntityState, target: EntityState) -> None:
        with self._lock:
            if self._state is not expected:
                raise EntityStateError(self.id, self._state.value, f"move to {target.value}")
            self._state = target

    def _check_alive(self, operation: str) -> None:
        if self._state is EntityState.DELETED:
            raise EntityStateError(self.id, self._state.value, operation)

    def _invalidate(self) -> None:
        if self._state is EntityState.VALIDATED:
            self._state = EntityState.BOUND

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation.

        Attributes with a default but no explicit value are included.
        """
        attributes = {}
        for name, descriptor in self._schema.attributes.items():
            value = self._values.get(name, descriptor.default)
            if value is not None:
                attributes[name] = value
        return {
            "id": self.id,
            "kind": self._kind.identity,
            "mixins": list(self._mixins),
            "state": self._state.value,
            "attributes": attributes,
            "actions": list(self._schema.actions),
        }


def _identity(ref: Union[Mixin, Action, str]) -> str:
    return ref if isinstance(ref, str) else ref.identity
