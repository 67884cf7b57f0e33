"""
Base protocol and types for the provisioning backend.

This module defines the Backend protocol that provisioning backends must
implement, along with the handle and result types they return.

The core never performs side effects itself: creating, updating and
deleting resources, listing them and running actions are all delegated to
a Backend. Entities reach a backend only after local validation passed.

Invariants:
    - Backend errors derive from BackendError
    - The core does not retry backend calls; retry and timeout policy
      belong to the backend implementation or its caller
    - exists_with_attribute_value is a synchronous, consistent read used
      for uniqueness checks

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

if TYPE_CHECKING:
    from ..category.types import Action, Kind, Mixin
    from ..entity.resource import Entity


class BackendError(Exception):
    """Base exception for backend operations."""
    pass


class BackendConnectionError(BackendError):
    """Backend could not be reached."""
    pass


class BackendRejectedError(BackendError):
    """Backend refused the request."""
    pass


class EntityNotFoundError(BackendError):
    """Backend holds no entity with the given id."""
    pass


@dataclass(frozen=True)
class EntityHandle:
    """Reference to an entity held by a backend.

    Attributes:
        id: Entity id
        kind: Identity of the entity's Kind
        location: Backend-specific location, e.g. '/network/<id>'
        mixins: Identities of attached Mixins at the time of the call
    """
    id: str
    kind: str
    location: str
    mixins: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "location": self.location,
            "mixins": list(self.mixins),
        }


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an action invocation.

    Attributes:
        entity_id: Target entity
        action: Identity of the invoked action
        attributes: Validated invocation attributes
        accepted: Whether the backend accepted the request
    """
    entity_id: str
    action: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    accepted: bool = True


@runtime_checkable
class Backend(Protocol):
    """Protocol for provisioning backends.

    Example:
        >>> backend: Backend = InMemoryBackend()
        >>> handle = backend.create(entity)
        >>> backend.exists_with_attribute_value(kind, "occi.network.vlan", 42)
        True
    """

    @abstractmethod
    def create(self, entity: Entity) -> EntityHandle:
        """Provision a validated entity.

        Raises:
            BackendError: If provisioning fails
        """
        ...

    @abstractmethod
    def update(self, entity: Entity) -> EntityHandle:
        """Push the current attributes and mixins of an active entity."""
        ...

    @abstractmethod
    def delete(self, entity: Entity) -> None:
        """Deprovision an entity.

        Raises:
            EntityNotFoundError: If the backend does not hold it
        """
        ...

    @abstractmethod
    def list(self, category: Union[Kind, Mixin, str, None] = None) -> List[EntityHandle]:
        """List entities whose Kind chain or Mixins include `category`."""
        ...

    @abstractmethod
    def invoke_action(
        self,
        entity: Entity,
        action: Action,
        attributes: Dict[str, Any],
    ) -> ActionResult:
        """Run an action on an entity."""
        ...

    @abstractmethod
    def exists_with_attribute_value(self, kind: Kind, name: str, value: Any) -> bool:
        """Whether an entity of `kind` already holds `value` for `name`."""
        ...

    @abstractmethod
    def catalogue(self) -> Dict[str, Any]:
        """Published category catalogue in registry dictionary form."""
        ...


def category_identity(category: Union[Kind, Mixin, str, None]) -> Optional[str]:
    """Identity of a list filter."""
    if category is None or isinstance(category, str):
        return category
    return category.identity
