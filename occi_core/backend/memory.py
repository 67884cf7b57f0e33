"""
In-memory backend implementation for testing.

This module provides a simple in-memory provisioning backend for:
- Unit tests
- Integration tests
- Local development without a provisioning service

Invariants:
    - All data is lost on process exit
    - Stored entities are snapshots taken at create/update time
    - Thread-safe for concurrent access

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the Backend protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union
import logging

from ..category.resolve import ancestors
from .base import (
    ActionResult,
    BackendRejectedError,
    EntityHandle,
    EntityNotFoundError,
    category_identity,
)

if TYPE_CHECKING:
    from ..category.types import Action, Kind, Mixin
    from ..entity.resource import Entity

logger = logging.getLogger(__name__)


@dataclass
class StoredEntity:
    """Backend-side copy of an entity."""
    handle: EntityHandle
    categories: List[str]
    values: Dict[str, Any] = field(default_factory=dict)


class InMemoryBackend:
    """In-memory implementation of Backend for testing.

    Attributes:
        invocations: Every accepted action invocation, in order

    Example:
        >>> backend = InMemoryBackend()
        >>> handle = backend.create(entity)
        >>> [h.id for h in backend.list(NETWORK)]
        ['...']
    """

    def __init__(self, catalogue: Optional[Dict[str, Any]] = None) -> None:
        """Initialize an empty backend.

        Args:
            catalogue: Catalogue returned by catalogue()
        """
        self._entities: Dict[str, StoredEntity] = {}
        self._catalogue: Dict[str, Any] = catalogue or {"categories": []}
        self._failures: Dict[str, Exception] = {}
        self._lock = threading.Lock()
        self.invocations: List[ActionResult] = []

    def create(self, entity: Entity) -> EntityHandle:
        """Store a snapshot of a new entity.

        Raises:
            BackendRejectedError: If an entity with the same id exists
        """
        with self._lock:
            self._maybe_fail("create")
            if entity.id in self._entities:
                raise BackendRejectedError(f"Entity {entity.id} already exists")
            stored = self._snapshot(entity)
            self._entities[entity.id] = stored
            logger.debug(f"Created {stored.handle.location}")
            return stored.handle

    def update(self, entity: Entity) -> EntityHandle:
        """Replace the stored snapshot of an entity."""
        with self._lock:
            self._maybe_fail("update")
            if entity.id not in self._entities:
                raise EntityNotFoundError(f"Entity {entity.id} not found")
            stored = self._snapshot(entity)
            self._entities[entity.id] = stored
            return stored.handle

    def delete(self, entity: Entity) -> None:
        with self._lock:
            self._maybe_fail("delete")
            if self._entities.pop(entity.id, None) is None:
                raise EntityNotFoundError(f"Entity {entity.id} not found")
            logger.debug(f"Deleted entity {entity.id}")

    def list(self, category: Union[Kind, Mixin, str, None] = None) -> List[EntityHandle]:
        """List stored entities, optionally filtered by Kind or Mixin.

        A Kind filter also matches entities of its sub-Kinds.
        """
        identity = category_identity(category)
        with self._lock:
            self._maybe_fail("list")
            return [
                stored.handle
                for stored in self._entities.values()
                if identity is None or identity in stored.categories
            ]

    def invoke_action(
        self,
        entity: Entity,
        action: Action,
        attributes: Dict[str, Any],
    ) -> ActionResult:
        with self._lock:
            self._maybe_fail("invoke_action")
            if entity.id not in self._entities:
                raise EntityNotFoundError(f"Entity {entity.id} not found")
            result = ActionResult(
                entity_id=entity.id,
                action=action.identity,
                attributes=dict(attributes),
            )
            self.invocations.append(result)
            logger.debug(f"Invoked {action.identity} on {entity.id}")
            return result

    def exists_with_attribute_value(self, kind: Kind, name: str, value: Any) -> bool:
        with self._lock:
            return any(
                stored.handle.kind == kind.identity and stored.values.get(name) == value
                for stored in self._entities.values()
            )

    def catalogue(self) -> Dict[str, Any]:
        with self._lock:
            self._maybe_fail("catalogue")
            return self._catalogue

    def _snapshot(self, entity: Entity) -> StoredEntity:
        kind = entity.kind
        mixin_ids = tuple(m.identity for m in entity.mixins)
        handle = EntityHandle(
            id=entity.id,
            kind=kind.identity,
            location=f"/{kind.term}/{entity.id}",
            mixins=mixin_ids,
        )
        categories = [k.identity for k in ancestors(kind)] + list(mixin_ids)
        return StoredEntity(handle=handle, categories=categories, values=entity.values)

    def _maybe_fail(self, operation: str) -> None:
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    # Testing helpers

    def publish_catalogue(self, catalogue: Dict[str, Any]) -> None:
        """Set the catalogue returned by catalogue() (testing helper)."""
        with self._lock:
            self._catalogue = catalogue

    def inject_failure(self, operation: str, exception: Exception) -> None:
        """Make the next call of `operation` raise `exception` (testing helper)."""
        with self._lock:
            self._failures[operation] = exception

    def get_values(self, entity_id: str) -> Dict[str, Any]:
        """Stored attribute values of an entity (testing helper)."""
        with self._lock:
            stored = self._entities.get(entity_id)
            if stored is None:
                raise EntityNotFoundError(f"Entity {entity_id} not found")
            return dict(stored.values)

    def get_entity_count(self) -> int:
        """Number of stored entities (testing helper)."""
        with self._lock:
            return len(self._entities)
