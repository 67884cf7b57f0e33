"""
Command surface over the category model.

OcciService maps the logical commands a front end issues onto registry
and entity operations plus one backend call each:
- list(kind): handles the backend holds for a Kind or Mixin
- describe(ref) / render(ref, fmt): an entity's schema and values
- create(kind, title, mixins, attributes): bind, validate, provision
- update(ref, attributes), attach(ref, mixin), detach(ref, mixin)
- trigger(ref, action, attrs): validate and forward an action
- delete(ref): deprovision and discard the local handle
- refresh(): merge the backend's published catalogue into the registry

Invariants:
    - Nothing reaches the backend before local validation passed
    - Backend errors are logged and re-raised unchanged, never retried
    - A failed command leaves the entity as it was before the command

Example:
    >>> service = build_service()
    >>> net = service.create(NETWORK, title="lab", attributes={"occi.network.state": "active"})
    >>> service.trigger(net.id, NETWORK_UP)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .backend.base import ActionResult, Backend, EntityHandle
from .backend.memory import InMemoryBackend
from .category.registry import CategoryRegistry
from .category.types import Action, Kind, Mixin
from .config import Settings
from .entity.resource import Entity
from .errors import UnknownEntityError
from .infrastructure import register_infrastructure
from .render import OutputFormat, entity_to_dict, render_entity

logger = logging.getLogger(__name__)

TITLE_ATTRIBUTE = "occi.core.title"

EntityRef = Union[Entity, str]


class OcciService:
    """Entity operations backed by a provisioning backend.

    Attributes:
        registry: Category registry shared with every entity
        backend: Provisioning backend
        settings: Runtime configuration
    """

    def __init__(
        self,
        registry: CategoryRegistry,
        backend: Backend,
        settings: Optional[Settings] = None,
    ) -> None:
        self.registry = registry
        self.backend = backend
        self.settings = settings or Settings()
        self._entities: Dict[str, Entity] = {}
        self._lock = threading.Lock()

    def get(self, ref: EntityRef) -> Entity:
        """Resolve an entity reference to a live local entity.

        Raises:
            UnknownEntityError: If the service holds no such entity
        """
        entity_id = ref if isinstance(ref, str) else ref.id
        entity = self._entities.get(entity_id)
        if entity is None:
            raise UnknownEntityError(entity_id)
        return entity

    def entities(self) -> List[Entity]:
        return list(self._entities.values())

    def list(self, category: Union[Kind, Mixin, str, None] = None) -> List[EntityHandle]:
        return self.backend.list(category)

    def describe(self, ref: EntityRef) -> Dict[str, Any]:
        return entity_to_dict(self.get(ref))

    def render(self, ref: EntityRef, fmt: Union[OutputFormat, str, None] = None) -> str:
        return render_entity(self.get(ref), fmt or self.settings.output_format)

    def create(
        self,
        kind: Union[Kind, str],
        title: Optional[str] = None,
        mixins: Iterable[Union[Mixin, str]] = (),
        attributes: Optional[Mapping[str, Any]] = None,
        *,
        id: Optional[str] = None,
    ) -> Entity:
        """Create an entity and provision it.

        Raises:
            UnknownCategoryError, SchemaConflictError, MixinDependencyError:
                If the Kind/Mixins cannot be bound
            UnknownAttributeError, AttributeTypeError,
            UniqueConstraintViolation: If an attribute value is rejected
            MissingRequiredAttributeError: If required attributes are missing
            BackendError: If provisioning fails
        """
        values = dict(attributes or {})
        if title is not None:
            values[TITLE_ATTRIBUTE] = title

        entity = Entity(
            kind,
            self.registry,
            id=id,
            mixins=mixins,
            attributes=values,
            uniqueness=self.backend,
        )
        try:
            entity.validate_for_submission()
            entity.mark_submitted()
            self._call_backend("create", self.backend.create, entity)
        except Exception:
            self.registry.release(entity)
            raise
        entity.mark_active()

        with self._lock:
            self._entities[entity.id] = entity
        logger.info(f"Created {entity.kind.term} {entity.id}")
        return entity

    def update(self, ref: EntityRef, attributes: Mapping[str, Any]) -> Entity:
        entity = self.get(ref)
        with entity.transaction():
            entity.update(attributes)
            entity.validate_for_submission()
            self._call_backend("update", self.backend.update, entity)
        return entity

    def attach(
        self,
        ref: EntityRef,
        mixin: Union[Mixin, str],
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> Entity:
        """Attach a Mixin, optionally setting the attributes it adds."""
        entity = self.get(ref)
        with entity.transaction():
            attached = entity.attach(mixin)
            if attributes:
                entity.update(attributes)
            if attached or attributes:
                entity.validate_for_submission()
                self._call_backend("update", self.backend.update, entity)
        return entity

    def detach(self, ref: EntityRef, mixin: Union[Mixin, str]) -> List[str]:
        """Detach a Mixin and publish the change.

        Returns:
            Names of attribute values dropped with the Mixin
        """
        entity = self.get(ref)
        with entity.transaction():
            dropped = entity.detach(mixin)
            entity.validate_for_submission()
            self._call_backend("update", self.backend.update, entity)
        return dropped

    def trigger(
        self,
        ref: EntityRef,
        action: Union[Action, str],
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> ActionResult:
        entity = self.get(ref)
        resolved, validated = entity.prepare_action(action, attributes)
        return self._call_backend(
            "invoke_action", self.backend.invoke_action, entity, resolved, validated
        )

    def delete(self, ref: EntityRef) -> None:
        entity = self.get(ref)
        self._call_backend("delete", self.backend.delete, entity)
        entity.mark_deleted()
        with self._lock:
            self._entities.pop(entity.id, None)
        logger.info(f"Deleted {entity.kind.term} {entity.id}")

    def refresh(self) -> List[str]:
        """Reload categories from the backend's published catalogue.

        Returns:
            Identities of newly registered categories
        """
        catalogue = self._call_backend("catalogue", self.backend.catalogue)
        return self.registry.load(catalogue, strict=self.settings.strict_refresh)

    def _call_backend(self, operation: str, call: Any, *args: Any) -> Any:
        try:
            return call(*args)
        except Exception as e:
            logger.warning(f"Backend {operation} failed: {e}")
            raise


def build_service(
    settings: Optional[Settings] = None,
    backend: Optional[Backend] = None,
) -> OcciService:
    """Construct a registry and service from settings.

    Args:
        settings: Configuration (loaded from the environment if omitted)
        backend: Provisioning backend (in-memory if omitted)
    """
    settings = settings or Settings()
    registry = CategoryRegistry()
    if settings.load_infrastructure:
        register_infrastructure(registry)
    return OcciService(registry, backend or InMemoryBackend(), settings)
