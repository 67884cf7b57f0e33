"""
Category Registry for the OCCI model.

The CategoryRegistry is the catalogue of all Kinds, Mixins and Actions.
It provides:
- Registration keyed by identity (scheme + term)
- Lookup by (scheme, term) or identity
- Filtered, restartable listings in insertion order
- Removal guarded against live references
- Catalogue snapshots, reloads and fingerprinting

Invariants:
    - An identity is bound to at most one definition
    - Re-registering an identical definition is a no-op
    - Registered categories hold resolved object references: a Kind's
      parent and actions, and a Mixin's dependencies and actions, are the
      registered objects
    - Every write publishes a new snapshot; readers never see a partial write

Thread-safety:
    - register/unregister/load are serialized by an internal lock
    - lookup/list/fingerprint read the current snapshot without locking

How to change safely:
    - Construct one registry at startup and pass it to whatever needs it
    - Register parents, actions and dependencies before their users

Example:
    >>> from occi_core.category import CategoryRegistry, Kind
    >>> registry = CategoryRegistry()
    >>> registry.register(Kind(term="resource", scheme="http://schemas.ogf.org/occi/core#"))
    >>> registry.lookup("http://schemas.ogf.org/occi/core#", "resource").term
    'resource'
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import weakref
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Type, TypeVar, Union

from ..errors import (
    CategoryInUseError,
    CyclicKindError,
    DuplicateCategoryError,
    UnknownCategoryError,
)
from .types import Action, Category, Kind, Mixin, category_from_dict

if TYPE_CHECKING:
    from ..entity.resource import Entity

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Category)

Snapshot = Dict[str, Category]


@dataclass(frozen=True)
class _CatalogueState:
    """Published catalogue: never mutated once assigned."""

    categories: Snapshot
    fingerprint: str


class CategoryView:
    """Lazy view over one registry snapshot.

    Iterating twice yields the same categories in the same order, even if
    the registry changed in between.
    """

    def __init__(self, snapshot: Snapshot, category_type: Optional[Type[Category]] = None) -> None:
        self._snapshot = snapshot
        self._category_type = category_type

    def __iter__(self) -> Iterator[Category]:
        for category in self._snapshot.values():
            if self._category_type is None or isinstance(category, self._category_type):
                yield category

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def identities(self) -> List[str]:
        return [c.identity for c in self]


class CategoryRegistry:
    """Catalogue of all Kind, Mixin and Action definitions.

    Attributes:
        fingerprint: SHA-256 hash of the canonical catalogue

    Example:
        >>> registry = CategoryRegistry()
        >>> registry.register(up_action)
        >>> registry.register(network_kind)
        >>> [k.term for k in registry.list(Kind)]
        ['network']
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._state = _CatalogueState({}, _compute_fingerprint({}))
        self._entities: "weakref.WeakSet[Entity]" = weakref.WeakSet()
        self._lock = threading.Lock()

    @property
    def _categories(self) -> Snapshot:
        return self._state.categories

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, identity: str) -> bool:
        return identity in self._categories

    @property
    def fingerprint(self) -> str:
        """Fingerprint of the current catalogue ('sha256:<hex>')."""
        return self._state.fingerprint

    def register(self, category: C) -> C:
        """Register a Kind, Mixin or Action.

        Args:
            category: The definition to register

        Returns:
            The registered definition (with resolved references)

        Raises:
            DuplicateCategoryError: If the identity is bound to a different definition
            UnknownCategoryError: If a referenced parent, action or dependency
                is not registered
            CyclicKindError: If a Kind's chain would reach itself

        Example:
            >>> registry.register(network_kind)
        """
        with self._lock:
            existing = self._categories.get(category.identity)
            if existing is not None:
                if not existing.same_definition(category):
                    raise DuplicateCategoryError(category.identity)
                logger.debug(f"Category already registered: {category.identity}")
                return existing  # type: ignore[return-value]

            snapshot = dict(self._categories)
            registered = _register_into(snapshot, category)
            self._publish(snapshot)
            logger.debug(f"Registered {category.category_type}: {category.identity}")
            return registered  # type: ignore[return-value]

    def lookup(self, scheme: str, term: str) -> Category:
        """Get a category by scheme and term.

        Raises:
            UnknownCategoryError: If nothing is registered under scheme + term
        """
        return self.get(scheme + term)

    def get(self, identity: str) -> Category:
        """Get a category by identity.

        Raises:
            UnknownCategoryError: If the identity is not registered
        """
        category = self._categories.get(identity)
        if category is None:
            raise UnknownCategoryError(identity)
        return category

    def get_kind(self, identity: Union[Kind, str]) -> Kind:
        return self._get_typed(identity, Kind)

    def get_mixin(self, identity: Union[Mixin, str]) -> Mixin:
        return self._get_typed(identity, Mixin)

    def get_action(self, identity: Union[Action, str]) -> Action:
        return self._get_typed(identity, Action)

    def _get_typed(self, ref: Union[C, str], category_type: Type[C]) -> C:
        """Resolve a reference to the registered definition of the given type.

        An object reference must match the registered definition exactly.
        """
        identity = ref if isinstance(ref, str) else ref.identity
        category = self._categories.get(identity)
        if not isinstance(category, category_type):
            raise UnknownCategoryError(identity, expected=category_type.category_type)
        if not isinstance(ref, str) and not category.same_definition(ref):
            raise DuplicateCategoryError(identity)
        return category

    def list(self, category_type: Optional[Type[Category]] = None) -> CategoryView:
        """List registered categories in insertion order.

        Args:
            category_type: Kind, Mixin or Action to filter by (None for all)

        Returns:
            Restartable view over the current snapshot
        """
        return CategoryView(self._categories, category_type)

    def kinds(self) -> Iterator[Kind]:
        yield from self.list(Kind)  # type: ignore[misc]

    def mixins(self) -> Iterator[Mixin]:
        yield from self.list(Mixin)  # type: ignore[misc]

    def actions(self) -> Iterator[Action]:
        yield from self.list(Action)  # type: ignore[misc]

    def unregister(self, scheme: str, term: str) -> Category:
        """Remove a category.

        Raises:
            UnknownCategoryError: If nothing is registered under scheme + term
            CategoryInUseError: If a live entity or another category references it
        """
        identity = scheme + term
        with self._lock:
            category = self._categories.get(identity)
            if category is None:
                raise UnknownCategoryError(identity)

            referrers = [
                f"entity {entity.id}"
                for entity in list(self._entities)
                if entity.references(identity)
            ]
            referrers.extend(
                other.identity
                for other in self._categories.values()
                if other.identity != identity and identity in _references_of(other)
            )
            if referrers:
                raise CategoryInUseError(identity, referrers)

            snapshot = dict(self._categories)
            del snapshot[identity]
            self._publish(snapshot)
            logger.info(f"Unregistered {category.category_type}: {identity}")
            return category

    def load(self, data: Dict[str, Any], strict: bool = True) -> List[str]:
        """Merge a catalogue dictionary into the registry.

        Categories are registered in dependency order. Identical definitions
        are skipped. The whole load is applied or nothing is.

        Args:
            data: Dictionary with a 'categories' list
            strict: If False, conflicting definitions are skipped (and
                logged) instead of failing the load

        Returns:
            Identities newly added by this load

        Raises:
            DuplicateCategoryError: On a conflicting definition (strict mode)
            UnknownCategoryError: If a reference cannot be resolved
        """
        pending = [category_from_dict(c) for c in data.get("categories", [])]
        with self._lock:
            snapshot = dict(self._categories)
            added: List[str] = []
            while pending:
                deferred = []
                for category in pending:
                    if not _references_available(snapshot, category, pending):
                        deferred.append(category)
                        continue
                    existed = category.identity in snapshot
                    try:
                        _register_into(snapshot, category)
                    except DuplicateCategoryError:
                        if strict:
                            raise
                        logger.warning(f"Skipping conflicting definition of {category.identity}")
                        continue
                    if not existed:
                        added.append(category.identity)
                if len(deferred) == len(pending):
                    # Nothing progressed; let the first one report what is missing.
                    _register_into(snapshot, deferred[0])
                pending = deferred
            if added:
                self._publish(snapshot)
            logger.info(f"Loaded catalogue: {len(added)} new categories, fingerprint={self.fingerprint}")
            return added

    def to_dict(self) -> Dict[str, Any]:
        """Convert registry to dictionary representation.

        Returns:
            Dictionary with a 'categories' list sorted by identity
        """
        return _snapshot_to_dict(self._categories)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CategoryRegistry:
        """Create registry from dictionary representation."""
        registry = cls()
        registry.load(data)
        return registry

    @classmethod
    def from_json(cls, json_str: str) -> CategoryRegistry:
        return cls.from_dict(json.loads(json_str))

    # Live entity tracking

    def track(self, entity: Entity) -> None:
        """Record a live entity so its categories cannot be unregistered.

        Raises:
            UnknownCategoryError: If its Kind or a Mixin was unregistered
                while the entity was being bound
        """
        with self._lock:
            self._check_bound(entity)
            self._entities.add(entity)

    def ensure_bound(self, entity: Entity) -> None:
        """Check that every category of an entity is still registered.

        Raises:
            UnknownCategoryError: For the first identity that is gone
        """
        with self._lock:
            self._check_bound(entity)

    def release(self, entity: Entity) -> None:
        """Forget a deleted entity."""
        with self._lock:
            self._entities.discard(entity)

    def live_entities(self) -> List[Entity]:
        with self._lock:
            return list(self._entities)

    def _check_bound(self, entity: Entity) -> None:
        # Caller holds self._lock, so unregister cannot interleave.
        for identity in entity.category_ids():
            if identity not in self._categories:
                raise UnknownCategoryError(identity)

    def _publish(self, snapshot: Snapshot) -> None:
        self._state = _CatalogueState(snapshot, _compute_fingerprint(snapshot))


def _references_of(category: Category) -> List[str]:
    """Identities a category refers to."""
    refs: List[str] = []
    if isinstance(category, Kind):
        if category.related_id:
            refs.append(category.related_id)
        refs.extend(category.action_ids)
    elif isinstance(category, Mixin):
        refs.extend(category.action_ids)
        refs.extend(category.dependency_ids)
    return refs


def _references_available(snapshot: Snapshot, category: Category, pending: List[Category]) -> bool:
    """Whether every reference of `category` is already in `snapshot`.

    A reference to something that is neither registered nor pending counts
    as available, so that registration reports it as unknown.
    """
    pending_ids = {p.identity for p in pending if p is not category}
    return all(ref in snapshot or ref not in pending_ids for ref in _references_of(category))


def _register_into(snapshot: Snapshot, category: Category) -> Category:
    """Bind references and add `category` to `snapshot` in place.

    Returns the registered object; for an identical re-registration this is
    the existing one and the snapshot is left untouched.
    """
    existing = snapshot.get(category.identity)
    if existing is not None:
        if existing.same_definition(category):
            return existing
        raise DuplicateCategoryError(category.identity)

    bound = _bind(snapshot, category)
    snapshot[bound.identity] = bound
    return bound


def _bind(snapshot: Snapshot, category: Category) -> Category:
    """Replace reference identities by the registered objects."""
    if isinstance(category, Kind):
        related = None
        if category.related is not None:
            related = _resolve(snapshot, category.related, Kind)
            _check_acyclic(category, related)
        actions = tuple(_resolve(snapshot, a, Action) for a in category.actions)
        return replace(category, related=related, actions=actions)
    if isinstance(category, Mixin):
        actions = tuple(_resolve(snapshot, a, Action) for a in category.actions)
        depends_on = tuple(_resolve(snapshot, m, Mixin) for m in category.depends_on)
        return replace(category, actions=actions, depends_on=depends_on)
    return category


def _resolve(snapshot: Snapshot, ref: Union[Category, str], category_type: Type[C]) -> C:
    identity = ref if isinstance(ref, str) else ref.identity
    registered = snapshot.get(identity)
    if not isinstance(registered, category_type):
        raise UnknownCategoryError(identity, expected=category_type.category_type)
    if not isinstance(ref, str) and not registered.same_definition(ref):
        raise DuplicateCategoryError(identity)
    return registered


def _check_acyclic(kind: Kind, parent: Kind) -> None:
    chain = [kind.identity]
    current: Optional[Kind] = parent
    while current is not None:
        chain.append(current.identity)
        if current.identity == kind.identity:
            raise CyclicKindError(chain)
        related = current.related
        current = related if isinstance(related, Kind) else None


def _snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "categories": [snapshot[identity].to_dict() for identity in sorted(snapshot)],
    }


def _compute_fingerprint(snapshot: Snapshot) -> str:
    """Compute SHA-256 fingerprint of a catalogue snapshot.

    Computed from the canonical JSON representation sorted by identity.
    """
    canonical = json.dumps(_snapshot_to_dict(snapshot), sort_keys=True, separators=(",", ":"))
    hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"
