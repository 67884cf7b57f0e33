"""
Kind-chain resolution and effective schema merging.

Pure functions with no shared state:
- ancestors: the Kind chain from a Kind up to its root
- effective_attributes / effective_actions: union over a Kind chain
- is_kind_of: reflexive, transitive ancestry test
- merge_schema: union of the attributes and actions of several sources

Merge policy for an attribute name contributed by several sources:
    - type, default and range must be equal, else SchemaConflictError
    - required = any source, mutable = all sources, unique = any source
The policy is commutative, so the merged schema does not depend on the
order sources are given in; only which conflict is reported first does.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Protocol, Tuple, Union

from ..errors import CyclicKindError, SchemaConflictError, UnknownCategoryError
from .types import Action, Attribute, Kind, Mixin


class CategoryLookup(Protocol):
    """What resolution needs from a registry to follow identity references."""

    def get_kind(self, identity: Union[Kind, str]) -> Kind: ...

    def get_mixin(self, identity: Union[Mixin, str]) -> Mixin: ...

    def get_action(self, identity: Union[Action, str]) -> Action: ...


@dataclass(frozen=True)
class EffectiveSchema:
    """The merged attribute and action set visible on an entity.

    Attributes:
        attributes: Merged attribute descriptors by name
        sources: Identities of the categories contributing each attribute
        actions: Applicable actions by identity
    """

    attributes: Dict[str, Attribute] = field(default_factory=dict)
    sources: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    actions: Dict[str, Action] = field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.attributes

    def get(self, name: str) -> Optional[Attribute]:
        return self.attributes.get(name)

    def names(self) -> List[str]:
        return list(self.attributes)

    def required(self) -> List[Attribute]:
        return [a for a in self.attributes.values() if a.required]


def ancestors(kind: Kind, registry: Optional[CategoryLookup] = None) -> List[Kind]:
    """Follow `related` links from `kind` to the root of its tree.

    Args:
        kind: Starting Kind (first element of the result)
        registry: Used to resolve parents given as identity strings

    Returns:
        Kinds ordered from `kind` to the root

    Raises:
        CyclicKindError: If the chain revisits a Kind
        UnknownCategoryError: If a parent identity cannot be resolved
    """
    chain: List[Kind] = []
    seen = set()
    current: Optional[Kind] = kind
    while current is not None:
        if current.identity in seen:
            raise CyclicKindError([k.identity for k in chain] + [current.identity])
        seen.add(current.identity)
        chain.append(current)

        parent = current.related
        if isinstance(parent, str):
            if registry is None:
                raise UnknownCategoryError(parent, expected="kind")
            parent = registry.get_kind(parent)
        current = parent
    return chain


def is_kind_of(
    kind: Kind,
    candidate: Union[Kind, str],
    registry: Optional[CategoryLookup] = None,
) -> bool:
    """Whether `candidate` appears in the chain of `kind` (itself included)."""
    identity = candidate if isinstance(candidate, str) else candidate.identity
    return any(k.identity == identity for k in ancestors(kind, registry))


def effective_attributes(kind: Kind, registry: Optional[CategoryLookup] = None) -> Dict[str, Attribute]:
    """Attributes of `kind` and all its ancestors."""
    return merge_schema(ancestors(kind, registry), registry).attributes


def effective_actions(kind: Kind, registry: Optional[CategoryLookup] = None) -> Dict[str, Action]:
    """Actions of `kind` and all its ancestors, keyed by identity."""
    return merge_schema(ancestors(kind, registry), registry).actions


def entity_schema(
    kind: Kind,
    mixins: Iterable[Mixin],
    registry: Optional[CategoryLookup] = None,
) -> EffectiveSchema:
    """Effective schema of an entity: its Kind chain plus attached Mixins."""
    return merge_schema([*ancestors(kind, registry), *mixins], registry)


def merge_schema(
    categories: Iterable[Union[Kind, Mixin]],
    registry: Optional[CategoryLookup] = None,
) -> EffectiveSchema:
    """Union the attributes and actions of several categories.

    Raises:
        SchemaConflictError: If two sources disagree on an attribute or
            carry different definitions of the same action
    """
    attributes: Dict[str, Attribute] = {}
    sources: Dict[str, List[str]] = {}
    actions: Dict[str, Action] = {}

    for category in categories:
        for attr in category.attributes:
            contributors = sources.setdefault(attr.name, [])
            existing = attributes.get(attr.name)
            if existing is None:
                attributes[attr.name] = attr
            else:
                attributes[attr.name] = merge_attribute(
                    existing, attr, contributors + [category.identity]
                )
            contributors.append(category.identity)

        for ref in category.actions:
            action = _resolve_action(ref, registry)
            prior = actions.get(action.identity)
            if prior is not None and not prior.same_definition(action):
                raise SchemaConflictError(
                    action.identity, [category.identity], "action definitions differ"
                )
            actions[action.identity] = action

    return EffectiveSchema(
        attributes=attributes,
        sources={name: tuple(sorted(ids)) for name, ids in sources.items()},
        actions=actions,
    )


def merge_attribute(existing: Attribute, incoming: Attribute, sources: List[str]) -> Attribute:
    """Merge two descriptors of the same attribute name.

    Raises:
        SchemaConflictError: If type, default or range differ
    """
    if existing.type is not incoming.type:
        raise SchemaConflictError(
            existing.name,
            sources,
            f"type {existing.type.value} != {incoming.type.value}",
        )
    if existing.default != incoming.default:
        raise SchemaConflictError(
            existing.name,
            sources,
            f"default {existing.default!r} != {incoming.default!r}",
        )
    if existing.range != incoming.range:
        raise SchemaConflictError(
            existing.name,
            sources,
            f"range {existing.range!r} != {incoming.range!r}",
        )
    return replace(
        existing,
        mutable=existing.mutable and incoming.mutable,
        required=existing.required or incoming.required,
        unique=existing.unique or incoming.unique,
    )


def missing_dependencies(mixin: Mixin, attached: Iterable[str]) -> List[str]:
    """Identities `mixin` depends on that are not among `attached`."""
    present = set(attached)
    return [d for d in mixin.dependency_ids if d not in present]


def _resolve_action(ref: Union[Action, str], registry: Optional[CategoryLookup]) -> Action:
    if isinstance(ref, Action):
        return ref
    if registry is None:
        raise UnknownCategoryError(ref, expected="action")
    return registry.get_action(ref)
