"""
Category module for the OCCI model.

This module provides the type system resources are described by:
- Type definitions (Attribute, Action, Kind, Mixin)
- Category registry for catalogue management
- Kind-chain resolution and effective schema merging

Invariants:
    - identity (scheme + term) is unique across the registry
    - Kinds form a forest through `related`, never a cycle
    - An attribute name has one type across every merged source

How to change safely:
    - Register parents, actions and mixin dependencies first
    - Never re-register a different definition under an existing identity;
      unregister it first (fails while it is still referenced)
"""

from .registry import CategoryRegistry, CategoryView
from .resolve import (
    EffectiveSchema,
    ancestors,
    effective_actions,
    effective_attributes,
    entity_schema,
    is_kind_of,
    merge_schema,
)
from .types import (
    Action,
    Attribute,
    AttributeType,
    Category,
    Kind,
    Mixin,
    attribute,
    category_from_dict,
)

__all__ = [
    # Types
    "Attribute",
    "AttributeType",
    "Category",
    "Action",
    "Kind",
    "Mixin",
    "attribute",
    "category_from_dict",
    # Registry
    "CategoryRegistry",
    "CategoryView",
    # Resolution
    "EffectiveSchema",
    "ancestors",
    "effective_attributes",
    "effective_actions",
    "entity_schema",
    "is_kind_of",
    "merge_schema",
]
