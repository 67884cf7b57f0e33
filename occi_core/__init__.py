"""
OCCI Core - category/type model for cloud resource descriptions.

Resources (compute, network, storage) are typed by runtime-registered
descriptors instead of fixed classes:
- Kinds: single-inheritance base types
- Mixins: independently attachable trait types
- Actions: invocable operations
each carrying typed Attributes.

Architecture:
    ┌──────────────────┐     ┌──────────────────┐     ┌──────────────┐
    │ CategoryRegistry │────▶│ Kind chain +     │────▶│ Effective    │
    │ (Kind/Mixin/     │     │ attached Mixins  │     │ schema       │
    │  Action)         │     └──────────────────┘     └──────┬───────┘
    └──────────────────┘                                     │
                                                             ▼
    ┌──────────────────┐     ┌──────────────────┐     ┌──────────────┐
    │ Backend          │◀────│ OcciService      │◀────│ Entity       │
    │ (provisioning)   │     │ (commands)       │     │ (values)     │
    └──────────────────┘     └──────────────────┘     └──────────────┘

Invariants:
    - Category identity (scheme + term) is unique in a registry
    - An entity's schema is its Kind chain plus attached Mixins
    - Invalid entities never reach the backend
    - Every failed operation leaves prior state unchanged

How to change safely:
    - Construct one CategoryRegistry at startup and pass it explicitly
    - Register new categories instead of changing registered ones
"""

from ._version import __version__
from .category import (
    Action,
    Attribute,
    AttributeType,
    CategoryRegistry,
    Kind,
    Mixin,
    attribute,
)
from .entity import Entity, EntityState
from .service import OcciService, build_service

__all__ = [
    "__version__",
    "Attribute",
    "AttributeType",
    "Action",
    "Kind",
    "Mixin",
    "attribute",
    "CategoryRegistry",
    "Entity",
    "EntityState",
    "OcciService",
    "build_service",
]
