"""
Entity module for the OCCI model.

Entities are resource instances: one Kind, any number of attached Mixins
and a validated attribute value map.
"""

from .resource import Entity, EntityState, UniquenessCheck
from .validate import check_value, validate_action_attributes

__all__ = [
    "Entity",
    "EntityState",
    "UniquenessCheck",
    "check_value",
    "validate_action_attributes",
]
