"""
Backend module: the provisioning collaborator.

The core validates locally and delegates every side effect to a Backend:
- base: Backend protocol, EntityHandle, ActionResult, BackendError family
- memory: InMemoryBackend for tests and local development
"""

from .base import (
    ActionResult,
    Backend,
    BackendConnectionError,
    BackendError,
    BackendRejectedError,
    EntityHandle,
    EntityNotFoundError,
)
from .memory import InMemoryBackend

__all__ = [
    "Backend",
    "BackendError",
    "BackendConnectionError",
    "BackendRejectedError",
    "EntityNotFoundError",
    "EntityHandle",
    "ActionResult",
    "InMemoryBackend",
]
