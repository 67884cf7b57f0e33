"""
OCCI Core Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (service over the in-memory backend)
"""
