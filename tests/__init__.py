"""
VCDB Test Suite.

This package contains:
- unit/: Unit tests for each component (in-memory SQLite)
- integration/: VersionedStore tests against a SQLite file
"""
