"""
Archive module for VCDB.

This module holds the append-only snapshot store.

Invariants:
    - Snapshots are immutable once written
    - (key, version) is unique per archive relation
"""

from .snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
