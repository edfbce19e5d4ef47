"""
Schema module for VCDB.

This module provides relation metadata and its lifecycle:
- RelationMeta and Snapshot data types
- RelationRegistry holding metadata resolved at activation
- SchemaProvisioner creating archives and bookkeeping columns

Invariants:
    - Metadata is resolved once per relation, never per mutation
    - Bookkeeping columns are never part of the attribute list
"""

from .provisioner import SchemaProvisioner
from .registry import RelationRegistry
from .types import (
    BOOKKEEPING_COLUMNS,
    TIMESTAMP_COLUMN,
    VERSION_COLUMN,
    RelationMeta,
    Snapshot,
)

__all__ = [
    "RelationMeta",
    "Snapshot",
    "RelationRegistry",
    "SchemaProvisioner",
    "VERSION_COLUMN",
    "TIMESTAMP_COLUMN",
    "BOOKKEEPING_COLUMNS",
]
