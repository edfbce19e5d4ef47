"""
VCDB - row version control for SQLite.

This package implements a temporal-versioning layer in front of a relational
store. Every mutation to a versioned row is captured as an immutable
snapshot, and any past snapshot can be fetched, diffed or restored.

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌─────────────────┐
    │   Client    │────▶│  VersionedStore  │────▶│    Mutation     │
    │             │     │  (transactions)  │     │   Interceptor   │
    └─────────────┘     └────────┬─────────┘     └────────┬────────┘
                                 │                        │
                    ┌────────────┼────────────┐           ▼
                    ▼            ▼            ▼     ┌───────────┐
               ┌────────┐   ┌────────┐   ┌────────┐ │ Snapshot  │
               │ Reader │   │  Diff  │   │Restore │ │  Store    │
               └────────┘   └────────┘   └────────┘ │ (__vc__*) │
                                                    └───────────┘

Invariants:
    - Per key, versions are contiguous from 1 with no gaps or reuse
    - The current version lives only in the live relation,
      older versions only in the __vc__ archive relation
    - Archived snapshots are never rewritten
    - Every operation runs inside one SQLite transaction

How to change safely:
    - Route every write to a versioned relation through VersionedStore
    - Add relation metadata only through the SchemaProvisioner

Version: see _version.py.
"""

from ._version import __version__
from .apply import MutationInterceptor, RestoreOperator, UpdateResult
from .archive import SnapshotStore
from .config import VersionControlSettings, setup_logging
from .errors import (
    AmbiguousSelectorError,
    ConstraintViolationError,
    DuplicateRegistrationError,
    EntityDeletedError,
    ImmutableKeyError,
    InvalidVersionError,
    NotFoundError,
    ProvisioningError,
    RelationNotVersionedError,
    SelectorError,
    UnknownAttributeError,
    VersionControlError,
    VersionNotFoundError,
)
from .query import DiffGenerator, VersionReader, diff_attributes, symmetric_diff
from .schema import RelationMeta, RelationRegistry, SchemaProvisioner, Snapshot
from .selector import Condition, Selector
from .store import VersionedStore, VersionSession

__all__ = [
    "__version__",
    # Store
    "VersionedStore",
    "VersionSession",
    "VersionControlSettings",
    "setup_logging",
    # Components
    "MutationInterceptor",
    "UpdateResult",
    "RestoreOperator",
    "SnapshotStore",
    "VersionReader",
    "DiffGenerator",
    "diff_attributes",
    "symmetric_diff",
    # Schema
    "RelationMeta",
    "RelationRegistry",
    "SchemaProvisioner",
    "Snapshot",
    "Condition",
    "Selector",
    # Errors
    "VersionControlError",
    "InvalidVersionError",
    "NotFoundError",
    "VersionNotFoundError",
    "EntityDeletedError",
    "ConstraintViolationError",
    "SelectorError",
    "UnknownAttributeError",
    "AmbiguousSelectorError",
    "ImmutableKeyError",
    "RelationNotVersionedError",
    "DuplicateRegistrationError",
    "ProvisioningError",
]
