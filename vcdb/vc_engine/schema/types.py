"""
Core type definitions for VCDB.

This module defines the data model shared by every component:
- RelationMeta: attribute layout and natural key of a versioned relation
- Snapshot: one resolved version of a versioned entity

Invariants:
    - Bookkeeping columns are never part of RelationMeta.columns
    - key_columns is a non-empty subset of columns
    - Snapshot.attributes never contains bookkeeping columns
    - RelationMeta is immutable once registered

Example:
    >>> users = RelationMeta(name="users", columns=("id", "name"), key_columns=("id",))
    >>> users.archive_name
    '__vc__users'
    >>> users.value_columns
    ('name',)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

VC_PREFIX = "__vc__"
VERSION_COLUMN = "__vc__snapshot_version"
TIMESTAMP_COLUMN = "__vc__snapshot_timestamp"
BOOKKEEPING_COLUMNS = (VERSION_COLUMN, TIMESTAMP_COLUMN)


def quote_ident(name: str) -> str:
    """Quote an SQL identifier for SQLite."""
    return '"' + name.replace('"', '""') + '"'


def is_bookkeeping(column: str) -> bool:
    """Whether a column is one of the version control bookkeeping fields."""
    return column in BOOKKEEPING_COLUMNS


@dataclass(frozen=True)
class RelationMeta:
    """Metadata of a relation under version control.

    Resolved once at activation and held in the RelationRegistry.
    The interceptor, reader and restore operator are parameterized
    by this value instead of being generated per relation.

    Attributes:
        name: Live relation name
        columns: Non-bookkeeping attributes in ordinal order
        key_columns: Natural key (the relation's primary key)
        column_types: Declared SQLite type per column
    """

    name: str
    columns: tuple[str, ...]
    key_columns: tuple[str, ...]
    column_types: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Relation name must not be empty")
        if self.name.startswith(VC_PREFIX):
            raise ValueError(f"Relation '{self.name}' is an archive relation")
        if not self.key_columns:
            raise ValueError(f"Relation '{self.name}' has no key columns")
        bookkeeping = [c for c in self.columns if is_bookkeeping(c)]
        if bookkeeping:
            raise ValueError(f"Bookkeeping columns in attribute list: {bookkeeping}")
        missing = [c for c in self.key_columns if c not in self.columns]
        if missing:
            raise ValueError(f"Key columns {missing} not in relation '{self.name}'")

    @property
    def archive_name(self) -> str:
        """Name of the paired snapshot store relation."""
        return VC_PREFIX + self.name

    @property
    def value_columns(self) -> tuple[str, ...]:
        """Non-key, non-bookkeeping attributes."""
        return tuple(c for c in self.columns if c not in self.key_columns)

    def has_column(self, column: str) -> bool:
        return column in self.columns

    def key_of(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Extract the natural key from a row."""
        return {c: row[c] for c in self.key_columns}

    def attributes_of(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Extract non-bookkeeping attributes from a row."""
        return {c: row[c] for c in self.columns if c in row.keys()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "key_columns": list(self.key_columns),
            "column_types": dict(self.column_types),
        }


@dataclass(frozen=True)
class Snapshot:
    """One version of a versioned entity.

    Attributes:
        relation: Relation name
        key: Natural key values
        version: Version number (1-based)
        timestamp: Time the version became current (Unix ms)
        attributes: Attribute values, bookkeeping fields excluded
        archived: True if resolved from the snapshot store, False if live
    """

    relation: str
    key: dict[str, Any]
    version: int
    timestamp: int
    attributes: dict[str, Any]
    archived: bool

    @classmethod
    def from_row(cls, meta: RelationMeta, row: Mapping[str, Any], archived: bool) -> Snapshot:
        return cls(
            relation=meta.name,
            key=meta.key_of(row),
            version=row[VERSION_COLUMN],
            timestamp=row[TIMESTAMP_COLUMN],
            attributes=meta.attributes_of(row),
            archived=archived,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "relation": self.relation,
            "key": dict(self.key),
            "version": self.version,
            "timestamp": self.timestamp,
            "attributes": dict(self.attributes),
            "archived": self.archived,
        }
