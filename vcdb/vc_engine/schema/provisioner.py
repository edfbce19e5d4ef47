"""
Schema provisioner for VCDB (SQLite).

Creates and removes the structures version control needs for a relation:
- The archive relation __vc__<relation>, mirroring the relation's attributes
  plus the bookkeeping columns, keyed by (primary key, version)
- The bookkeeping columns on the live relation

Provisioning runs once per relation at activation and once at deactivation.
The resolved RelationMeta is registered in the RelationRegistry so the
generic interceptor never has to introspect the catalog on the write path.

Invariants:
    - A relation without a primary key cannot be versioned
    - Activation is idempotent for a relation that already carries the structures
    - Rows present at activation become version 1 with no archive entries

How to change safely:
    - Run inside the store's transaction; SQLite DDL is transactional
    - Never rename the bookkeeping columns; existing archives depend on them
"""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Iterable

from ..errors import ProvisioningError
from .registry import RelationRegistry
from .types import (
    BOOKKEEPING_COLUMNS,
    TIMESTAMP_COLUMN,
    VC_PREFIX,
    VERSION_COLUMN,
    RelationMeta,
    quote_ident,
)

logger = logging.getLogger(__name__)


class SchemaProvisioner:
    """Activates and deactivates version control on SQLite relations.

    Example:
        >>> provisioner = SchemaProvisioner(registry)
        >>> meta = provisioner.activate(conn, "users")
        >>> meta.archive_name
        '__vc__users'
    """

    def __init__(self, registry: RelationRegistry) -> None:
        self.registry = registry

    def _table_exists(self, conn: sqlite3.Connection, name: str) -> bool:
        cursor = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        )
        return cursor.fetchone() is not None

    def _table_info(self, conn: sqlite3.Connection, name: str) -> list[sqlite3.Row]:
        return conn.execute(f"PRAGMA table_info({quote_ident(name)})").fetchall()

    def base_relations(self, conn: sqlite3.Connection) -> list[str]:
        """User relations of the database, archives and SQLite internals excluded."""
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite#_%' ESCAPE '#' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall() if not row[0].startswith(VC_PREFIX)]

    def describe(self, conn: sqlite3.Connection, relation: str) -> RelationMeta:
        """Build RelationMeta from the live relation's catalog entry.

        Raises:
            ProvisioningError: If the relation is missing or has no primary key
        """
        if relation.startswith(VC_PREFIX):
            raise ProvisioningError(f"'{relation}' is an archive relation", relation)
        if not self._table_exists(conn, relation):
            raise ProvisioningError(f"Relation '{relation}' does not exist", relation)

        info = [
            row
            for row in self._table_info(conn, relation)
            if row["name"] not in BOOKKEEPING_COLUMNS
        ]
        key_columns = tuple(
            row["name"] for row in sorted((r for r in info if r["pk"]), key=lambda r: r["pk"])
        )
        if not key_columns:
            raise ProvisioningError(
                f"Relation '{relation}' has no primary key; a natural key is required",
                relation,
            )

        return RelationMeta(
            name=relation,
            columns=tuple(row["name"] for row in info),
            key_columns=key_columns,
            column_types={row["name"]: row["type"] for row in info},
        )

    def _create_archive(self, conn: sqlite3.Connection, meta: RelationMeta) -> None:
        info = {row["name"]: row for row in self._table_info(conn, meta.name)}
        definitions = []
        for column in meta.columns:
            definition = quote_ident(column)
            if meta.column_types.get(column):
                definition += f" {meta.column_types[column]}"
            if info[column]["notnull"]:
                definition += " NOT NULL"
            definitions.append(definition)
        definitions.append(f"{quote_ident(VERSION_COLUMN)} INTEGER NOT NULL")
        definitions.append(f"{quote_ident(TIMESTAMP_COLUMN)} INTEGER NOT NULL")
        primary_key = ", ".join(quote_ident(c) for c in meta.key_columns + (VERSION_COLUMN,))
        definitions.append(f"PRIMARY KEY ({primary_key})")

        conn.execute(
            f"CREATE TABLE {quote_ident(meta.archive_name)} (\n    "
            + ",\n    ".join(definitions)
            + "\n)"
        )
        logger.info(
            "Created archive relation",
            extra={"relation": meta.name, "archive": meta.archive_name},
        )

    def _add_bookkeeping(self, conn: sqlite3.Connection, meta: RelationMeta) -> None:
        existing = {row["name"] for row in self._table_info(conn, meta.name)}
        if VERSION_COLUMN not in existing:
            conn.execute(
                f"ALTER TABLE {quote_ident(meta.name)} "
                f"ADD COLUMN {quote_ident(VERSION_COLUMN)} INTEGER NOT NULL DEFAULT 1"
            )
        if TIMESTAMP_COLUMN not in existing:
            # SQLite only accepts constant defaults on ADD COLUMN
            conn.execute(
                f"ALTER TABLE {quote_ident(meta.name)} "
                f"ADD COLUMN {quote_ident(TIMESTAMP_COLUMN)} INTEGER NOT NULL DEFAULT 0"
            )
            conn.execute(
                f"UPDATE {quote_ident(meta.name)} SET {quote_ident(TIMESTAMP_COLUMN)} = ?",
                (int(time.time() * 1000),),
            )

    def activate(self, conn: sqlite3.Connection, relation: str) -> RelationMeta:
        """Put a relation under version control and register it.

        Raises:
            ProvisioningError: If the relation cannot be versioned
        """
        meta = self.describe(conn, relation)
        if not self._table_exists(conn, meta.archive_name):
            self._create_archive(conn, meta)
        self._add_bookkeeping(conn, meta)

        if meta.name not in self.registry:
            self.registry.register(meta)

        logger.info(
            "Version control activated",
            extra={"relation": relation, "key": list(meta.key_columns)},
        )
        return meta

    def deactivate(
        self, conn: sqlite3.Connection, relation: str, drop_archive: bool = True
    ) -> None:
        """Remove bookkeeping columns and, optionally, the archive relation."""
        if not self._table_exists(conn, relation):
            raise ProvisioningError(f"Relation '{relation}' does not exist", relation)

        existing = {row["name"] for row in self._table_info(conn, relation)}
        for column in BOOKKEEPING_COLUMNS:
            if column in existing:
                conn.execute(
                    f"ALTER TABLE {quote_ident(relation)} DROP COLUMN {quote_ident(column)}"
                )

        if drop_archive:
            conn.execute(f"DROP TABLE IF EXISTS {quote_ident(VC_PREFIX + relation)}")

        if relation in self.registry:
            self.registry.unregister(relation)

        logger.info(
            "Version control removed",
            extra={"relation": relation, "drop_archive": drop_archive},
        )

    def activate_all(
        self, conn: sqlite3.Connection, exclude: Iterable[str] = ()
    ) -> list[RelationMeta]:
        """Activate every base relation except the excluded ones."""
        excluded = set(exclude)
        if excluded:
            logger.info(
                "Relations excluded from version control",
                extra={"excluded": sorted(excluded)},
            )
        return [
            self.activate(conn, relation)
            for relation in self.base_relations(conn)
            if relation not in excluded
        ]

    def deactivate_all(
        self,
        conn: sqlite3.Connection,
        drop_archive: bool = True,
        exclude: Iterable[str] = (),
    ) -> list[str]:
        """Deactivate every base relation except the excluded ones."""
        excluded = set(exclude)
        relations = [r for r in self.base_relations(conn) if r not in excluded]
        for relation in relations:
            self.deactivate(conn, relation, drop_archive=drop_archive)
        return relations

    def discover(self, conn: sqlite3.Connection) -> list[RelationMeta]:
        """Register relations that already carry version control structures."""
        found = []
        for relation in self.base_relations(conn):
            columns = {row["name"] for row in self._table_info(conn, relation)}
            if VERSION_COLUMN not in columns:
                continue
            if not self._table_exists(conn, VC_PREFIX + relation):
                continue
            meta = self.describe(conn, relation)
            if meta.name not in self.registry:
                self.registry.register(meta)
            found.append(meta)
        if found:
            logger.info(
                "Discovered versioned relations",
                extra={"relations": [m.name for m in found]},
            )
        return found
