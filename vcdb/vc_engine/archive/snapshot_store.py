"""
Snapshot store for VCDB.

Append-only archive of historical entity versions. Each versioned relation
has a paired archive relation named __vc__<relation> with the same attribute
layout plus the bookkeeping columns, keyed by (natural key, version).

Invariants:
    - Snapshots are immutable once written
    - (key, version) is unique; a duplicate write raises ConstraintViolationError
    - The currently live version of an entity is never archived
    - No update or delete operation is exposed

How to change safely:
    - All writes go through write(); never INSERT OR REPLACE into an archive
    - Call only inside a transaction opened by the store so a failed write
      rolls back the live-row change with it
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping

from ..errors import AmbiguousSelectorError, ConstraintViolationError
from ..selector import Selector
from ..schema.types import (
    BOOKKEEPING_COLUMNS,
    VERSION_COLUMN,
    RelationMeta,
    quote_ident,
)

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Append-only archive over the __vc__ relations of one database.

    The store holds no connection; every method runs on the caller's
    connection so that it shares the caller's transaction.
    """

    def write(self, conn: sqlite3.Connection, meta: RelationMeta, row: Mapping[str, Any]) -> None:
        """Archive one version of an entity.

        Args:
            conn: Connection with an open transaction
            meta: Relation metadata
            row: Full row including bookkeeping columns

        Raises:
            ConstraintViolationError: If (key, version) is already archived
        """
        columns = meta.columns + BOOKKEEPING_COLUMNS
        column_list = ", ".join(quote_ident(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        try:
            conn.execute(
                f"INSERT INTO {quote_ident(meta.archive_name)} ({column_list}) "
                f"VALUES ({placeholders})",
                [row[c] for c in columns],
            )
        except sqlite3.IntegrityError as e:
            message = str(e)
            if "UNIQUE" in message or "PRIMARY KEY" in message:
                raise ConstraintViolationError(
                    meta.name, meta.key_of(row), row[VERSION_COLUMN]
                ) from e
            raise

        logger.debug(
            "Archived snapshot",
            extra={
                "relation": meta.name,
                "key": meta.key_of(row),
                "version": row[VERSION_COLUMN],
            },
        )

    def read(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version: int,
    ) -> sqlite3.Row | None:
        """Read the archived row matching a selector at a version.

        Returns:
            The archived row, or None if not archived

        Raises:
            AmbiguousSelectorError: If rows of several entities match
        """
        where, params = selector.to_sql(meta)
        cursor = conn.execute(
            f"SELECT * FROM {quote_ident(meta.archive_name)} "
            f"WHERE {where} AND {quote_ident(VERSION_COLUMN)} = ? LIMIT 2",
            [*params, version],
        )
        rows = cursor.fetchall()
        if len(rows) > 1:
            raise AmbiguousSelectorError(meta.name, selector, len(rows))
        return rows[0] if rows else None

    def history(
        self, conn: sqlite3.Connection, meta: RelationMeta, key: Mapping[str, Any]
    ) -> list[sqlite3.Row]:
        """All archived rows of one entity, oldest first."""
        where, params = Selector.from_mapping(key).to_sql(meta)
        cursor = conn.execute(
            f"SELECT * FROM {quote_ident(meta.archive_name)} "
            f"WHERE {where} ORDER BY {quote_ident(VERSION_COLUMN)}",
            params,
        )
        return cursor.fetchall()

    def versions(
        self, conn: sqlite3.Connection, meta: RelationMeta, key: Mapping[str, Any]
    ) -> list[int]:
        """Archived version numbers of one entity, ascending."""
        return [row[VERSION_COLUMN] for row in self.history(conn, meta, key)]

    def keys_matching(
        self, conn: sqlite3.Connection, meta: RelationMeta, selector: Selector
    ) -> list[dict[str, Any]]:
        """Distinct natural keys with at least one archived version matching a selector."""
        where, params = selector.to_sql(meta)
        key_list = ", ".join(quote_ident(c) for c in meta.key_columns)
        cursor = conn.execute(
            f"SELECT DISTINCT {key_list} FROM {quote_ident(meta.archive_name)} WHERE {where}",
            params,
        )
        return [meta.key_of(row) for row in cursor.fetchall()]

    def count(self, conn: sqlite3.Connection, meta: RelationMeta) -> int:
        cursor = conn.execute(f"SELECT COUNT(*) FROM {quote_ident(meta.archive_name)}")
        return cursor.fetchone()[0]

