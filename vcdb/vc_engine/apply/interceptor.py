"""
Mutation interceptor for VCDB.

Every insert, update and delete against a versioned relation goes through the
MutationInterceptor. It allocates version numbers and writes prior states to
the snapshot store, then applies the change to the live relation.

State machine per live row:
    INSERT  -> version = 1, timestamp = now, nothing archived
    UPDATE  -> attributes unchanged (after type affinity): no-op
               (no bump, no timestamp, no archive)
               attributes changed:   archive (key, old version),
                                     version = old + 1, timestamp = now
    DELETE  -> archive (key, current version), remove live row

Invariants:
    - Per key, versions are contiguous from 1 with no gaps or reuse
    - version = current lives only in the live relation,
      version < current lives only in the archive
    - Archive write and live write share the caller's transaction
    - Bookkeeping values supplied by callers are ignored

How to change safely:
    - Never write to a versioned relation without going through this class
    - Run inside BEGIN IMMEDIATE so the version read-modify-write is serialized
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..archive.snapshot_store import SnapshotStore
from ..errors import ConstraintViolationError, ImmutableKeyError, UnknownAttributeError
from ..schema.types import (
    TIMESTAMP_COLUMN,
    VERSION_COLUMN,
    RelationMeta,
    Snapshot,
    is_bookkeeping,
    quote_ident,
)
from ..selector import Selector

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class UpdateResult:
    """Outcome of an intercepted update.

    Attributes:
        matched: Live rows matched by the selector
        changed: Rows that received a new version
        unchanged: Rows skipped by the no-op guard
        snapshots: Current state of every matched row after the update
    """

    matched: int = 0
    changed: int = 0
    unchanged: int = 0
    snapshots: list[Snapshot] = field(default_factory=list)


class MutationInterceptor:
    """Generic interceptor parameterized by RelationMeta.

    Example:
        >>> interceptor = MutationInterceptor(SnapshotStore())
        >>> interceptor.insert(conn, users, {"id": 1, "name": "x"}).version
        1
        >>> interceptor.update(conn, users, Selector.from_mapping({"id": 1}), {"name": "y"}).changed
        1
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.snapshots = snapshots
        self.clock = clock

    def _attributes(self, meta: RelationMeta, values: Mapping[str, Any]) -> dict[str, Any]:
        """Drop bookkeeping fields and reject unknown attributes."""
        attributes = {}
        for name, value in values.items():
            if is_bookkeeping(name):
                continue
            if not meta.has_column(name):
                raise UnknownAttributeError(name, meta.name)
            attributes[name] = value
        return attributes

    def insert(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        values: Mapping[str, Any],
    ) -> Snapshot:
        """Insert a new entity at version 1.

        Raises:
            UnknownAttributeError: If a value names an attribute not in the relation
            ConstraintViolationError: If the key already has archived history
        """
        attributes = self._attributes(meta, values)
        attributes[VERSION_COLUMN] = 1
        attributes[TIMESTAMP_COLUMN] = self.clock()

        column_list = ", ".join(quote_ident(c) for c in attributes)
        placeholders = ", ".join("?" for _ in attributes)
        cursor = conn.execute(
            f"INSERT INTO {quote_ident(meta.name)} ({column_list}) VALUES ({placeholders})",
            list(attributes.values()),
        )
        key_values = [attributes.get(c) for c in meta.key_columns]
        if all(v is not None for v in key_values):
            where, params = Selector.from_mapping(meta.key_of(attributes)).to_sql(meta)
        else:
            # Key generated by SQLite (INTEGER PRIMARY KEY given as NULL or omitted)
            where, params = "rowid = ?", [cursor.lastrowid]
        row = conn.execute(
            f"SELECT * FROM {quote_ident(meta.name)} WHERE {where}", params
        ).fetchone()

        # A reused key would collide with its own archived version 1
        if self.snapshots.versions(conn, meta, meta.key_of(row)):
            raise ConstraintViolationError(meta.name, meta.key_of(row), 1)

        logger.debug(
            "Inserted versioned entity",
            extra={"relation": meta.name, "key": meta.key_of(row), "version": 1},
        )
        return Snapshot.from_row(meta, row, archived=False)

    def _differing(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        key: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> list[str]:
        """Columns whose stored value differs from the proposed one.

        Compared in SQL so the column's type affinity applies to the proposed
        value exactly as it would on write ('3' equals 3 in an INTEGER column).
        """
        if not values:
            return []
        names = list(values)
        checks = ", ".join(f"{quote_ident(c)} IS ?" for c in names)
        where, params = Selector.from_mapping(key).to_sql(meta)
        row = conn.execute(
            f"SELECT {checks} FROM {quote_ident(meta.name)} WHERE {where}",
            [values[c] for c in names] + params,
        ).fetchone()
        return [name for name, same in zip(names, row) if not same]

    def update(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        changes: Mapping[str, Any],
    ) -> UpdateResult:
        """Apply changes to every live row matching the selector.

        Raises:
            UnknownAttributeError: If a change names an attribute not in the relation
            ImmutableKeyError: If a change would alter a natural key column
            ConstraintViolationError: If the prior version is already archived
        """
        attributes = self._attributes(meta, changes)
        where, params = selector.to_sql(meta)
        rows = conn.execute(
            f"SELECT * FROM {quote_ident(meta.name)} WHERE {where}", params
        ).fetchall()

        result = UpdateResult(matched=len(rows))
        for row in rows:
            key = meta.key_of(row)
            differing = self._differing(conn, meta, key, attributes)

            if not differing:
                logger.debug(
                    "Entity attributes have not been changed",
                    extra={"relation": meta.name, "key": key, "version": row[VERSION_COLUMN]},
                )
                result.unchanged += 1
                result.snapshots.append(Snapshot.from_row(meta, row, archived=False))
                continue

            changed_keys = [c for c in meta.key_columns if c in differing]
            if changed_keys:
                raise ImmutableKeyError(meta.name, key, changed_keys)

            self.snapshots.write(conn, meta, row)

            new_version = row[VERSION_COLUMN] + 1
            assignments = {
                **{c: attributes[c] for c in differing},
                VERSION_COLUMN: new_version,
                TIMESTAMP_COLUMN: self.clock(),
            }
            key_where, key_params = Selector.from_mapping(key).to_sql(meta)
            conn.execute(
                f"UPDATE {quote_ident(meta.name)} SET "
                + ", ".join(f"{quote_ident(c)} = ?" for c in assignments)
                + f" WHERE {key_where}",
                list(assignments.values()) + key_params,
            )
            stored = conn.execute(
                f"SELECT * FROM {quote_ident(meta.name)} WHERE {key_where}", key_params
            ).fetchone()

            logger.debug(
                "Allocated entity version",
                extra={"relation": meta.name, "key": key, "version": new_version},
            )
            result.changed += 1
            result.snapshots.append(Snapshot.from_row(meta, stored, archived=False))

        return result

    def delete(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
    ) -> int:
        """Archive and remove every live row matching the selector.

        Returns:
            Number of rows deleted from the live relation
        """
        where, params = selector.to_sql(meta)
        rows = conn.execute(
            f"SELECT * FROM {quote_ident(meta.name)} WHERE {where}", params
        ).fetchall()

        for row in rows:
            key = meta.key_of(row)
            self.snapshots.write(conn, meta, row)
            key_where, key_params = Selector.from_mapping(key).to_sql(meta)
            conn.execute(f"DELETE FROM {quote_ident(meta.name)} WHERE {key_where}", key_params)
            logger.debug(
                "Deleted entity, final state moved to the archive",
                extra={"relation": meta.name, "key": key, "version": row[VERSION_COLUMN]},
            )

        return len(rows)
