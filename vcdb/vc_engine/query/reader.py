"""
Version reader for VCDB.

Resolves the content of a versioned entity at a given version. Archived
versions are read from the snapshot store; the current version is read from
the live relation. The reader never writes.

Invariants:
    - Versions below 1 are rejected with InvalidVersionError
    - The snapshot store is probed first, the live relation second
    - A miss in both stores is reported as not found
"""

from __future__ import annotations

import logging
import sqlite3

from ..archive.snapshot_store import SnapshotStore
from ..errors import AmbiguousSelectorError, InvalidVersionError, NotFoundError
from ..schema.types import VERSION_COLUMN, RelationMeta, Snapshot, quote_ident
from ..selector import Selector

logger = logging.getLogger(__name__)


class VersionReader:
    """Reads entity versions across the live relation and its archive."""

    def __init__(self, snapshots: SnapshotStore) -> None:
        self.snapshots = snapshots

    def _live_rows(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version: int | None = None,
    ) -> list[sqlite3.Row]:
        where, params = selector.to_sql(meta)
        query = f"SELECT * FROM {quote_ident(meta.name)} WHERE {where}"
        if version is not None:
            query += f" AND {quote_ident(VERSION_COLUMN)} = ?"
            params.append(version)
        return conn.execute(query + " LIMIT 2", params).fetchall()

    def find_version(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version: int,
    ) -> Snapshot | None:
        """Resolve a version, returning None if neither store holds it.

        Raises:
            InvalidVersionError: If version < 1
            AmbiguousSelectorError: If the selector matches several entities
        """
        if version < 1:
            raise InvalidVersionError(version)

        row = self.snapshots.read(conn, meta, selector, version)
        if row is not None:
            return Snapshot.from_row(meta, row, archived=True)

        # The current version is never archived; look in the live relation
        rows = self._live_rows(conn, meta, selector, version)
        if len(rows) > 1:
            raise AmbiguousSelectorError(meta.name, selector, len(rows))
        if rows:
            return Snapshot.from_row(meta, rows[0], archived=False)
        return None

    def get_version(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version: int,
    ) -> Snapshot:
        """Resolve a version.

        Raises:
            InvalidVersionError: If version < 1
            NotFoundError: If neither store holds the version
        """
        snapshot = self.find_version(conn, meta, selector, version)
        if snapshot is None:
            raise NotFoundError(
                f"No version {version} of ({selector}) in relation '{meta.name}'",
                relation=meta.name,
                selector=selector,
                version=version,
            )
        return snapshot

    def current(
        self, conn: sqlite3.Connection, meta: RelationMeta, selector: Selector
    ) -> Snapshot | None:
        """The live version of the entity matching a selector, if any."""
        rows = self._live_rows(conn, meta, selector)
        if len(rows) > 1:
            raise AmbiguousSelectorError(meta.name, selector, len(rows))
        return Snapshot.from_row(meta, rows[0], archived=False) if rows else None

    def history(
        self, conn: sqlite3.Connection, meta: RelationMeta, selector: Selector
    ) -> list[Snapshot]:
        """Every known version of one entity, oldest first.

        The entity is identified by the live row matching the selector, or
        failing that by archived rows matching it (a deleted entity).

        Raises:
            NotFoundError: If no live or archived row matches
            AmbiguousSelectorError: If rows of several entities match
        """
        live = self.current(conn, meta, selector)
        if live is not None:
            key = live.key
        else:
            keys = self.snapshots.keys_matching(conn, meta, selector)
            if not keys:
                raise NotFoundError(
                    f"No entity matching ({selector}) in relation '{meta.name}'",
                    relation=meta.name,
                    selector=selector,
                )
            if len(keys) > 1:
                raise AmbiguousSelectorError(meta.name, selector, len(keys))
            key = keys[0]

        versions = [
            Snapshot.from_row(meta, row, archived=True)
            for row in self.snapshots.history(conn, meta, key)
        ]
        if live is not None:
            versions.append(live)
        return versions
