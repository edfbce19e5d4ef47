"""
Versioned SQLite store for VCDB.

VersionedStore is the programmatic surface of the engine. It owns connection
setup and transaction boundaries and wires the generic components together:

    insert/update/delete -> MutationInterceptor -> SnapshotStore + live relation
    get_version/history  -> VersionReader
    generate_diff        -> DiffGenerator (two VersionReader calls)
    restore_version      -> RestoreOperator (VersionReader + MutationInterceptor)

Invariants:
    - Every public operation runs inside exactly one SQLite transaction
    - Writes open BEGIN IMMEDIATE so concurrent version allocation is serialized
    - Any error rolls the whole transaction back and propagates unchanged
    - Relation metadata comes from the registry, filled at activation or discovery

How to change safely:
    - Keep all writes to versioned relations inside VersionSession
    - Use a file-backed database; each operation opens its own connection

Example:
    >>> store = VersionedStore("/var/lib/vcdb/app.sqlite3")
    >>> await store.open()
    >>> await store.activate("users")
    >>> await store.insert("users", {"id": 1, "name": "x"})
    >>> await store.update("users", {"id": 1}, {"name": "y"})
    >>> (await store.get_version("users", {"id": 1}, 1)).attributes
    {'id': 1, 'name': 'x'}
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from .apply.interceptor import MutationInterceptor, UpdateResult, now_ms
from .apply.restore import RestoreOperator
from .archive.snapshot_store import SnapshotStore
from .config import VersionControlSettings
from .query.diff import DiffGenerator
from .query.reader import VersionReader
from .schema.provisioner import SchemaProvisioner
from .schema.registry import RelationRegistry
from .schema.types import RelationMeta, Snapshot, quote_ident
from .selector import Selector, SelectorLike, as_selector

logger = logging.getLogger(__name__)


class VersionSession:
    """Version control operations bound to one open transaction.

    Obtained from VersionedStore.transaction(). Every call shares the
    session's transaction, so several reads and writes commit or roll
    back together.
    """

    def __init__(self, conn: sqlite3.Connection, store: VersionedStore) -> None:
        self.conn = conn
        self.registry = store.registry
        self._interceptor = store.interceptor
        self._reader = store.reader
        self._diff = store.diff
        self._restore = store.restore

    def _resolve(self, relation: str, selector: SelectorLike) -> tuple[RelationMeta, Selector]:
        meta = self.registry.get(relation)
        resolved = as_selector(selector)
        resolved.validate(meta)
        return meta, resolved

    def insert(self, relation: str, values: Mapping[str, Any]) -> Snapshot:
        return self._interceptor.insert(self.conn, self.registry.get(relation), values)

    def update(
        self, relation: str, selector: SelectorLike, changes: Mapping[str, Any]
    ) -> UpdateResult:
        meta, resolved = self._resolve(relation, selector)
        return self._interceptor.update(self.conn, meta, resolved, changes)

    def delete(self, relation: str, selector: SelectorLike) -> int:
        meta, resolved = self._resolve(relation, selector)
        return self._interceptor.delete(self.conn, meta, resolved)

    def get_version(self, relation: str, selector: SelectorLike, version: int) -> Snapshot:
        meta, resolved = self._resolve(relation, selector)
        return self._reader.get_version(self.conn, meta, resolved, version)

    def current(self, relation: str, selector: SelectorLike) -> Snapshot | None:
        meta, resolved = self._resolve(relation, selector)
        return self._reader.current(self.conn, meta, resolved)

    def history(self, relation: str, selector: SelectorLike) -> list[Snapshot]:
        meta, resolved = self._resolve(relation, selector)
        return self._reader.history(self.conn, meta, resolved)

    def generate_diff(
        self,
        relation: str,
        selector: SelectorLike,
        version_a: int,
        version_b: int,
        symmetric: bool = False,
    ) -> dict[str, Any]:
        meta, resolved = self._resolve(relation, selector)
        return self._diff.generate_diff(
            self.conn, meta, resolved, version_a, version_b, symmetric=symmetric
        )

    def restore_version(self, relation: str, selector: SelectorLike, version: int) -> Snapshot:
        meta, resolved = self._resolve(relation, selector)
        return self._restore.restore_version(self.conn, meta, resolved, version)


class VersionedStore:
    """SQLite store with transparent row version control.

    Thread safety:
        Each operation creates its own connection.
        Writers are serialized in-process by an asyncio lock and
        across processes by SQLite's BEGIN IMMEDIATE write lock.
    """

    def __init__(
        self,
        database_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
        drop_archive_on_deactivate: bool = True,
        excluded_relations: Iterable[str] = (),
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the versioned store.

        Args:
            database_path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
            drop_archive_on_deactivate: Default for deactivate(drop_archive=None)
            excluded_relations: Default exclusion list for activate_all/deactivate_all
            clock: Source of bookkeeping timestamps (Unix ms)
        """
        self.database_path = Path(database_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self.drop_archive_on_deactivate = drop_archive_on_deactivate
        self.excluded_relations = tuple(excluded_relations)

        self.registry = RelationRegistry()
        self.provisioner = SchemaProvisioner(self.registry)
        self.snapshots = SnapshotStore()
        self.interceptor = MutationInterceptor(self.snapshots, clock=clock)
        self.reader = VersionReader(self.snapshots)
        self.diff = DiffGenerator(self.reader)
        self.restore = RestoreOperator(self.reader, self.interceptor)

        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: VersionControlSettings | None = None) -> VersionedStore:
        """Create a store from settings (loaded from the environment if omitted)."""
        settings = settings or VersionControlSettings()
        return cls(
            settings.database_path,
            wal_mode=settings.wal_mode,
            busy_timeout_ms=settings.busy_timeout_ms,
            cache_size_pages=settings.cache_size_pages,
            drop_archive_on_deactivate=settings.drop_archive_on_deactivate,
            excluded_relations=settings.excluded_relations,
        )

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.database_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            conn.execute(f"PRAGMA cache_size = {int(self.cache_size_pages)}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    @contextmanager
    def transaction(self) -> Iterator[VersionSession]:
        """Run several operations in one write transaction.

        Example:
            >>> with store.transaction() as session:
            ...     session.update("users", {"id": 1}, {"name": "z"})
            ...     session.generate_diff("users", {"id": 1}, 1, 3)
        """
        with self._transaction() as conn:
            yield VersionSession(conn, self)

    async def open(self) -> list[RelationMeta]:
        """Register relations already under version control in the database."""
        async with self._lock:
            with self._transaction(write=False) as conn:
                return self.provisioner.discover(conn)

    async def activate(self, relation: str) -> RelationMeta:
        """Put a relation under version control."""
        async with self._lock:
            with self._transaction() as conn:
                return self.provisioner.activate(conn, relation)

    async def deactivate(self, relation: str, drop_archive: bool | None = None) -> None:
        """Remove version control from a relation."""
        if drop_archive is None:
            drop_archive = self.drop_archive_on_deactivate
        async with self._lock:
            with self._transaction() as conn:
                self.provisioner.deactivate(conn, relation, drop_archive=drop_archive)

    async def activate_all(self, exclude: Iterable[str] | None = None) -> list[RelationMeta]:
        """Put every base relation except the excluded ones under version control."""
        excluded = self.excluded_relations if exclude is None else tuple(exclude)
        async with self._lock:
            with self._transaction() as conn:
                return self.provisioner.activate_all(conn, exclude=excluded)

    async def deactivate_all(
        self,
        drop_archive: bool | None = None,
        exclude: Iterable[str] | None = None,
    ) -> list[str]:
        """Remove version control from every base relation except the excluded ones."""
        if drop_archive is None:
            drop_archive = self.drop_archive_on_deactivate
        excluded = self.excluded_relations if exclude is None else tuple(exclude)
        async with self._lock:
            with self._transaction() as conn:
                return self.provisioner.deactivate_all(
                    conn, drop_archive=drop_archive, exclude=excluded
                )

    def relations(self) -> list[RelationMeta]:
        """Relations currently under version control."""
        return list(self.registry.relations())

    async def insert(self, relation: str, values: Mapping[str, Any]) -> Snapshot:
        """Insert a new entity at version 1."""
        async with self._lock:
            with self.transaction() as session:
                return session.insert(relation, values)

    async def update(
        self, relation: str, selector: SelectorLike, changes: Mapping[str, Any]
    ) -> UpdateResult:
        """Update matching entities; unchanged rows keep their version."""
        async with self._lock:
            with self.transaction() as session:
                return session.update(relation, selector, changes)

    async def delete(self, relation: str, selector: SelectorLike) -> int:
        """Archive and delete matching entities."""
        async with self._lock:
            with self.transaction() as session:
                return session.delete(relation, selector)

    async def get_version(self, relation: str, selector: SelectorLike, version: int) -> Snapshot:
        """Fetch one version of an entity.

        Raises:
            InvalidVersionError: If version < 1
            NotFoundError: If no store holds the version
        """
        with self._transaction(write=False) as conn:
            return VersionSession(conn, self).get_version(relation, selector, version)

    async def history(self, relation: str, selector: SelectorLike) -> list[Snapshot]:
        """All versions of an entity, oldest first."""
        with self._transaction(write=False) as conn:
            return VersionSession(conn, self).history(relation, selector)

    async def generate_diff(
        self,
        relation: str,
        selector: SelectorLike,
        version_a: int,
        version_b: int,
        symmetric: bool = False,
    ) -> dict[str, Any]:
        """Diff two versions of an entity; both reads share one transaction.

        Raises:
            VersionNotFoundError: If either version cannot be resolved
        """
        with self._transaction(write=False) as conn:
            return VersionSession(conn, self).generate_diff(
                relation, selector, version_a, version_b, symmetric=symmetric
            )

    async def restore_version(
        self, relation: str, selector: SelectorLike, version: int
    ) -> Snapshot:
        """Make a past version current again as a new version.

        Raises:
            VersionNotFoundError: If the version cannot be resolved
            EntityDeletedError: If the entity has no live row
        """
        async with self._lock:
            with self.transaction() as session:
                return session.restore_version(relation, selector, version)

    async def get_stats(self) -> dict[str, dict[str, int]]:
        """Live and archived row counts per versioned relation."""
        stats = {}
        with self._transaction(write=False) as conn:
            for meta in self.registry.relations():
                cursor = conn.execute(f"SELECT COUNT(*) FROM {quote_ident(meta.name)}")
                live = cursor.fetchone()[0]
                stats[meta.name] = {
                    "live": live,
                    "archived": self.snapshots.count(conn, meta),
                }
        return stats
