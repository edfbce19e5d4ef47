"""
Restore operator for VCDB.

Restoring version V writes V's attributes back to the live row as an ordinary
update through the MutationInterceptor. The pre-restore state is archived and
the entity moves to version current + 1; V is never reused and stays
unchanged in the archive.

Invariants:
    - Read and write-back run in the caller's single transaction
    - Deleted entities are never resurrected (EntityDeletedError)
"""

from __future__ import annotations

import logging
import sqlite3

from ..errors import EntityDeletedError, VersionNotFoundError
from ..query.reader import VersionReader
from ..schema.types import RelationMeta, Snapshot
from ..selector import Selector
from .interceptor import MutationInterceptor

logger = logging.getLogger(__name__)


class RestoreOperator:
    """Re-applies historical snapshots as new current versions."""

    def __init__(self, reader: VersionReader, interceptor: MutationInterceptor) -> None:
        self.reader = reader
        self.interceptor = interceptor

    def restore_version(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version: int,
    ) -> Snapshot:
        """Make the content of a past version current again.

        Returns:
            The entity's current snapshot after the restore

        Raises:
            InvalidVersionError: If version < 1
            VersionNotFoundError: If the version cannot be resolved
            EntityDeletedError: If the entity has no live row
        """
        target = self.reader.find_version(conn, meta, selector, version)
        if target is None:
            raise VersionNotFoundError(meta.name, selector, version)

        result = self.interceptor.update(
            conn, meta, Selector.from_mapping(target.key), target.attributes
        )
        if result.matched == 0:
            raise EntityDeletedError(meta.name, selector, version)

        current = result.snapshots[0]
        logger.info(
            "Restored entity version",
            extra={
                "relation": meta.name,
                "key": target.key,
                "restored_from": version,
                "version": current.version,
            },
        )
        return current
