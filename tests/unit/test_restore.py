"""
Unit tests for the restore operator.

Tests cover:
- Restore allocating a new version through the interceptor
- Archive immutability of the restored version
- Missing versions and deleted entities
"""

import pytest

from vcdb.vc_engine.apply.interceptor import MutationInterceptor
from vcdb.vc_engine.apply.restore import RestoreOperator
from vcdb.vc_engine.archive.snapshot_store import SnapshotStore
from vcdb.vc_engine.errors import EntityDeletedError, VersionNotFoundError
from vcdb.vc_engine.query.reader import VersionReader
from vcdb.vc_engine.schema.types import VERSION_COLUMN
from vcdb.vc_engine.selector import Selector

KEY = Selector.from_mapping({"id": 1})


class TestRestoreOperator:
    """Tests for RestoreOperator."""

    @pytest.fixture
    def snapshots(self):
        return SnapshotStore()

    @pytest.fixture
    def interceptor(self, snapshots, clock):
        return MutationInterceptor(snapshots, clock=clock)

    @pytest.fixture
    def reader(self, snapshots):
        return VersionReader(snapshots)

    @pytest.fixture
    def restorer(self, reader, interceptor):
        return RestoreOperator(reader, interceptor)

    @pytest.fixture
    def three_versions(self, conn, users, interceptor):
        interceptor.insert(conn, users, {"id": 1, "name": "a", "email": "a@example.com"})
        interceptor.update(conn, users, KEY, {"name": "b"})
        interceptor.update(conn, users, KEY, {"name": "c", "email": None})

    def test_restore_creates_new_version(self, conn, users, restorer, reader, three_versions):
        restored = restorer.restore_version(conn, users, KEY, 1)

        assert restored.version == 4
        assert restored.attributes == {"id": 1, "name": "a", "email": "a@example.com"}

        live = conn.execute("SELECT * FROM users WHERE id = 1").fetchone()
        assert live[VERSION_COLUMN] == 4
        assert live["name"] == "a"

        # The restored version is untouched and the pre-restore state is archived
        assert reader.get_version(conn, users, KEY, 1).attributes["name"] == "a"
        assert reader.get_version(conn, users, KEY, 3).attributes["name"] == "c"
        assert reader.get_version(conn, users, KEY, 3).archived is True

    def test_restore_current_is_noop(self, conn, users, restorer, three_versions):
        restored = restorer.restore_version(conn, users, KEY, 3)

        assert restored.version == 3
        assert conn.execute("SELECT COUNT(*) FROM __vc__users").fetchone()[0] == 2

    def test_restore_missing_version(self, conn, users, restorer, three_versions):
        with pytest.raises(VersionNotFoundError, match="version = 8"):
            restorer.restore_version(conn, users, KEY, 8)

    def test_restore_deleted_entity(self, conn, users, restorer, interceptor, three_versions):
        """Deleted entities are not resurrected."""
        interceptor.delete(conn, users, KEY)

        with pytest.raises(EntityDeletedError) as exc_info:
            restorer.restore_version(conn, users, KEY, 1)

        assert exc_info.value.code == "ENTITY_DELETED"
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 0
