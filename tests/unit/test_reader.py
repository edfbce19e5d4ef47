"""
Unit tests for the version reader.

Tests cover:
- Resolution from the archive and from the live relation
- Invalid and missing versions
- Entity history including deleted entities
"""

import pytest

from vcdb.vc_engine.apply.interceptor import MutationInterceptor
from vcdb.vc_engine.archive.snapshot_store import SnapshotStore
from vcdb.vc_engine.errors import AmbiguousSelectorError, InvalidVersionError, NotFoundError
from vcdb.vc_engine.query.reader import VersionReader
from vcdb.vc_engine.selector import Selector

KEY = Selector.from_mapping({"id": 1})


class TestVersionReader:
    """Tests for VersionReader."""

    @pytest.fixture
    def snapshots(self):
        return SnapshotStore()

    @pytest.fixture
    def reader(self, snapshots):
        return VersionReader(snapshots)

    @pytest.fixture
    def interceptor(self, snapshots, clock):
        return MutationInterceptor(snapshots, clock=clock)

    @pytest.fixture
    def two_versions(self, conn, users, interceptor):
        interceptor.insert(conn, users, {"id": 1, "name": "x"})
        interceptor.update(conn, users, KEY, {"name": "y"})

    def test_archived_version(self, conn, users, reader, two_versions):
        snapshot = reader.get_version(conn, users, KEY, 1)

        assert snapshot.attributes["name"] == "x"
        assert snapshot.version == 1
        assert snapshot.archived is True

    def test_current_version_from_live(self, conn, users, reader, two_versions):
        snapshot = reader.get_version(conn, users, KEY, 2)

        assert snapshot.attributes["name"] == "y"
        assert snapshot.archived is False

    def test_future_version_not_found(self, conn, users, reader, two_versions):
        with pytest.raises(NotFoundError) as exc_info:
            reader.get_version(conn, users, KEY, 3)

        assert exc_info.value.code == "NOT_FOUND"
        assert exc_info.value.version == 3
        assert reader.find_version(conn, users, KEY, 3) is None

    @pytest.mark.parametrize("version", [0, -1])
    def test_invalid_version(self, conn, users, reader, version):
        with pytest.raises(InvalidVersionError, match="greater than 0"):
            reader.get_version(conn, users, KEY, version)

    def test_reader_does_not_write(self, conn, users, reader, two_versions):
        reader.find_version(conn, users, KEY, 7)

        assert conn.execute("SELECT COUNT(*) FROM __vc__users").fetchone()[0] == 1
        assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 1

    def test_selector_on_historical_value(self, conn, users, reader, two_versions):
        """Non-key selectors match the values stored at that version."""
        snapshot = reader.get_version(conn, users, Selector.from_mapping({"name": "x"}), 1)
        assert snapshot.key == {"id": 1}

        with pytest.raises(NotFoundError):
            reader.get_version(conn, users, Selector.from_mapping({"name": "x"}), 2)

    def test_ambiguous_live_selector(self, conn, users, reader, interceptor):
        interceptor.insert(conn, users, {"id": 1, "name": "same"})
        interceptor.insert(conn, users, {"id": 2, "name": "same"})

        with pytest.raises(AmbiguousSelectorError):
            reader.get_version(conn, users, Selector.from_mapping({"name": "same"}), 1)

    def test_history(self, conn, users, reader, interceptor, two_versions):
        history = reader.history(conn, users, KEY)

        assert [(s.version, s.attributes["name"], s.archived) for s in history] == [
            (1, "x", True),
            (2, "y", False),
        ]

    def test_history_of_deleted_entity(self, conn, users, reader, interceptor, two_versions):
        interceptor.delete(conn, users, KEY)

        history = reader.history(conn, users, KEY)

        assert [s.version for s in history] == [1, 2]
        assert all(s.archived for s in history)

    def test_history_unknown_entity(self, conn, users, reader):
        with pytest.raises(NotFoundError, match="No entity"):
            reader.history(conn, users, KEY)
