"""
Unit tests for the append-only snapshot store.

Tests cover:
- Writing and reading archived versions
- Immutability of (key, version)
- Per-entity history ordering
"""

import pytest

from vcdb.vc_engine.archive.snapshot_store import SnapshotStore
from vcdb.vc_engine.errors import AmbiguousSelectorError, ConstraintViolationError
from vcdb.vc_engine.schema.types import TIMESTAMP_COLUMN, VERSION_COLUMN
from vcdb.vc_engine.selector import Selector


def archived_row(key, name, version):
    return {
        "id": key,
        "name": name,
        "email": None,
        VERSION_COLUMN: version,
        TIMESTAMP_COLUMN: 1000 + version,
    }


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    @pytest.fixture
    def snapshots(self):
        return SnapshotStore()

    def test_write_then_read(self, conn, users, snapshots):
        snapshots.write(conn, users, archived_row(1, "x", 1))

        row = snapshots.read(conn, users, Selector.from_mapping({"id": 1}), 1)

        assert row["name"] == "x"
        assert row[VERSION_COLUMN] == 1
        assert row[TIMESTAMP_COLUMN] == 1001

    def test_read_missing_returns_none(self, conn, users, snapshots):
        snapshots.write(conn, users, archived_row(1, "x", 1))

        assert snapshots.read(conn, users, Selector.from_mapping({"id": 1}), 2) is None
        assert snapshots.read(conn, users, Selector.from_mapping({"id": 2}), 1) is None

    def test_duplicate_version_rejected(self, conn, users, snapshots):
        """A (key, version) pair is written at most once."""
        snapshots.write(conn, users, archived_row(1, "x", 1))

        with pytest.raises(ConstraintViolationError, match="already archived") as exc_info:
            snapshots.write(conn, users, archived_row(1, "changed", 1))

        assert exc_info.value.code == "CONSTRAINT_VIOLATION"
        assert exc_info.value.version == 1
        row = snapshots.read(conn, users, Selector.from_mapping({"id": 1}), 1)
        assert row["name"] == "x"

    def test_history_ordered(self, conn, users, snapshots):
        snapshots.write(conn, users, archived_row(1, "c", 3))
        snapshots.write(conn, users, archived_row(1, "a", 1))
        snapshots.write(conn, users, archived_row(1, "b", 2))
        snapshots.write(conn, users, archived_row(2, "other", 1))

        assert snapshots.versions(conn, users, {"id": 1}) == [1, 2, 3]
        assert [r["name"] for r in snapshots.history(conn, users, {"id": 1})] == ["a", "b", "c"]
        assert snapshots.count(conn, users) == 4

    def test_ambiguous_read(self, conn, users, snapshots):
        snapshots.write(conn, users, archived_row(1, "same", 1))
        snapshots.write(conn, users, archived_row(2, "same", 1))

        with pytest.raises(AmbiguousSelectorError):
            snapshots.read(conn, users, Selector.from_mapping({"name": "same"}), 1)

    def test_keys_matching(self, conn, users, snapshots):
        snapshots.write(conn, users, archived_row(1, "x", 1))
        snapshots.write(conn, users, archived_row(1, "x", 2))
        snapshots.write(conn, users, archived_row(2, "y", 1))

        keys = snapshots.keys_matching(conn, users, Selector.from_mapping({"name": "x"}))

        assert keys == [{"id": 1}]
