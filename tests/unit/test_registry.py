"""
Unit tests for relation metadata and registry.

Tests cover:
- RelationMeta validation and derived names
- Registration and lookup
- Duplicate detection
"""

import pytest

from vcdb.vc_engine.errors import DuplicateRegistrationError, RelationNotVersionedError
from vcdb.vc_engine.schema.registry import RelationRegistry
from vcdb.vc_engine.schema.types import VERSION_COLUMN, RelationMeta


def make_meta(name="users"):
    return RelationMeta(name=name, columns=("id", "name"), key_columns=("id",))


class TestRelationMeta:
    """Tests for RelationMeta."""

    def test_derived_names(self):
        meta = make_meta()

        assert meta.archive_name == "__vc__users"
        assert meta.value_columns == ("name",)
        assert meta.key_of({"id": 7, "name": "x"}) == {"id": 7}

    def test_attributes_exclude_bookkeeping(self):
        meta = make_meta()
        row = {"id": 1, "name": "x", VERSION_COLUMN: 3}

        assert meta.attributes_of(row) == {"id": 1, "name": "x"}

    def test_key_required(self):
        with pytest.raises(ValueError, match="no key columns"):
            RelationMeta(name="t", columns=("a",), key_columns=())

    def test_key_must_be_column(self):
        with pytest.raises(ValueError, match="not in relation"):
            RelationMeta(name="t", columns=("a",), key_columns=("b",))

    def test_bookkeeping_not_allowed_in_columns(self):
        with pytest.raises(ValueError, match="Bookkeeping"):
            RelationMeta(name="t", columns=("a", VERSION_COLUMN), key_columns=("a",))

    def test_archive_relation_rejected(self):
        with pytest.raises(ValueError, match="archive relation"):
            RelationMeta(name="__vc__t", columns=("a",), key_columns=("a",))


class TestRelationRegistry:
    """Tests for RelationRegistry."""

    def test_register_and_get(self):
        registry = RelationRegistry()
        meta = make_meta()

        registry.register(meta)

        assert registry.get("users") == meta
        assert "users" in registry
        assert len(registry) == 1

    def test_duplicate_raises(self):
        registry = RelationRegistry()
        registry.register(make_meta())

        with pytest.raises(DuplicateRegistrationError, match="already registered"):
            registry.register(make_meta())

    def test_unknown_relation_raises(self):
        registry = RelationRegistry()

        with pytest.raises(RelationNotVersionedError, match="not under version control"):
            registry.get("users")

    def test_unregister(self):
        registry = RelationRegistry()
        registry.register(make_meta())

        removed = registry.unregister("users")

        assert removed.name == "users"
        assert "users" not in registry
        with pytest.raises(RelationNotVersionedError):
            registry.unregister("users")

    def test_relations_sorted(self):
        registry = RelationRegistry()
        registry.register(make_meta("orders"))
        registry.register(make_meta("accounts"))

        assert [m.name for m in registry.relations()] == ["accounts", "orders"]
        assert [r["name"] for r in registry.to_dict()["relations"]] == ["accounts", "orders"]
