"""
Shared fixtures for VCDB tests.
"""

import sqlite3

import pytest

from vcdb.vc_engine.schema.provisioner import SchemaProvisioner
from vcdb.vc_engine.schema.registry import RelationRegistry

USERS_DDL = """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT
    )
"""


@pytest.fixture
def conn():
    """In-memory connection configured like VersionedStore connections."""
    connection = sqlite3.connect(":memory:", isolation_level=None)
    connection.row_factory = sqlite3.Row
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture
def registry():
    return RelationRegistry()


@pytest.fixture
def users(conn, registry):
    """A provisioned 'users' relation; returns its metadata."""
    conn.execute(USERS_DDL)
    return SchemaProvisioner(registry).activate(conn, "users")


class FakeClock:
    """Deterministic millisecond clock."""

    def __init__(self, start=1_000):
        self.now = start

    def __call__(self):
        self.now += 1
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
