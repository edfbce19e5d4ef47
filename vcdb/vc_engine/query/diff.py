"""
Diff generator for VCDB.

Compares two resolved versions of one entity attribute by attribute.

The default rule is directional: it walks B's attributes and reports every
attribute whose value in A is not identical, valued as in B. An attribute
missing from A is reported with a None placeholder. Attributes that exist only
in A are not reported. Pass symmetric=True for a changed/added/removed
document instead.

Example:
    >>> diff_attributes({"name": "x", "age": 3}, {"name": "y", "age": 3})
    {'name': 'y'}
    >>> symmetric_diff({"name": "x", "old": 1}, {"name": "y"})
    {'changed': {'name': {'from': 'x', 'to': 'y'}}, 'added': {}, 'removed': {'old': 1}}
"""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping

from ..errors import VersionNotFoundError
from ..schema.types import RelationMeta
from ..selector import Selector
from .reader import VersionReader

_MISSING = object()


def diff_attributes(a: Mapping[str, Any], b: Mapping[str, Any]) -> dict[str, Any]:
    """Directional diff of B relative to A."""
    diff: dict[str, Any] = {}
    for name, value in b.items():
        previous = a.get(name, _MISSING)
        if previous is _MISSING:
            diff[name] = None
        elif previous != value:
            diff[name] = value
    return diff


def symmetric_diff(a: Mapping[str, Any], b: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Changed, added and removed attributes between A and B."""
    return {
        "changed": {
            name: {"from": a[name], "to": value}
            for name, value in b.items()
            if name in a and a[name] != value
        },
        "added": {name: value for name, value in b.items() if name not in a},
        "removed": {name: value for name, value in a.items() if name not in b},
    }


class DiffGenerator:
    """Builds diff documents from two Version Reader lookups."""

    def __init__(self, reader: VersionReader) -> None:
        self.reader = reader

    def generate_diff(
        self,
        conn: sqlite3.Connection,
        meta: RelationMeta,
        selector: Selector,
        version_a: int,
        version_b: int,
        symmetric: bool = False,
    ) -> dict[str, Any]:
        """Diff version B of an entity against version A.

        Raises:
            InvalidVersionError: If either version < 1
            VersionNotFoundError: Naming whichever version cannot be resolved
        """
        snapshot_a = self.reader.find_version(conn, meta, selector, version_a)
        if snapshot_a is None:
            raise VersionNotFoundError(meta.name, selector, version_a)

        snapshot_b = self.reader.find_version(conn, meta, selector, version_b)
        if snapshot_b is None:
            raise VersionNotFoundError(meta.name, selector, version_b)

        if symmetric:
            return symmetric_diff(snapshot_a.attributes, snapshot_b.attributes)
        return diff_attributes(snapshot_a.attributes, snapshot_b.attributes)
