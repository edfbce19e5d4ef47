"""
Relation registry for VCDB.

The RelationRegistry is the central authority for versioned relation metadata.
It replaces per-relation code generation: metadata is resolved once by the
provisioner at activation and every generic component looks it up here.

Invariants:
    - Relation names are unique within a registry
    - Registered metadata is immutable (RelationMeta is frozen)
    - A relation is registered iff its archive and bookkeeping columns exist

How to change safely:
    - Only the provisioner registers and unregisters relations
    - Never mutate metadata in place; unregister and register again

Example:
    >>> registry = RelationRegistry()
    >>> registry.register(RelationMeta("users", ("id", "name"), ("id",)))
    >>> registry.get("users").key_columns
    ('id',)
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

from ..errors import DuplicateRegistrationError, RelationNotVersionedError
from .types import RelationMeta

logger = logging.getLogger(__name__)


class RelationRegistry:
    """Registry of relations under version control.

    Thread-safety:
        - Registration and removal use an internal lock
        - Lookups read a plain dict and take no lock
    """

    def __init__(self) -> None:
        self._relations: dict[str, RelationMeta] = {}
        self._lock = threading.Lock()

    def register(self, meta: RelationMeta) -> None:
        """Register relation metadata.

        Raises:
            DuplicateRegistrationError: If the relation is already registered
        """
        with self._lock:
            if meta.name in self._relations:
                raise DuplicateRegistrationError(meta.name)
            self._relations[meta.name] = meta
            logger.debug(
                f"Registered relation: {meta.name} "
                f"(key={','.join(meta.key_columns)}, columns={len(meta.columns)})"
            )

    def unregister(self, name: str) -> RelationMeta:
        """Remove a relation from the registry.

        Raises:
            RelationNotVersionedError: If the relation is not registered
        """
        with self._lock:
            meta = self._relations.pop(name, None)
            if meta is None:
                raise RelationNotVersionedError(name)
            logger.debug(f"Unregistered relation: {name}")
            return meta

    def get(self, name: str) -> RelationMeta:
        """Get metadata for a relation.

        Raises:
            RelationNotVersionedError: If the relation is not registered
        """
        meta = self._relations.get(name)
        if meta is None:
            raise RelationNotVersionedError(name)
        return meta

    def __contains__(self, name: object) -> bool:
        return name in self._relations

    def __len__(self) -> int:
        return len(self._relations)

    def relations(self) -> Iterator[RelationMeta]:
        """Iterate over registered relations sorted by name."""
        for name in sorted(self._relations):
            yield self._relations[name]

    def clear(self) -> None:
        with self._lock:
            self._relations.clear()

    def to_dict(self) -> dict:
        return {"relations": [meta.to_dict() for meta in self.relations()]}
