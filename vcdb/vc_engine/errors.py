"""
Error types for VCDB.

This module defines all exception types raised by the version control engine:
- VersionControlError: Base exception
- InvalidVersionError: Requested version is below 1
- NotFoundError / VersionNotFoundError: Snapshot cannot be resolved
- ConstraintViolationError: Duplicate (key, version) archive write
- SelectorError: Malformed or unsafe selector

Invariants:
    - All errors inherit from VersionControlError
    - Errors include context for debugging
    - Every error aborts the enclosing transaction and is never retried
"""

from __future__ import annotations

from typing import Any


class VersionControlError(Exception):
    """Base exception for all VCDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VC_ERROR"
        self.details = details or {}


class InvalidVersionError(VersionControlError):
    """Requested version number is lower than 1."""

    def __init__(self, version: int) -> None:
        super().__init__(
            f"Version must be greater than 0, got {version}",
            code="INVALID_VERSION",
            details={"version": version},
        )
        self.version = version


class NotFoundError(VersionControlError):
    """No snapshot and no live row exist at the requested version.

    Raised when:
    - The selector matches nothing in either store
    - The version is newer than the current version
    """

    def __init__(
        self,
        message: str,
        relation: str,
        selector: Any = None,
        version: int | None = None,
        code: str = "NOT_FOUND",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={
                "relation": relation,
                "selector": str(selector) if selector is not None else None,
                "version": version,
            },
        )
        self.relation = relation
        self.selector = selector
        self.version = version


class VersionNotFoundError(NotFoundError):
    """Restore or diff target version is absent."""

    def __init__(
        self,
        relation: str,
        selector: Any,
        version: int,
        message: str | None = None,
        code: str = "VERSION_NOT_FOUND",
    ) -> None:
        super().__init__(
            message
            or f"Tuple satisfying ({selector}) AND version = {version} "
            f"not found in relation '{relation}'",
            relation=relation,
            selector=selector,
            version=version,
            code=code,
        )


class EntityDeletedError(VersionNotFoundError):
    """Restore target exists only in the archive; the entity was deleted."""

    def __init__(self, relation: str, selector: Any, version: int) -> None:
        super().__init__(
            relation,
            selector,
            version,
            message=(
                f"Cannot restore version {version} of ({selector}) in relation "
                f"'{relation}': the entity has no live row"
            ),
            code="ENTITY_DELETED",
        )


class ConstraintViolationError(VersionControlError):
    """Attempted to write a (key, version) pair that is already archived.

    This is an invariant breach. The enclosing transaction is rolled back.
    """

    def __init__(self, relation: str, key: dict[str, Any], version: int) -> None:
        super().__init__(
            f"Snapshot {key} version {version} already archived for relation '{relation}'",
            code="CONSTRAINT_VIOLATION",
            details={"relation": relation, "key": key, "version": version},
        )
        self.relation = relation
        self.key = key
        self.version = version


class SelectorError(VersionControlError):
    """Selector failed validation against the relation metadata."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_SELECTOR",
            details={"field": field_name},
        )
        self.field_name = field_name


class UnknownAttributeError(SelectorError):
    """Attribute is not part of the relation."""

    def __init__(self, field_name: str, relation: str) -> None:
        super().__init__(
            f"Unknown attribute '{field_name}' in relation '{relation}'",
            field_name=field_name,
        )
        self.code = "UNKNOWN_ATTRIBUTE"
        self.relation = relation


class AmbiguousSelectorError(SelectorError):
    """Selector matched more than one entity where exactly one was required."""

    def __init__(self, relation: str, selector: Any, matches: int) -> None:
        super().__init__(
            f"Selector ({selector}) matched {matches} entities in relation '{relation}'"
        )
        self.code = "AMBIGUOUS_SELECTOR"
        self.relation = relation
        self.matches = matches


class ImmutableKeyError(VersionControlError):
    """Update attempted to change the natural key of a versioned entity."""

    def __init__(self, relation: str, key: dict[str, Any], columns: list[str]) -> None:
        super().__init__(
            f"Natural key columns {columns} of {key} in relation '{relation}' cannot be changed",
            code="IMMUTABLE_KEY",
            details={"relation": relation, "key": key, "columns": columns},
        )
        self.relation = relation
        self.key = key
        self.columns = columns


class RelationNotVersionedError(VersionControlError):
    """Relation is not registered for version control."""

    def __init__(self, relation: str) -> None:
        super().__init__(
            f"Relation '{relation}' is not under version control",
            code="RELATION_NOT_VERSIONED",
            details={"relation": relation},
        )
        self.relation = relation


class DuplicateRegistrationError(VersionControlError):
    """Relation metadata is already registered."""

    def __init__(self, relation: str) -> None:
        super().__init__(
            f"Relation '{relation}' is already registered",
            code="DUPLICATE_REGISTRATION",
            details={"relation": relation},
        )
        self.relation = relation


class ProvisioningError(VersionControlError):
    """Archive structures or bookkeeping columns could not be provisioned."""

    def __init__(self, message: str, relation: str | None = None) -> None:
        super().__init__(
            message,
            code="PROVISIONING_ERROR",
            details={"relation": relation},
        )
        self.relation = relation
