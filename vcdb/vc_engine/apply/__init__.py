"""
Apply module for VCDB - mutation interception and restore.

This module handles:
- Version allocation on insert/update/delete
- Archiving prior states to the snapshot store
- Restoring past versions as new current versions

Invariants:
    - Archive write and live write commit or roll back together
    - Unchanged updates never allocate a version
"""

from .interceptor import MutationInterceptor, UpdateResult
from .restore import RestoreOperator

__all__ = ["MutationInterceptor", "UpdateResult", "RestoreOperator"]
