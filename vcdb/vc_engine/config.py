"""
Configuration management for VCDB.

Settings are read from environment variables with the VC_ prefix using
pydantic-settings. The settings name the target database explicitly; no
component looks up an ambient catalog or schema.

Invariants:
    - All settings have sensible defaults for local development
    - The database path is threaded through VersionedStore, never global

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
"""

from __future__ import annotations

import logging

import json_log_formatter
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class VersionControlSettings(BaseSettings):
    """VCDB configuration loaded from environment."""

    # Target store
    database_path: str = Field(default="vcdb.sqlite3", description="SQLite database file")

    # SQLite connection
    wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal mode")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")
    cache_size_pages: int = Field(default=-64000, description="SQLite cache size (negative = KB)")

    # Provisioning
    drop_archive_on_deactivate: bool = Field(
        default=True, description="Drop __vc__ archives when deactivating a relation"
    )
    excluded_relations: list[str] = Field(
        default_factory=list, description="Relations skipped by activate_all/deactivate_all"
    )

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: str = Field(default="text", description="json or text")

    model_config = {"env_prefix": "VC_"}

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError(f"Invalid log_format '{value}'. Must be one of: json, text")
        return value

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "VCDB configuration loaded",
            extra={
                "database_path": self.database_path,
                "wal_mode": self.wal_mode,
                "busy_timeout_ms": self.busy_timeout_ms,
                "excluded_relations": self.excluded_relations,
                "log_level": self.log_level,
            },
        )


def setup_logging(settings: VersionControlSettings) -> None:
    """Configure root logging based on settings.

    Args:
        settings: VCDB settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
