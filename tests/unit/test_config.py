"""
Unit tests for VCDB settings and logging setup.
"""

import logging

import json_log_formatter
import pytest
from pydantic import ValidationError

from vcdb.vc_engine.config import VersionControlSettings, setup_logging
from vcdb.vc_engine.store import VersionedStore


class TestVersionControlSettings:
    """Tests for VersionControlSettings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("VC_DATABASE_PATH", raising=False)
        settings = VersionControlSettings()

        assert settings.database_path == "vcdb.sqlite3"
        assert settings.wal_mode is True
        assert settings.drop_archive_on_deactivate is True
        assert settings.excluded_relations == []

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VC_DATABASE_PATH", "/tmp/app.sqlite3")
        monkeypatch.setenv("VC_WAL_MODE", "false")
        monkeypatch.setenv("VC_EXCLUDED_RELATIONS", '["audit", "sessions"]')
        monkeypatch.setenv("VC_LOG_FORMAT", "JSON")

        settings = VersionControlSettings()

        assert settings.database_path == "/tmp/app.sqlite3"
        assert settings.wal_mode is False
        assert settings.excluded_relations == ["audit", "sessions"]
        assert settings.log_format == "json"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError, match="Invalid log_format"):
            VersionControlSettings(log_format="xml")

    def test_store_from_settings(self, tmp_path):
        settings = VersionControlSettings(
            database_path=str(tmp_path / "vc.sqlite3"),
            wal_mode=False,
            drop_archive_on_deactivate=False,
            excluded_relations=["audit"],
        )

        store = VersionedStore.from_settings(settings)

        assert store.database_path == tmp_path / "vc.sqlite3"
        assert store.wal_mode is False
        assert store.drop_archive_on_deactivate is False
        assert store.excluded_relations == ("audit",)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(VersionControlSettings(log_format="json", log_level="DEBUG"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(VersionControlSettings(log_format="text", log_level="warning"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
