"""
Unit Tests for Centralized Logging.

Tests the logging configuration, handler setup, and source handling.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock, patch

import pytest
import structlog

from velociraptor_api.api.query import QueryExecutor
from velociraptor_api.core import logging as logging_module
from velociraptor_api.core.config_schema import LoggingSchema


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestValidSources:
    """Tests for VALID_SOURCES constant."""

    def test_valid_sources_contains_expected_values(self):
        """Should contain all recognized log source values."""
        assert logging_module.VALID_SOURCES == frozenset({"cli", "api", "flows", "internal", "unknown"})

    def test_valid_sources_is_frozenset(self):
        assert isinstance(logging_module.VALID_SOURCES, frozenset)


class TestSetupLogging:
    def test_defaults_come_from_settings(self, restore_root_logger):
        logging_module.setup_logging()

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1

    def test_console_writes_to_stderr(self, restore_root_logger):
        logging_module.setup_logging(level="DEBUG", format_type="console")

        handler = restore_root_logger.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
        assert restore_root_logger.level == logging.DEBUG

    def test_console_can_be_disabled(self, restore_root_logger):
        logging_module.setup_logging(enable_console=False)
        assert restore_root_logger.handlers == []

    def test_file_handler(self, restore_root_logger, tmp_path):
        config = LoggingSchema(handlers={"file": {"enabled": True, "path": str(tmp_path / "logs" / "x.jsonl")}})

        with patch.object(logging_module, "_get_logging_config", return_value=config):
            logging_module.setup_logging(enable_console=False)

        (handler,) = restore_root_logger.handlers
        assert isinstance(handler, RotatingFileHandler)
        assert (tmp_path / "logs").is_dir()

    def test_repeated_setup_does_not_duplicate_handlers(self, restore_root_logger):
        logging_module.setup_logging()
        logging_module.setup_logging()
        assert len(restore_root_logger.handlers) == 1

    def test_grpc_logger_is_quiet(self, restore_root_logger):
        logging_module.setup_logging(level="DEBUG")
        assert logging.getLogger("grpc").level == logging.WARNING


class TestResolveLogPath:
    def test_absolute_path_is_kept(self, tmp_path):
        path = tmp_path / "system.jsonl"
        assert logging_module._resolve_log_path(str(path)) == path

    def test_relative_path_is_under_project_root(self):
        resolved = logging_module._resolve_log_path("logs/system.jsonl")
        assert (resolved.parent.parent / ".project_root").exists()

    def test_relative_path_outside_project(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert logging_module._resolve_log_path("logs/a.jsonl") == tmp_path / "logs" / "a.jsonl"


class TestLogWithSource:
    def test_passes_source(self):
        logger = MagicMock()
        logging_module.log_with_source(logger, "cli", "info", "Fetched file", size=1024)
        logger.info.assert_called_once_with("Fetched file", source="cli", size=1024)

    def test_invalid_level(self):
        logger = logging.getLogger("x")
        with pytest.raises(AttributeError):
            logging_module.log_with_source(logger, "cli", "loud", "message")


class TestLibraryDefaults:
    """Logging before setup_logging() has been called."""

    @pytest.fixture
    def unconfigured(self, restore_root_logger):
        structlog.reset_defaults()
        logging_module._configure_library_defaults()
        restore_root_logger.setLevel(logging.WARNING)
        yield restore_root_logger
        structlog.reset_defaults()
        logging_module._configure_library_defaults()

    def test_routes_through_stdlib(self, unconfigured):
        config = structlog.get_config()
        assert isinstance(config["logger_factory"], structlog.stdlib.LoggerFactory)

    def test_existing_configuration_is_kept(self, unconfigured):
        structlog.configure(cache_logger_on_first_use=True)
        logging_module._configure_library_defaults()
        assert structlog.get_config()["cache_logger_on_first_use"] is True

    @pytest.mark.asyncio
    async def test_query_keeps_stdout_clean(self, unconfigured, capfd, make_connection, vql):
        connection = make_connection(query_script=[[vql("query", [{"a": 1}])]])

        result = await QueryExecutor(connection).execute("SELECT 1 FROM scope()")

        assert result == {"query": [{"a": 1}]}
        assert capfd.readouterr().out == ""

    @pytest.mark.asyncio
    async def test_debug_records_reach_stdlib_handlers(self, unconfigured, caplog, make_connection, vql):
        caplog.set_level(logging.DEBUG)
        connection = make_connection(query_script=[[vql("query", [])]])

        await QueryExecutor(connection).execute("SELECT 1 FROM scope()")

        assert "Executing query" in caplog.text
