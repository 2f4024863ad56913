"""Unit tests for logging configuration module.

Tests verify that the logging configuration functions work correctly with different
scenarios including various log levels, formats, and file logging options.
"""

import logging
from pathlib import Path

import pytest

from toolgate.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    LOG_FILE_NAME,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_handlers():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    return next(h for h in root_logger.handlers if type(h) is logging.StreamHandler)


def _file_handlers() -> list:
    return [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),  # Test lowercase
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        """Test setup_logging configures correct log level."""
        setup_logging(log_level=log_level, enable_file=False)
        assert _console_handler().level == expected_level

    def test_root_logger_level_is_debug(self):
        setup_logging(log_level="ERROR", enable_file=False)
        assert logging.getLogger().level == logging.DEBUG


class TestSetupLoggingFormats:
    """Test setup_logging with different formats."""

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_setup_logging_with_different_formats(self, log_format, expected_format):
        setup_logging(log_format=log_format, enable_file=False)
        assert _console_handler().formatter._fmt == expected_format


class TestSetupLoggingFileHandling:
    """Test setup_logging file handler behaviour."""

    def test_file_handler_created_in_directory(self, tmp_path: Path):
        log_dir = tmp_path / "nested" / "logs"
        setup_logging(enable_file=True, log_file_dir=str(log_dir))

        handlers = _file_handlers()
        assert len(handlers) == 1
        assert handlers[0].level == logging.DEBUG
        assert Path(handlers[0].baseFilename) == (log_dir / LOG_FILE_NAME).resolve()

    def test_file_disabled(self, tmp_path: Path):
        setup_logging(enable_file=False, log_file_dir=str(tmp_path))
        assert _file_handlers() == []

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)
        assert len(logging.getLogger().handlers) == 1


class TestModuleLevels:
    @pytest.mark.parametrize("module_name,expected_level", sorted(MODULE_LOG_LEVELS.items()))
    def test_module_specific_log_levels(self, module_name, expected_level):
        setup_logging(enable_file=False)
        assert logging.getLogger(module_name).level == getattr(logging, expected_level)


class TestGetLogger:
    def test_get_logger_returns_named_logger(self):
        logger = get_logger("toolgate.agent_core.runtime.dispatcher")
        assert isinstance(logger, logging.Logger)
        assert logger is logging.getLogger("toolgate.agent_core.runtime.dispatcher")

    def test_logger_emits_through_console_handler(self, capsys):
        setup_logging(log_level="INFO", log_format="simple", enable_file=False)
        get_logger("toolgate.agent_core.approvals.ledger").info("approval requested")

        err = capsys.readouterr().err
        assert "INFO - toolgate.agent_core.approvals.ledger - approval requested" in err
