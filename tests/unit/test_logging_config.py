# SPDX-License-Identifier: MIT
"""Tests for the logging configuration module."""

import logging
import re
from io import StringIO
from unittest.mock import patch

import pytest

from offline_sync.logging_config import (
    DETAIL_LOGGER_NAME,
    STATUS_LOGGER_NAME,
    FlushingStreamHandler,
    get_detail_logger,
    get_status_logger,
    setup_logging,
)


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create a temporary directory for log files."""
    log_dir = tmp_path / "test_logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset the detail and status loggers before and after each test."""

    def clear() -> None:
        for name in (DETAIL_LOGGER_NAME, STATUS_LOGGER_NAME):
            logger = logging.getLogger(name)
            for handler in logger.handlers[:]:
                handler.close()
            logger.handlers.clear()

    clear()
    yield
    clear()


class TestSetupLogging:
    """Test cases for setup_logging function."""

    def test_setup_logging_creates_log_file(self, temp_log_dir) -> None:
        """Test that setup_logging creates a log file in the specified directory."""
        setup_logging(temp_log_dir)

        log_file = temp_log_dir / "offline-sync.log"
        assert log_file.exists()
        assert log_file.is_file()

    def test_setup_logging_uses_default_directory_when_none(self, tmp_path) -> None:
        """Test that setup_logging uses .offline-sync in cwd when log_dir is None."""
        with patch("pathlib.Path.cwd", return_value=tmp_path):
            setup_logging(log_dir=None)

        assert (tmp_path / ".offline-sync" / "offline-sync.log").exists()

    def test_setup_logging_returns_correct_loggers(self, temp_log_dir) -> None:
        """Test that setup_logging returns detail and status logger instances."""
        detail_logger, status_logger = setup_logging(temp_log_dir)

        assert detail_logger is get_detail_logger()
        assert status_logger is get_status_logger()
        assert detail_logger.name == DETAIL_LOGGER_NAME
        assert status_logger.name == STATUS_LOGGER_NAME

    def test_detail_logger_configuration(self, temp_log_dir) -> None:
        """Test that the detail logger writes DEBUG and above to the file only."""
        detail_logger, _ = setup_logging(temp_log_dir)

        assert detail_logger.level == logging.DEBUG
        assert detail_logger.propagate is False
        assert len(detail_logger.handlers) == 1
        handler = detail_logger.handlers[0]
        assert isinstance(handler, logging.FileHandler)
        assert handler.level == logging.DEBUG

    def test_status_logger_configuration(self, temp_log_dir) -> None:
        """Test that the status logger writes to console and file."""
        _, status_logger = setup_logging(temp_log_dir)

        assert status_logger.level == logging.INFO
        assert status_logger.propagate is False

        stream_handlers = [
            h
            for h in status_logger.handlers
            if isinstance(h, FlushingStreamHandler)
        ]
        file_handlers = [
            h for h in status_logger.handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(stream_handlers) == 1
        assert len(file_handlers) == 1

    def test_log_file_format(self, temp_log_dir) -> None:
        """Test that the log file uses timestamp - logger - level - message."""
        detail_logger, _ = setup_logging(temp_log_dir)

        detail_logger.info("Queue restored")

        log_content = (temp_log_dir / "offline-sync.log").read_text()
        assert DETAIL_LOGGER_NAME in log_content
        assert "INFO" in log_content
        assert "Queue restored" in log_content
        assert re.search(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", log_content)

    def test_console_format_for_status_logger(self, temp_log_dir) -> None:
        """Test that console output omits the logger name."""
        with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
            _, status_logger = setup_logging(temp_log_dir)

            status_logger.info("3 synced, 0 to retry, 0 discarded")

            console_output = mock_stderr.getvalue()

        assert "3 synced" in console_output
        assert STATUS_LOGGER_NAME not in console_output

    def test_detail_messages_stay_off_console(self, temp_log_dir) -> None:
        """Test that detail logs never reach stderr."""
        with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
            detail_logger, _ = setup_logging(temp_log_dir)

            detail_logger.debug("POST https://example.org/api/clients")

            assert "POST" not in mock_stderr.getvalue()

    def test_log_file_append_mode(self, temp_log_dir) -> None:
        """Test that a new session appends to the previous log."""
        log_file = temp_log_dir / "offline-sync.log"

        detail_logger, _ = setup_logging(temp_log_dir)
        detail_logger.info("First session")

        detail_logger, _ = setup_logging(temp_log_dir)
        detail_logger.info("Second session")

        content = log_file.read_text()
        assert "First session" in content
        assert "Second session" in content

    def test_repeated_setup_does_not_duplicate_handlers(self, temp_log_dir) -> None:
        """Test that calling setup twice keeps a single set of handlers."""
        setup_logging(temp_log_dir)
        detail_logger, status_logger = setup_logging(temp_log_dir)

        assert len(detail_logger.handlers) == 1
        assert len(status_logger.handlers) == 2
