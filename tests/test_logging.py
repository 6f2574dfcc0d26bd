"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from upcache.logging import (
    ROOT_LOGGER_NAME,
    get_logger,
    get_operation,
    get_staging_id,
    log_context,
    setup_logging,
)


def last_record(log_file: Path) -> dict:
    return json.loads(log_file.read_text().strip().splitlines()[-1])


class TestLogContext:
    """Tests for log_context."""

    def test_sets_and_restores(self) -> None:
        """Test that nested contexts override and then restore values."""
        assert get_staging_id() is None

        with log_context(staging_id="20071201-1-2-3", operation="cache"):
            assert get_staging_id() == "20071201-1-2-3"
            assert get_operation() == "cache"
            with log_context(operation="retrieve"):
                assert get_staging_id() == "20071201-1-2-3"
                assert get_operation() == "retrieve"
            assert get_operation() == "cache"

        assert get_staging_id() is None
        assert get_operation() is None


class TestJSONFileLogging:
    """Tests for JSON-lines file output."""

    def test_records_include_context(self, temp_dir: Path) -> None:
        """Test that context, fields and call site land in the JSON line."""
        log_file = temp_dir / "logs" / "upcache.jsonl"
        setup_logging(log_level="DEBUG", log_file=log_file, console_output=False)
        try:
            logger = get_logger("tests")
            with log_context(staging_id="20071201-1-2-3", operation="cache"):
                logger.info("Staged %s", "20071201-1-2-3/test.jpg", path="/x/test.jpg")
        finally:
            setup_logging()

        record = last_record(log_file)

        assert record["logger"] == "upcache.tests"
        assert record["level"] == "INFO"
        assert record["message"] == "Staged 20071201-1-2-3/test.jpg"
        assert record["staging_id"] == "20071201-1-2-3"
        assert record["operation"] == "cache"
        assert record["fields"] == {"path": "/x/test.jpg"}

    def test_source_is_the_calling_module(self, temp_dir: Path) -> None:
        """Test that records point at the caller, not the logger wrapper."""
        log_file = temp_dir / "upcache.jsonl"
        setup_logging(log_file=log_file, console_output=False)
        try:
            get_logger("tests").warning("careful")
        finally:
            setup_logging()

        record = last_record(log_file)

        assert record["source"].startswith("test_logging:")
        assert "fields" not in record

    def test_file_receives_debug_below_console_level(self, temp_dir: Path) -> None:
        """Test that the file handler logs DEBUG even when the level is INFO."""
        log_file = temp_dir / "upcache.jsonl"
        setup_logging(log_level="INFO", log_file=log_file, console_output=False)
        try:
            get_logger("tests").debug("detail", step=1)
        finally:
            setup_logging()

        record = last_record(log_file)

        assert record["level"] == "DEBUG"
        assert record["fields"] == {"step": 1}

    def test_reconfigure_replaces_file_handler(self, temp_dir: Path) -> None:
        """Test that a second setup_logging() closes the previous file handler."""
        log_file = temp_dir / "upcache.jsonl"
        setup_logging(log_file=log_file, console_output=False)
        file_handler = logging.getLogger(ROOT_LOGGER_NAME).handlers[0]

        setup_logging(console_output=False)

        handlers = logging.getLogger(ROOT_LOGGER_NAME).handlers
        assert file_handler not in handlers
        assert file_handler.stream is None
        setup_logging()
