"""Tests for structured JSON logging configuration."""

from __future__ import annotations

import json
import logging
import sys

import structlog

from pubgraph.logging_setup import JsonFormatter, configure_logging

_TEST_EXCEPTION_MESSAGE = "Test exception"


def _record(msg: str, level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJsonFormatter:
    """Tests for the JsonFormatter class."""

    def test_format_basic_message(self) -> None:
        data = json.loads(JsonFormatter().format(_record("Test message")))

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["message"] == "Test message"
        assert "timestamp" in data

    def test_format_with_extra_fields(self) -> None:
        record = _record("pipeline.record_started", logging.WARNING)
        record.record_index = 3
        record.title = "Aspirin"

        data = json.loads(JsonFormatter().format(record))

        assert data["record_index"] == 3
        assert data["title"] == "Aspirin"

    def test_format_skips_standard_and_private_fields(self) -> None:
        record = _record("Error message", logging.ERROR)
        record._private_field = "should not appear"

        data = json.loads(JsonFormatter().format(record))

        for key in ("pathname", "lineno", "funcName", "process", "thread", "_private_field"):
            assert key not in data

    def test_format_with_exception_info(self) -> None:
        try:
            raise ValueError(_TEST_EXCEPTION_MESSAGE)
        except ValueError:
            record = _record("Error with exception", logging.ERROR, sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "ValueError: Test exception" in data["exc_info"]

    def test_format_handles_non_serializable_fields(self) -> None:
        record = _record("Message")
        record.non_serializable = object()

        data = json.loads(JsonFormatter().format(record))

        assert "serialization_error" in data
        assert data["message"] == "Message"

    def test_format_timestamp_is_utc_iso_format(self) -> None:
        data = json.loads(JsonFormatter().format(_record("Message")))

        assert "T" in data["timestamp"]
        assert data["timestamp"].endswith("+00:00")

    def test_format_preserves_unicode(self) -> None:
        data = json.loads(JsonFormatter().format(_record("Unicode: α-synuclein")))

        assert data["message"] == "Unicode: α-synuclein"


class TestConfigureLogging:
    """Tests for the configure_logging function."""

    def test_configure_logging_installs_single_stdout_handler(self) -> None:
        root_logger = logging.getLogger()
        root_logger.addHandler(logging.StreamHandler())

        configure_logging()

        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert isinstance(handler.formatter, JsonFormatter)
        assert handler.stream == sys.stdout
        assert root_logger.propagate is False

    def test_configure_logging_sets_level(self) -> None:
        configure_logging(level=logging.DEBUG)
        assert logging.getLogger().level == logging.DEBUG

        configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_structlog_events_render_as_json(self, capsys) -> None:
        configure_logging()
        logger = structlog.get_logger("pubgraph.test")

        logger.info("graph_ingest.triple_merged", subject="Aspirin", edge_type="TREATS")

        data = json.loads(capsys.readouterr().out.strip())
        assert data["message"] == "graph_ingest.triple_merged"
        assert data["subject"] == "Aspirin"
        assert data["edge_type"] == "TREATS"
        assert data["logger"] == "pubgraph.test"

    def test_structlog_respects_level_filter(self, capsys) -> None:
        configure_logging(level=logging.WARNING)
        logger = structlog.get_logger("pubgraph.test")

        logger.info("ignored")
        logger.warning("triple_parser.malformed_line", line_number=2)

        lines = [line for line in capsys.readouterr().out.strip().split("\n") if line]
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert data["level"] == "WARNING"
        assert data["line_number"] == 2

    def test_bound_record_context_is_merged_into_events(self, capsys) -> None:
        configure_logging()
        logger = structlog.get_logger("pubgraph.test")

        with structlog.contextvars.bound_contextvars(record_index=4, title="Aspirin trial"):
            logger.warning("triple_parser.malformed_line", line_number=1)
        logger.info("pipeline.completed")

        first, second = (json.loads(line) for line in capsys.readouterr().out.strip().split("\n"))
        assert first["record_index"] == 4
        assert first["title"] == "Aspirin trial"
        assert "record_index" not in second
