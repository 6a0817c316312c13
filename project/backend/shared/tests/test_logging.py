"""
Tests for structured logging.
"""

import json
import logging
from uuid import uuid4

import pytest

from shared.logging import (
    JSONFormatter,
    configure_logging,
    get_job_id,
    get_logger,
    set_job_id,
    shutdown_logging,
)


def _format_last(caplog) -> dict:
    assert len(caplog.records) > 0
    return json.loads(JSONFormatter().format(caplog.records[-1]))


def test_get_logger_creates_logger():
    """Test that get_logger creates a logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test_module"


def test_get_logger_adds_no_handlers():
    """Test that module loggers propagate to the root handlers."""
    first = get_logger("test_module_handlers")
    second = get_logger("test_module_handlers")
    assert second is first
    assert first.handlers == []
    assert first.propagate is True


def test_logger_outputs_json_format(caplog):
    """Test that logger outputs JSON format with extra fields."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)

    logger.info("Test message", extra={"segment_index": 3, "command": ["ffmpeg", "-y"]})

    log_data = _format_last(caplog)
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "test_module"
    assert log_data["message"] == "Test message"
    assert log_data["segment_index"] == 3
    # Non-scalar extras are stringified
    assert log_data["command"] == str(["ffmpeg", "-y"])
    assert log_data["timestamp"].endswith("Z")


def test_logger_includes_job_id(caplog):
    """Test that logger includes job_id when set in context."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)

    job_id = uuid4()
    set_job_id(job_id)
    try:
        logger.info("Test message")
        assert _format_last(caplog)["job_id"] == str(job_id)
        assert get_job_id() == job_id
    finally:
        set_job_id(None)


def test_logger_excludes_job_id_when_not_set(caplog):
    """Test that logger excludes job_id when not set."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)
    set_job_id(None)

    logger.info("Test message")

    assert "job_id" not in _format_last(caplog)
    assert get_job_id() is None


def test_logger_includes_exception(caplog):
    """Test that exception text is included."""
    logger = get_logger("test_module")
    logger.setLevel(logging.INFO)

    try:
        raise ValueError("bad segment")
    except ValueError:
        logger.error("Segment failed", exc_info=True)

    log_data = _format_last(caplog)
    assert log_data["level"] == "ERROR"
    assert "ValueError: bad segment" in log_data["exception"]


@pytest.fixture
def root_logging():
    """Restore root logger level and handlers after configure_logging."""
    root = logging.getLogger()
    level = root.level
    shutdown_logging()
    try:
        yield root
    finally:
        shutdown_logging()
        root.setLevel(level)


def _json_handlers(root):
    return [h for h in root.handlers if isinstance(h.formatter, JSONFormatter)]


class TestConfigureLogging:
    """Tests for configure_logging and shutdown_logging."""

    def test_installs_json_console_handler(self, root_logging):
        assert configure_logging(level="DEBUG", log_dir=None) is True

        handlers = _json_handlers(root_logging)
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert root_logging.level == logging.DEBUG

    def test_writes_json_lines_to_log_file(self, root_logging, tmp_path):
        configure_logging(level="INFO", log_dir=tmp_path / "logs")

        get_logger("test_module_file").info("Segment encoded", extra={"segment_index": 1})
        for handler in root_logging.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "app.log").read_text().splitlines()
        record = json.loads(lines[-1])
        assert record["message"] == "Segment encoded"
        assert record["segment_index"] == 1

    def test_second_call_is_a_no_op(self, root_logging):
        configure_logging(log_dir=None)
        before = list(root_logging.handlers)

        assert configure_logging(log_dir=None) is False
        assert root_logging.handlers == before

    def test_force_replaces_handlers(self, root_logging, tmp_path):
        configure_logging(log_dir=None)
        old = _json_handlers(root_logging)

        assert configure_logging(log_dir=tmp_path, force=True) is True

        new = _json_handlers(root_logging)
        assert len(new) == 2
        assert not any(h in new for h in old)

    def test_shutdown_removes_handlers(self, root_logging):
        configure_logging(log_dir=None)
        shutdown_logging()
        assert _json_handlers(root_logging) == []
