"""Tests for structured logging infrastructure."""

import io
import json
import logging
from datetime import datetime

import pytest

from cinode.logging_config import (
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    operation_id_var,
)
from cinode.storage import MemoryBlobStorage
from cinode.store import BlobStore


def _capture(name: str, level: int = logging.DEBUG) -> tuple[logging.Logger, io.StringIO]:
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    return logger, log_stream


def _records(log_stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in log_stream.getvalue().splitlines() if line]


def test_structured_formatter_basic():
    """Test that StructuredFormatter emits valid JSON."""
    logger, log_stream = _capture("test_basic", logging.INFO)

    logger.info("Test message")

    log_data = json.loads(log_stream.getvalue().strip())
    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "test_basic"
    assert log_data["message"] == "Test message"
    assert log_data["timestamp"].endswith("Z")
    datetime.fromisoformat(log_data["timestamp"].rstrip("Z"))


def test_structured_formatter_with_operation_id():
    logger, log_stream = _capture("test_operation_id", logging.INFO)

    token = operation_id_var.set("op-123")
    try:
        logger.info("Test with operation id")
    finally:
        operation_id_var.reset(token)

    assert _records(log_stream)[0]["operation_id"] == "op-123"


def test_structured_formatter_without_operation_id():
    logger, log_stream = _capture("test_no_operation_id", logging.INFO)

    logger.info("Test without operation id")

    assert "operation_id" not in _records(log_stream)[0]


def test_structured_formatter_with_exception():
    logger, log_stream = _capture("test_exception", logging.ERROR)

    try:
        raise ValueError("Test error")
    except ValueError:
        logger.exception("Error occurred")

    log_data = _records(log_stream)[0]
    assert log_data["level"] == "ERROR"
    assert "ValueError: Test error" in log_data["exc_info"]


def test_structured_logger_fields():
    _, log_stream = _capture("test_fields", logging.INFO)
    test_logger = StructuredLogger("test_fields")

    test_logger.error(
        "Store failed",
        blob_id="ab" * 64,
        operation="blob.create",
        duration_ms=12,
        error="disk full",
    )

    log_data = _records(log_stream)[0]
    assert log_data["level"] == "ERROR"
    assert log_data["blob_id"] == "ab" * 64
    assert log_data["operation"] == "blob.create"
    assert log_data["duration_ms"] == 12
    assert log_data["extra"] == {"error": "disk full"}


def test_structured_logger_respects_level():
    _, log_stream = _capture("test_level", logging.INFO)
    test_logger = StructuredLogger("test_level")

    test_logger.debug("Hidden")
    test_logger.info("Shown")

    assert [r["message"] for r in _records(log_stream)] == ["Shown"]


def test_store_operations_are_logged(factory):
    """Writers log per blob and per finalized file, never the key."""
    _, log_stream = _capture("cinode")
    store = BlobStore(MemoryBlobStorage(), factory, block_size=16)

    cap = store.store_bytes(b"x" * 40)

    records = _records(log_stream)
    operations = [r.get("operation") for r in records]
    assert "blob.create" in operations
    assert "file.finalize" in operations

    finalize = next(r for r in records if r.get("operation") == "file.finalize")
    assert finalize["blob_id"] == cap.bid
    assert finalize["extra"]["blocks"] == 3
    assert finalize["operation_id"]
    blob_records = [r for r in records if r.get("operation") == "blob.create"]
    assert {r["operation_id"] for r in blob_records} == {finalize["operation_id"]}

    assert cap.key not in log_stream.getvalue()


@pytest.mark.parametrize("structured", [True, False])
def test_configure_logging(structured: bool):
    configure_logging(log_level="DEBUG", structured=structured)

    root_logger = logging.getLogger("cinode")
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, StructuredFormatter) == structured


def test_configure_logging_with_file(tmp_path):
    log_file = tmp_path / "test.log"
    configure_logging(log_level="INFO", structured=True, log_file=str(log_file))

    logging.getLogger("cinode.file_test").info("Test file logging")

    log_data = json.loads(log_file.read_text().strip())
    assert log_data["message"] == "Test file logging"
    assert log_data["level"] == "INFO"
