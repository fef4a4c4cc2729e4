"""Structured logging configuration for cinode.

Provides JSON-formatted logs carrying an operation id and blob-level
context. Key material and plaintext never go into log records.
"""

import contextvars
import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

# Groups every blob written while storing one file or directory
operation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    'operation_id', default=None
)


@contextmanager
def operation_context(operation_id: str | None = None) -> Iterator[str]:
    """Tag log records emitted inside the block with an operation id.

    An id already set by an enclosing operation is kept.
    """
    current = operation_id_var.get()
    if current is not None:
        yield current
        return

    token = operation_id_var.set(operation_id or uuid.uuid4().hex)
    try:
        yield operation_id_var.get()
    finally:
        operation_id_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs logs in JSON format with timestamp, level, logger name, message,
    and optional context fields like blob_id, operation, operation_id.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        operation_id = operation_id_var.get()
        if operation_id:
            log_data["operation_id"] = operation_id

        if hasattr(record, "blob_id"):
            log_data["blob_id"] = record.blob_id
        if hasattr(record, "operation"):
            log_data["operation"] = record.operation
        if hasattr(record, "duration_ms"):
            log_data["duration_ms"] = record.duration_ms
        if hasattr(record, "extra"):
            log_data["extra"] = record.extra

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class StructuredLogger:
    """Helper for structured logging with context fields.

    Wraps standard Python logger to make it easy to add structured fields
    like blob_id, operation, duration_ms, etc.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_operation(
        self,
        level: str,
        message: str,
        blob_id: str | None = None,
        operation: str | None = None,
        duration_ms: int | None = None,
        **extra: Any
    ) -> None:
        """Log with structured fields.

        Args:
            level: Log level (INFO, WARNING, ERROR, etc.)
            message: Log message
            blob_id: Optional blob id the message is about
            operation: Optional operation name (e.g., "blob.create")
            duration_ms: Optional operation duration in milliseconds
            **extra: Additional fields to include in log
        """
        log_level = getattr(logging, level.upper())
        if not self.logger.isEnabledFor(log_level):
            return

        record = self.logger.makeRecord(
            self.logger.name,
            log_level,
            "(structured)",
            0,
            message,
            (),
            None
        )

        if blob_id:
            record.blob_id = blob_id
        if operation:
            record.operation = operation
        if duration_ms is not None:
            record.duration_ms = duration_ms
        if extra:
            record.extra = extra

        self.logger.handle(record)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log at INFO level."""
        self.log_operation("INFO", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR level."""
        self.log_operation("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log at DEBUG level."""
        self.log_operation("DEBUG", message, **kwargs)


def configure_logging(
    log_level: str = "INFO",
    structured: bool = True,
    log_file: str | None = None
) -> None:
    """Configure library logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        structured: If True, use JSON formatter; if False, use human-readable
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger("cinode")
    root_logger.setLevel(log_level.upper())

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
