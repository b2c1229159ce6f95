"""
Structured JSON logging for dualwrite-ingest

Every module logs through get_logger(__name__). Records are rendered as JSON
by python-json-logger and written to stderr, leaving stdout to the CLI.

A batch binds its id with ``batch_context``; the id lives in a context
variable, so it follows every task the batch spawns and is stamped on each
log line emitted inside the batch.
"""
import contextvars
import logging
import os
import sys
import time
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "dualwrite"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [batch=%(batch_id)s] %(message)s"

_current_batch: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "dualwrite_batch_id", default=None
)


@contextmanager
def batch_context(batch_id: str):
    """Bind batch_id to all log records emitted within the block."""
    token = _current_batch.set(batch_id)
    try:
        yield batch_id
    finally:
        _current_batch.reset(token)


def current_batch_id() -> str | None:
    return _current_batch.get()


class BatchContextFilter(logging.Filter):
    """Stamps records with the bound batch id unless the call passed its own."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "batch_id", None) is None:
            record.batch_id = _current_batch.get()
        return True


class IngestJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for ingestion logs.

    Every line carries timestamp, level, logger, source location and the
    bound batch id; ``extra`` fields are merged at the top level.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", self.formatTime(record, self.datefmt))
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if log_record.get("batch_id") is None:
            log_record.pop("batch_id", None)


def _build_formatter(format_type: str) -> logging.Formatter:
    if format_type == "text":
        return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return IngestJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Setup and configure a logger

    Args:
        name: Logger name
        level: Log level (defaults to LOG_LEVEL env var, then INFO)
        format_type: "json" or "text" (defaults to LOG_FORMAT env var, then json)

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.addFilter(BatchContextFilter())
    handler.setFormatter(_build_formatter(format_type or os.getenv("LOG_FORMAT", "json")))

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers[:] = [handler]
    logger.propagate = False

    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance, configuring it on first use

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


class log_operation:
    """
    Context manager for logging operation duration

    Usage:
        with log_operation("Replaying reconciliation queue", logger=logger, limit=100):
            ...
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time: float | None = None

    def _fields(self, **fields) -> dict:
        return {"operation": self.operation_name, **fields, **self.extra_fields}

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"Starting: {self.operation_name}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.monotonic() - self.start_time, 3)

        if exc_type is None:
            self.logger.info(
                f"Completed: {self.operation_name}",
                extra=self._fields(duration_seconds=duration, status="success"),
            )
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra=self._fields(
                    duration_seconds=duration,
                    status="error",
                    error_type=exc_type.__name__,
                    error_message=str(exc_val),
                ),
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
