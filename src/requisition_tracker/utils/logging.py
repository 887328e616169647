"""Structured logging utilities for the requisition tracker.

This module provides:
- Request and batch ID tracking using contextvars for correlation
- Structured logging with consistent format and metadata
- Timing helpers for parse and ingestion stages

Usage:
    from requisition_tracker.utils.logging import (
        get_logger,
        set_request_id,
        LogContext,
    )

    logger = get_logger(__name__)

    with LogContext(batch_id="batch-456", filename="PR-001.xlsx"):
        logger.info("Parsing spreadsheet", rows=42)

    with timed_operation(logger, "parse_file") as metrics:
        metrics.items_extracted = 12
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_batch_id_var: ContextVar[str | None] = ContextVar("batch_id", default=None)
_extra_context_var: ContextVar[dict[str, Any] | None] = ContextVar(
    "extra_context", default=None
)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_var.get()


def set_request_id(request_id: str | None) -> None:
    """Set the request ID in context.

    Args:
        request_id: The request ID to set, or None to clear.
    """
    _request_id_var.set(request_id)


def get_batch_id() -> str | None:
    """Get the current upload batch ID from context."""
    return _batch_id_var.get()


def set_batch_id(batch_id: str | None) -> None:
    """Set the upload batch ID in context.

    Args:
        batch_id: The batch ID to set, or None to clear.
    """
    _batch_id_var.set(batch_id)


def get_extra_context() -> dict[str, Any]:
    """Get additional context from context vars."""
    ctx = _extra_context_var.get()
    return ctx if ctx is not None else {}


def set_extra_context(context: dict[str, Any]) -> None:
    """Set additional context in context vars."""
    _extra_context_var.set(context)


def clear_context() -> None:
    """Clear all context variables."""
    _request_id_var.set(None)
    _batch_id_var.set(None)
    _extra_context_var.set(None)


@dataclass
class PerformanceMetrics:
    """Container for timing and volume metrics of one operation.

    Attributes:
        operation: Name of the operation being measured.
        start_time: When the operation started.
        end_time: When the operation ended.
        duration_seconds: Duration in seconds.
        rows_scanned: Number of worksheet rows examined.
        items_extracted: Number of line items produced.
        files_processed: Number of files handled (batch operations).
        custom_metrics: Additional custom metrics.
    """

    operation: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    duration_seconds: float = 0.0
    rows_scanned: int = 0
    items_extracted: int = 0
    files_processed: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)

    def finish(self) -> None:
        """Mark the operation as complete and calculate duration."""
        self.end_time = datetime.now(UTC)
        self.duration_seconds = (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging, omitting zero counters."""
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        if self.rows_scanned > 0:
            result["rows_scanned"] = self.rows_scanned
        if self.items_extracted > 0:
            result["items_extracted"] = self.items_extracted
        if self.files_processed > 0:
            result["files_processed"] = self.files_processed
        if self.custom_metrics:
            result["custom_metrics"] = self.custom_metrics
        return result


class StructuredLogFormatter(logging.Formatter):
    """Log formatter that prefixes messages with the active context.

    Adds request_id, batch_id and any LogContext values to each record
    when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        prefix_parts = []
        request_id = get_request_id()
        batch_id = get_batch_id()
        if request_id:
            prefix_parts.append(f"request_id={request_id}")
        if batch_id:
            prefix_parts.append(f"batch_id={batch_id}")

        for key, value in get_extra_context().items():
            prefix_parts.append(f"{key}={value}")

        prefix = f"[{' '.join(prefix_parts)}] " if prefix_parts else ""

        original_msg = record.msg
        record.msg = f"{prefix}{original_msg}"
        result = super().format(record)
        record.msg = original_msg

        return result


class StructuredLogger:
    """Logger wrapper that renders keyword arguments as key=value pairs.

    Example:
        logger.info("Header row located", row=4, desc_col=1, qty_col=3)
        # -> "Header row located | row=4, desc_col=1, qty_col=3"
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)
        self._name = name

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying Python logger."""
        return self._logger

    def _build_message(
        self,
        message: str,
        **kwargs: Any,
    ) -> str:
        if not kwargs:
            return message

        parts = [f"{k}={v}" for k, v in kwargs.items()]
        return f"{message} | {', '.join(parts)}"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._build_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._build_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._build_message(message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._logger.error(self._build_message(message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log an exception with traceback."""
        self._logger.exception(self._build_message(message, **kwargs))

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        """Log performance metrics."""
        self.info(
            f"Performance: {metrics.operation}",
            **metrics.to_dict(),
        )

    def log_parse_result(
        self,
        filename: str,
        outcome: str,
        items: int = 0,
        message: str | None = None,
    ) -> None:
        """Log the outcome of parsing one file.

        Args:
            filename: Name of the uploaded file.
            outcome: Outcome kind ("parsed", "failed", "needs_manual_parse").
            items: Number of line items extracted.
            message: Failure message, if any.
        """
        kwargs: dict[str, Any] = {"filename": filename, "outcome": outcome}
        if items:
            kwargs["items"] = items
        if message:
            kwargs["message"] = message

        level = logging.WARNING if outcome == "failed" else logging.INFO
        self._logger.log(level, self._build_message("Parse finished", **kwargs))


class LogContext:
    """Context manager for adding temporary context to logs.

    Usage:
        with LogContext(batch_id="123", filename="PR-7.xlsx"):
            logger.info("Processing...")  # includes batch_id and filename
    """

    def __init__(self, **kwargs: Any) -> None:
        self._new_context = kwargs
        self._old_context: dict[str, Any] = {}
        self._old_batch_id: str | None = None
        self._old_request_id: str | None = None

    def __enter__(self) -> "LogContext":
        self._old_context = get_extra_context().copy()
        self._old_batch_id = get_batch_id()
        self._old_request_id = get_request_id()

        new_context = dict(self._new_context)
        batch_id = new_context.pop("batch_id", None)
        request_id = new_context.pop("request_id", None)

        if batch_id is not None:
            set_batch_id(batch_id)
        if request_id is not None:
            set_request_id(request_id)

        merged = self._old_context.copy()
        merged.update(new_context)
        set_extra_context(merged)

        return self

    def __exit__(self, *args: Any) -> None:
        set_extra_context(self._old_context)
        set_batch_id(self._old_batch_id)
        set_request_id(self._old_request_id)


@contextmanager
def timed_operation(
    logger: StructuredLogger,
    operation: str,
) -> Generator[PerformanceMetrics, None, None]:
    """Context manager for timing operations.

    Usage:
        with timed_operation(logger, "parse_file") as metrics:
            metrics.rows_scanned = len(grid)

        # Automatically logs: "Performance: parse_file | duration_seconds=..."

    Args:
        logger: Logger to use for output.
        operation: Name of the operation.

    Yields:
        PerformanceMetrics instance for tracking.
    """
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (int or string like "INFO").
        format_string: Custom format string (uses default if None).
        use_structured_formatter: Whether to use the structured formatter.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter: logging.Formatter
    if use_structured_formatter:
        formatter = StructuredLogFormatter(format_string)
    else:
        formatter = logging.Formatter(format_string)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        StructuredLogger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("Requisition saved", pr_id="1700000000000-PR-7.xlsx")
    """
    return StructuredLogger(name)
