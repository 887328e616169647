"""Utilities package for the requisition tracker.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from requisition_tracker.utils.exceptions import (
    ErrorCode,
    FileError,
    HTTPStatusMixin,
    PermissionDeniedError,
    PRTError,
    RequisitionError,
    UnsupportedFormatError,
    ValidationError,
)
from requisition_tracker.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ErrorCode",
    "FileError",
    "HTTPStatusMixin",
    "PRTError",
    "PermissionDeniedError",
    "RequisitionError",
    "UnsupportedFormatError",
    "ValidationError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
