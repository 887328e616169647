"""Centralized exception classes for the requisition tracker.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

The parsing pipeline itself never lets these escape: a file that cannot be
decoded or yields no items is reported as a value so that one bad file in a
batch does not abort the others. The exceptions are raised at the edges
(decoder, store, API) and translated there.

Exception Hierarchy:
    PRTError (base)
    ├── FileError
    │   ├── FileTooLargeError
    │   ├── UnsupportedFormatError
    │   └── SpreadsheetDecodeError
    ├── RequisitionError
    │   ├── RequisitionNotFoundError
    │   ├── ItemNotFoundError
    │   └── ManualParseNotFoundError
    ├── PermissionDeniedError
    └── ValidationError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that can be used
    for programmatic error handling and documentation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: File/spreadsheet errors
    - E2xxx: Input validation errors
    - E3xxx: Requisition store errors
    - E4xxx: Access errors
    - E9xxx: Internal/unexpected errors
    """

    # File errors (E1xxx)
    FILE_TOO_LARGE = "E1001"
    UNSUPPORTED_FORMAT = "E1002"
    FILE_READ_ERROR = "E1003"
    SPREADSHEET_DECODE_FAILED = "E1004"

    # Validation errors (E2xxx)
    VALIDATION_FAILED = "E2001"
    INVALID_QUANTITY = "E2002"

    # Requisition errors (E3xxx)
    REQUISITION_NOT_FOUND = "E3001"
    ITEM_NOT_FOUND = "E3002"
    MANUAL_PARSE_NOT_FOUND = "E3003"
    REQUISITION_UPDATE_FAILED = "E3004"

    # Access errors (E4xxx)
    PERMISSION_DENIED = "E4001"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses should set the `http_status` class attribute.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception."""
        return self.http_status


class PRTError(Exception, HTTPStatusMixin):
    """Base exception for all requisition tracker errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses."""
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# File Errors (E1xxx)
# =============================================================================


class FileError(PRTError):
    """Base class for file-related errors."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.FILE_READ_ERROR,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file name information.

        Args:
            message: Error message.
            error_code: Error code.
            filename: Name of the problematic file.
            details: Additional details.
        """
        details = details or {}
        if filename:
            details["filename"] = filename
        super().__init__(message, error_code, details)
        self.filename = filename


class FileTooLargeError(FileError):
    """Raised when an uploaded file exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            filename: Optional file name.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = (
            f"File size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            filename=filename,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


class UnsupportedFormatError(FileError):
    """Raised when a spreadsheet format cannot be decoded."""

    def __init__(
        self,
        message: str,
        extension: str | None = None,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with format information.

        Args:
            message: Error message.
            extension: File extension that was rejected.
            filename: Optional file name.
            details: Additional details.
        """
        details = details or {}
        if extension:
            details["extension"] = extension
        super().__init__(
            message=message,
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
            filename=filename,
            details=details,
        )
        self.extension = extension


class SpreadsheetDecodeError(FileError):
    """Raised when workbook bytes are unreadable or corrupt."""

    def __init__(
        self,
        message: str,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.SPREADSHEET_DECODE_FAILED,
            filename=filename,
            details=details,
        )


# =============================================================================
# Requisition Errors (E3xxx)
# =============================================================================


class RequisitionError(PRTError):
    """Base class for requisition store errors."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.REQUISITION_UPDATE_FAILED,
        pr_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with requisition ID.

        Args:
            message: Error message.
            error_code: Error code.
            pr_id: ID of the affected requisition.
            details: Additional details.
        """
        details = details or {}
        if pr_id:
            details["pr_id"] = pr_id
        super().__init__(message, error_code, details)
        self.pr_id = pr_id


class RequisitionNotFoundError(RequisitionError):
    """Raised when a requisition is not found."""

    http_status: int = 404

    def __init__(
        self,
        pr_id: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = message or f"Purchase requisition not found: {pr_id}"
        super().__init__(
            message=message,
            error_code=ErrorCode.REQUISITION_NOT_FOUND,
            pr_id=pr_id,
            details=details,
        )


class ItemNotFoundError(RequisitionError):
    """Raised when a line item is not part of the requisition."""

    http_status: int = 404

    def __init__(
        self,
        pr_id: str,
        item_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["item_id"] = item_id
        super().__init__(
            message=f"Item {item_id} not found in requisition {pr_id}",
            error_code=ErrorCode.ITEM_NOT_FOUND,
            pr_id=pr_id,
            details=details,
        )
        self.item_id = item_id


class ManualParseNotFoundError(RequisitionError):
    """Raised when a held manual-parse token is unknown or expired."""

    http_status: int = 404

    def __init__(self, token: str) -> None:
        super().__init__(
            message=f"No pending manual configuration for token: {token}",
            error_code=ErrorCode.MANUAL_PARSE_NOT_FOUND,
            details={"token": token},
        )
        self.token = token


# =============================================================================
# Access Errors (E4xxx)
# =============================================================================


class PermissionDeniedError(PRTError):
    """Raised when the caller's role does not allow an operation."""

    http_status: int = 403

    def __init__(
        self,
        operation: str,
        user_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["operation"] = operation
        if user_name:
            details["user_name"] = user_name
        super().__init__(
            message=f"Viewers are not allowed to {operation}",
            error_code=ErrorCode.PERMISSION_DENIED,
            details=details,
        )
        self.operation = operation


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(PRTError):
    """General validation error for input data."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            field: Field that failed validation.
            errors: List of validation errors.
            error_code: Error code.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        if errors:
            details["validation_errors"] = errors
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )
        self.field = field
