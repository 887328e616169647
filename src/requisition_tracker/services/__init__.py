"""Services for spreadsheet parsing, storage and reporting."""

from requisition_tracker.services.spreadsheet_decoder import (
    SpreadsheetDecoder,
    UnsupportedFormatError,
)

__all__ = ["SpreadsheetDecoder", "UnsupportedFormatError"]
