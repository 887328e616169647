"""Decode uploaded spreadsheet bytes into a WorksheetGrid.

Excel workbooks are read with openpyxl (first worksheet only, native dates
preserved, merged ranges kept). CSV files are decoded with chardet-detected
encoding and a sniffed delimiter, then parsed with pandas; they carry no merges.
"""

from __future__ import annotations

import csv
import io
from pathlib import PurePath
from typing import Any

import chardet
import pandas as pd
from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from requisition_tracker.utils.exceptions import (
    SpreadsheetDecodeError,
    UnsupportedFormatError,
)
from requisition_tracker.utils.logging import get_logger
from requisition_tracker.worksheet import MergeRange, WorksheetGrid, cell_from_raw

logger = get_logger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
CSV_EXTENSIONS = {".csv"}
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS | CSV_EXTENSIONS


class SpreadsheetDecoder:
    """Turns raw spreadsheet bytes into rows of typed cells plus merges."""

    # Common encodings to try if chardet is not confident
    FALLBACK_ENCODINGS = ["utf-8", "cp1252", "latin-1"]

    MIN_ENCODING_CONFIDENCE = 0.5

    def decode(self, content: bytes, filename: str) -> WorksheetGrid:
        """Decode a spreadsheet file.

        Args:
            content: File content as bytes.
            filename: Original file name; its extension selects the reader.

        Returns:
            WorksheetGrid of the first worksheet.

        Raises:
            UnsupportedFormatError: If the extension is not supported.
            SpreadsheetDecodeError: If the bytes cannot be read.
        """
        extension = PurePath(filename).suffix.lower()
        if extension in EXCEL_EXTENSIONS:
            return self._decode_workbook(content, filename)
        if extension in CSV_EXTENSIONS:
            return self._decode_csv(content, filename)
        raise UnsupportedFormatError(
            f"Unsupported spreadsheet format: {extension or '(none)'}",
            extension=extension or None,
            filename=filename,
        )

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _decode_workbook(self, content: bytes, filename: str) -> WorksheetGrid:
        # openpyxl surfaces malformed parts as arbitrary exception types, from
        # loading through to reading cell values.
        try:
            workbook = load_workbook(
                filename=io.BytesIO(content), data_only=True, read_only=False
            )
            if not workbook.worksheets:
                raise SpreadsheetDecodeError(
                    "Workbook has no worksheets", filename=filename
                )
            sheet = workbook.worksheets[0]
            rows = [
                [cell_from_raw(value) for value in _trim_trailing(row)]
                for row in sheet.iter_rows(values_only=True)
            ]
            merges = self._merge_ranges(sheet)
        except SpreadsheetDecodeError:
            raise
        except Exception as e:
            raise SpreadsheetDecodeError(
                f"Could not read workbook: {type(e).__name__}: {e}",
                filename=filename,
            ) from e

        logger.debug(
            "Workbook decoded",
            filename=filename,
            sheet=sheet.title,
            rows=len(rows),
            merges=len(merges),
        )
        return WorksheetGrid(rows=rows, merges=merges, sheet_name=sheet.title)

    @staticmethod
    def _merge_ranges(sheet: Worksheet) -> list[MergeRange]:
        """Convert openpyxl's 1-based merged ranges to 0-based MergeRanges."""
        return [
            MergeRange(
                start_row=rng.min_row - 1,
                start_col=rng.min_col - 1,
                end_row=rng.max_row - 1,
                end_col=rng.max_col - 1,
            )
            for rng in sheet.merged_cells.ranges
        ]

    def _decode_csv(self, content: bytes, filename: str) -> WorksheetGrid:
        encoding = self._detect_encoding(content)
        try:
            text = content.decode(encoding, errors="replace")
        except LookupError:
            text = content.decode("utf-8", errors="replace")
        try:
            dialect = csv.Sniffer().sniff(text[:8192], delimiters=",;\t|")
            delimiter = dialect.delimiter
        except csv.Error:
            logger.debug("CSV delimiter detection failed, defaulting to comma")
            delimiter = ","

        # Rows are ragged, so every line is read against the widest one.
        width = max((line.count(delimiter) for line in text.splitlines()), default=0)
        try:
            df = pd.read_csv(
                io.StringIO(text),
                delimiter=delimiter,
                header=None,
                names=list(range(width + 1)),
                dtype=str,  # Keep all values as strings
                keep_default_na=False,  # Don't convert empty strings to NaN
                skip_blank_lines=False,  # Row numbers must match the file
            )
        except pd.errors.EmptyDataError:
            logger.debug("CSV is empty", filename=filename)
            return WorksheetGrid(rows=[], merges=[], sheet_name=None)
        except pd.errors.ParserError as e:
            raise SpreadsheetDecodeError(
                f"Could not read CSV: {e}", filename=filename
            ) from e

        rows = [
            [cell_from_raw(value) for value in _trim_trailing(row)]
            for row in df.fillna("").values.tolist()
        ]

        logger.debug(
            "CSV decoded", filename=filename, rows=len(rows), delimiter=delimiter
        )
        return WorksheetGrid(rows=rows, merges=[], sheet_name=None)

    def _detect_encoding(self, content: bytes) -> str:
        if not content:
            return "utf-8"

        result = chardet.detect(content)
        encoding = result.get("encoding")
        confidence = result.get("confidence", 0.0) or 0.0
        if encoding and confidence >= self.MIN_ENCODING_CONFIDENCE:
            return str(encoding)

        for fallback in self.FALLBACK_ENCODINGS:
            try:
                content.decode(fallback)
                return fallback
            except UnicodeDecodeError:
                continue

        logger.warning("Could not detect encoding, falling back to latin-1")
        return "latin-1"


def _trim_trailing(values: tuple[Any, ...] | list[Any]) -> list[Any]:
    """Drop trailing empty values so rows stay ragged like the sheet."""
    trimmed = list(values)
    while trimmed and (trimmed[-1] is None or trimmed[-1] == ""):
        trimmed.pop()
    return trimmed
