"""Manual header configuration for sheets whose header cannot be detected.

An admin picks the header row (1-based, as shown in a spreadsheet) and the
description / quantity column letters. Input is validated before any
extraction is attempted and is never clamped into range.
"""

from __future__ import annotations

import string
from dataclasses import dataclass

from requisition_tracker.config import settings
from requisition_tracker.services.pr_assembler import format_locale_date
from requisition_tracker.worksheet import CellValue, DateCell, WorksheetGrid, cell_text

MAX_COLUMNS = len(string.ascii_uppercase)


@dataclass(frozen=True)
class ManualParseConfig:
    header_row_number: int
    desc_col_letter: str
    qty_col_letter: str


@dataclass(frozen=True)
class ManualColumns:
    """Validated 0-based coordinates."""

    header_row: int
    desc_col: int
    qty_col: int


@dataclass(frozen=True)
class GridPreview:
    """Leading rows rendered as text for an operator to choose from."""

    rows: list[list[str]]
    column_letters: list[str]
    total_rows: int


def column_index(letter: str) -> int | None:
    """Convert a single column letter to a 0-based index (None if invalid)."""
    normalized = letter.strip().upper()
    if len(normalized) != 1 or normalized not in string.ascii_uppercase:
        return None
    return string.ascii_uppercase.index(normalized)


def column_letter(index: int) -> str:
    return string.ascii_uppercase[index]


def validate_manual_config(
    config: ManualParseConfig, total_rows: int
) -> ManualColumns | str:
    """Validate an operator's header configuration.

    Returns:
        ManualColumns when valid, otherwise a message naming the problem.
    """
    if not 1 <= config.header_row_number <= total_rows:
        return (
            f"Header row {config.header_row_number} is out of range. "
            f"Enter a row number between 1 and {total_rows}."
        )

    desc_col = column_index(config.desc_col_letter)
    if desc_col is None:
        return (
            f"Description column '{config.desc_col_letter}' is not a valid column. "
            "Use a single letter from A to Z."
        )

    qty_col = column_index(config.qty_col_letter)
    if qty_col is None:
        return (
            f"Quantity column '{config.qty_col_letter}' is not a valid column. "
            "Use a single letter from A to Z."
        )

    if desc_col == qty_col:
        return "Description and quantity columns must be different."

    return ManualColumns(
        header_row=config.header_row_number - 1,
        desc_col=desc_col,
        qty_col=qty_col,
    )


def _preview_text(cell: CellValue) -> str:
    if isinstance(cell, DateCell):
        return format_locale_date(cell.value)
    return cell_text(cell)


def build_preview(grid: WorksheetGrid, rows: int | None = None) -> GridPreview:
    """Render the first rows of a grid for manual header selection."""
    limit = settings.manual_preview_rows if rows is None else rows
    leading = grid.rows[:limit]
    width = min(max((len(row) for row in leading), default=0), MAX_COLUMNS)
    return GridPreview(
        rows=[[_preview_text(cell) for cell in row] for row in leading],
        column_letters=[column_letter(idx) for idx in range(width)],
        total_rows=grid.row_count,
    )
