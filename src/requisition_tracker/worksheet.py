"""Dataclasses representing a decoded worksheet.

A worksheet is a ragged grid of typed cells plus the merged ranges declared
on the sheet. Cells are one of four variants; code that needs to branch on
the kind of value does so with ``isinstance`` against these classes.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any


@dataclass(frozen=True)
class EmptyCell:
    """A cell with no value (absent, None or an empty string)."""


@dataclass(frozen=True)
class TextCell:
    value: str


@dataclass(frozen=True)
class NumberCell:
    value: float


@dataclass(frozen=True)
class DateCell:
    value: datetime


CellValue = EmptyCell | TextCell | NumberCell | DateCell

EMPTY = EmptyCell()


def cell_from_raw(raw: Any) -> CellValue:
    """Convert a raw decoder value into a CellValue.

    Booleans become 1/0 numbers; ``date`` values are promoted to midnight
    datetimes; bare ``time`` values are kept as text.
    """
    if raw is None:
        return EMPTY
    if isinstance(raw, (TextCell, NumberCell, DateCell, EmptyCell)):
        return raw
    if isinstance(raw, bool):
        return NumberCell(1.0 if raw else 0.0)
    if isinstance(raw, (int, float)):
        return NumberCell(float(raw))
    if isinstance(raw, datetime):
        return DateCell(raw)
    if isinstance(raw, date):
        return DateCell(datetime.combine(raw, time.min))
    text = str(raw)
    if text == "":
        return EMPTY
    return TextCell(text)


def format_number(value: float) -> str:
    """Render a number the way a spreadsheet user typed it (``10`` not ``10.0``)."""
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def cell_text(cell: CellValue) -> str:
    """Return the display text of a cell (empty string for empty cells)."""
    if isinstance(cell, TextCell):
        return cell.value
    if isinstance(cell, NumberCell):
        return format_number(cell.value)
    if isinstance(cell, DateCell):
        if cell.value.time() == time.min:
            return cell.value.date().isoformat()
        return cell.value.isoformat(sep=" ")
    return ""


def is_blank(cell: CellValue) -> bool:
    """Whether a cell carries no usable value.

    Whitespace-only text, zero and NaN count as blank, matching how
    spreadsheet exports treat them when looking for a label's value.
    """
    if isinstance(cell, EmptyCell):
        return True
    if isinstance(cell, TextCell):
        return cell.value.strip() == ""
    if isinstance(cell, NumberCell):
        return cell.value == 0 or math.isnan(cell.value)
    return False


@dataclass(frozen=True)
class MergeRange:
    """A merged rectangle, 0-based and inclusive on both ends.

    Only ``(start_row, start_col)`` carries a value in the raw grid.
    """

    start_row: int
    start_col: int
    end_row: int
    end_col: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.start_row, self.start_col)

    def contains(self, row: int, col: int) -> bool:
        return (
            self.start_row <= row <= self.end_row
            and self.start_col <= col <= self.end_col
        )


@dataclass
class WorksheetGrid:
    """Represents a single decoded worksheet."""

    rows: list[list[CellValue]]
    merges: list[MergeRange] = field(default_factory=list)
    sheet_name: str | None = None

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def row(self, index: int) -> list[CellValue]:
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return []

    def cell(self, row: int, col: int) -> CellValue:
        """Return the raw cell at (row, col); out-of-range reads are empty."""
        cells = self.row(row)
        if 0 <= col < len(cells):
            return cells[col]
        return EMPTY

    @classmethod
    def from_values(
        cls,
        rows: Iterable[Iterable[Any]],
        merges: Iterable[MergeRange] | None = None,
        sheet_name: str | None = None,
    ) -> WorksheetGrid:
        """Build a grid from plain Python values (strings, numbers, dates, None)."""
        return cls(
            rows=[[cell_from_raw(value) for value in row] for row in rows],
            merges=list(merges or []),
            sheet_name=sheet_name,
        )
