"""Locate the item table's header row."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from requisition_tracker.worksheet import CellValue, TextCell, WorksheetGrid

DESCRIPTION_LABEL = "description"
QTY_LABEL = "qty"


@dataclass(frozen=True)
class HeaderLocation:
    """0-based coordinates of the header row and its two key columns."""

    row: int
    desc_col: int
    qty_col: int


def _first_index(
    row: list[CellValue], predicate: Callable[[str], bool]
) -> int | None:
    for idx, cell in enumerate(row):
        if isinstance(cell, TextCell) and predicate(cell.value):
            return idx
    return None


def locate(grid: WorksheetGrid) -> HeaderLocation | None:
    """Find the first row holding both a description and a qty label.

    A description label is any text cell containing "description"
    (case-insensitive); a qty label must be exactly "qty" once trimmed.
    "Quantity" does not qualify.

    Returns:
        The header location, or None when no row qualifies.
    """
    for row_index, row in enumerate(grid.rows):
        desc_col = _first_index(row, lambda text: DESCRIPTION_LABEL in text.lower())
        if desc_col is None:
            continue
        qty_col = _first_index(row, lambda text: text.strip().lower() == QTY_LABEL)
        if qty_col is None:
            continue
        return HeaderLocation(row=row_index, desc_col=desc_col, qty_col=qty_col)
    return None
