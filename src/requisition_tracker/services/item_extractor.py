"""Line-item extraction from the rows below a header.

Descriptions often wrap over several rows (or sit in a vertically merged
cell) with the quantity written only on the last row of the item. The
extractor therefore accumulates description text row by row and closes an
item when the quantity column holds a positive number.

State per pass:

* accumulating: each row's resolved description text is appended to the
  draft;
* close: a valid quantity on the same row turns the draft into a PRItem and
  resets it, including the merge ranges consumed so far;
* end of grid: leftover text becomes a zero-quantity note item.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass, field

from requisition_tracker.models import PRItem
from requisition_tracker.services.cell_resolver import MergeIndex, resolve
from requisition_tracker.utils.logging import get_logger
from requisition_tracker.worksheet import (
    CellValue,
    MergeRange,
    NumberCell,
    TextCell,
    WorksheetGrid,
    cell_text,
    is_blank,
)

logger = get_logger(__name__)

NO_QUANTITY_COMMENT = "Note: No quantity specified in PR"

# Decimal number text; digit separators and nan/inf spellings do not match.
_NUMERIC_TEXT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class DraftItem:
    """Description lines gathered for the item under construction."""

    description_parts: list[str] = field(default_factory=list)
    processed_merge_keys: set[tuple[int, int]] = field(default_factory=set)

    def add(self, text: str) -> None:
        if text:
            self.description_parts.append(text)

    @property
    def description(self) -> str:
        return "\n".join(self.description_parts).strip()

    def reset(self) -> None:
        self.description_parts = []
        self.processed_merge_keys = set()


def coerce_quantity(cell: CellValue) -> float:
    """Convert a raw quantity cell to a number.

    Text is trimmed before conversion and blank text counts as 0; empty
    cells, dates and unparseable text are NaN.
    """
    if isinstance(cell, NumberCell):
        return cell.value
    if isinstance(cell, TextCell):
        text = cell.value.strip()
        if not text:
            return 0.0
        if not _NUMERIC_TEXT.fullmatch(text):
            return math.nan
        return float(text)
    return math.nan


def is_valid_quantity(value: float) -> bool:
    return math.isfinite(value) and value > 0


class ItemIdFactory:
    """Generates item ids unique within one extraction run."""

    def __init__(self, file_identity: str, stamp: int | None = None) -> None:
        if stamp is None:
            stamp = time.time_ns() // 1_000_000
        self._prefix = f"{stamp}-{file_identity}"
        self._counter = 0

    def next_id(self) -> str:
        item_id = f"{self._prefix}-{self._counter}"
        self._counter += 1
        return item_id


def _description_text(cell: CellValue) -> str:
    if is_blank(cell):
        return ""
    return cell_text(cell).strip()


def extract(
    grid: WorksheetGrid,
    merges: list[MergeRange],
    header_row: int,
    desc_col: int,
    qty_col: int,
    file_identity: str = "",
) -> list[PRItem]:
    """Extract line items from the rows strictly below ``header_row``.

    Args:
        grid: Decoded worksheet.
        merges: Merged ranges of the worksheet.
        header_row: 0-based header row index.
        desc_col: 0-based description column.
        qty_col: 0-based quantity column.
        file_identity: File name, used to build item ids.

    Returns:
        Items in sheet order; empty when nothing could be extracted.
    """
    merge_index = MergeIndex(merges)
    ids = ItemIdFactory(file_identity)
    draft = DraftItem()
    items: list[PRItem] = []
    dropped_quantities = 0

    for row_index in range(header_row + 1, grid.row_count):
        description_cell = resolve(
            grid, merge_index, row_index, desc_col, draft.processed_merge_keys
        )
        draft.add(_description_text(description_cell))

        # Quantities are read raw; they are never expected inside a merge.
        quantity = coerce_quantity(grid.cell(row_index, qty_col))
        if not is_valid_quantity(quantity):
            continue

        description = draft.description
        if not description:
            dropped_quantities += 1
            continue

        items.append(
            PRItem(
                id=ids.next_id(),
                description=description,
                original_quantity=quantity,
            )
        )
        draft.reset()

    remaining = draft.description
    if remaining:
        items.append(
            PRItem(
                id=ids.next_id(),
                description=remaining,
                original_quantity=0,
                comment=NO_QUANTITY_COMMENT,
            )
        )

    logger.debug(
        "Items extracted",
        header_row=header_row,
        desc_col=desc_col,
        qty_col=qty_col,
        items=len(items),
        dropped_quantities=dropped_quantities,
        trailing_note=bool(remaining),
    )
    return items
