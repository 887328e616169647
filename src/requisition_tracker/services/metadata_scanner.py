"""Scanner for labelled header metadata (issue date, requisition by, approved by)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pandas as pd

from requisition_tracker.config import settings
from requisition_tracker.worksheet import (
    CellValue,
    DateCell,
    TextCell,
    WorksheetGrid,
    cell_text,
    is_blank,
)

DATE_LABEL = "date"
REQUISITION_BY_LABEL = "requisition by"
APPROVED_BY_LABEL = "approved by"
NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class ExtractedMetadata:
    """Metadata found in the leading rows of a requisition sheet."""

    issue_date: datetime | None = None
    requisition_by: str = NOT_AVAILABLE
    approved_by: str = NOT_AVAILABLE


def find_value_in_row(row: list[CellValue], label: str) -> CellValue | None:
    """Return the first non-blank cell to the right of a label cell.

    The label cell is the first text cell whose lowercased, trimmed text
    contains ``label``. Returns None when the label is absent or has no
    value after it on the same row.
    """
    label_index = next(
        (
            idx
            for idx, cell in enumerate(row)
            if isinstance(cell, TextCell) and label in cell.value.strip().lower()
        ),
        None,
    )
    if label_index is None:
        return None
    for cell in row[label_index + 1 :]:
        if not is_blank(cell):
            return cell
    return None


def parse_date_text(text: str) -> datetime | None:
    """Parse free-form date text, returning None when it is not a date."""
    try:
        parsed = pd.to_datetime(text.strip(), errors="coerce")
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    result: datetime = parsed.to_pydatetime()
    return result


def scan(grid: WorksheetGrid, window_size: int | None = None) -> ExtractedMetadata:
    """Scan the first ``window_size`` rows for PR metadata.

    Each label stops being searched once it is resolved, and the scan ends
    as soon as all three are found.

    Args:
        grid: Decoded worksheet.
        window_size: Rows to examine (defaults to settings.metadata_window_rows).

    Returns:
        ExtractedMetadata; unresolved names are "N/A", an unresolved date is None.
    """
    window = settings.metadata_window_rows if window_size is None else window_size

    issue_date: datetime | None = None
    requisition_by = NOT_AVAILABLE
    approved_by = NOT_AVAILABLE

    for row in grid.rows[:window]:
        if issue_date is None:
            found = find_value_in_row(row, DATE_LABEL)
            if isinstance(found, DateCell):
                issue_date = found.value
            elif isinstance(found, TextCell):
                issue_date = parse_date_text(found.value)

        if requisition_by == NOT_AVAILABLE:
            found = find_value_in_row(row, REQUISITION_BY_LABEL)
            if found is not None and not isinstance(found, DateCell):
                requisition_by = cell_text(found).strip()

        if approved_by == NOT_AVAILABLE:
            found = find_value_in_row(row, APPROVED_BY_LABEL)
            if found is not None and not isinstance(found, DateCell):
                approved_by = cell_text(found).strip()

        if (
            issue_date is not None
            and requisition_by != NOT_AVAILABLE
            and approved_by != NOT_AVAILABLE
        ):
            break

    return ExtractedMetadata(
        issue_date=issue_date,
        requisition_by=requisition_by,
        approved_by=approved_by,
    )
