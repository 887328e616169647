"""Assemble extracted metadata and items into a PurchaseRequisition."""

from __future__ import annotations

import re
from datetime import datetime

from requisition_tracker.models import (
    LastModifiedInfo,
    PRItem,
    PRStatus,
    PurchaseRequisition,
)
from requisition_tracker.services.metadata_scanner import ExtractedMetadata

NO_ITEMS_MESSAGE = (
    "No valid item rows found. Check column and row settings, and ensure "
    "items have quantities greater than 0."
)

_SPREADSHEET_EXTENSION = re.compile(r"\.(xlsx|xls|csv)$", re.IGNORECASE)


def requisition_name(file_identity: str) -> str:
    """Strip a trailing .xlsx/.xls/.csv extension from a file name."""
    return _SPREADSHEET_EXTENSION.sub("", file_identity)


def format_locale_date(value: datetime) -> str:
    """Format a date as a US locale date string (``M/D/YYYY``)."""
    return f"{value.month}/{value.day}/{value.year}"


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def assemble(
    metadata: ExtractedMetadata,
    items: list[PRItem],
    file_identity: str,
    submitter: str,
    now: datetime | None = None,
) -> PurchaseRequisition | str:
    """Build a requisition, or return a failure message when there are no items.

    A freshly parsed requisition is always In Progress, even when every
    item is a zero-quantity note.
    """
    if not items:
        return NO_ITEMS_MESSAGE

    now = now or datetime.now()
    timestamp = epoch_millis(now)
    return PurchaseRequisition(
        id=f"{timestamp}-{file_identity}",
        name=requisition_name(file_identity),
        issue_date=format_locale_date(metadata.issue_date or now),
        status=PRStatus.IN_PROGRESS,
        items=items,
        requisition_by=metadata.requisition_by,
        approved_by=metadata.approved_by,
        last_modified_by=LastModifiedInfo(user_name=submitter, timestamp=timestamp),
    )
