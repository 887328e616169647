from __future__ import annotations

import re
import zipfile
from collections.abc import Callable, Iterable
from datetime import datetime
from io import BytesIO
from typing import Any

import pytest
from openpyxl import Workbook

from requisition_tracker.models import ParseContext, UserRole
from requisition_tracker.services.requisition_store import RequisitionStore
from requisition_tracker.worksheet import WorksheetGrid

FIXED_NOW = datetime(2024, 3, 15, 9, 30)

WorkbookFactory = Callable[..., bytes]


@pytest.fixture
def admin_context() -> ParseContext:
    return ParseContext(submitter="Alex Admin", role=UserRole.ADMIN)


@pytest.fixture
def viewer_context() -> ParseContext:
    return ParseContext(submitter="Vic Viewer", role=UserRole.VIEWER)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def store() -> RequisitionStore:
    """Store whose clock is pinned to FIXED_NOW."""
    return RequisitionStore(clock=lambda: FIXED_NOW)


@pytest.fixture
def requisition_rows() -> list[list[Any]]:
    """A typical requisition sheet: metadata block, header, three items."""
    return [
        ["Purchase Requisition"],
        ["Date:", datetime(2024, 3, 1)],
        ["Requisition By:", "Jordan Lee"],
        ["Approved By:", None, "Morgan Diaz"],
        [],
        ["No", "Item Description", "Unit", "Qty"],
        [1, "Hex bolt M6", "pcs", 20],
        [2, "Cable tie 200mm", "bag", None],
        [None, "black", None, 5],
        [3, "Safety gloves", "pair", "4"],
    ]


@pytest.fixture
def requisition_grid(requisition_rows: list[list[Any]]) -> WorksheetGrid:
    return WorksheetGrid.from_values(requisition_rows)


@pytest.fixture
def make_workbook() -> WorkbookFactory:
    """Factory building .xlsx bytes from rows and A1-style merge ranges."""

    def build(rows: Iterable[Iterable[Any]], merges: Iterable[str] = ()) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "PR"
        for row in rows:
            sheet.append(list(row))
        for merge in merges:
            sheet.merge_cells(merge)
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return build


@pytest.fixture
def make_malformed_workbook(make_workbook: WorkbookFactory) -> WorkbookFactory:
    """Factory building a well-formed .xlsx zip whose styles part is corrupt."""

    def build(rows: Iterable[Iterable[Any]], merges: Iterable[str] = ()) -> bytes:
        source = zipfile.ZipFile(BytesIO(make_workbook(rows, merges)))
        buffer = BytesIO()
        with source, zipfile.ZipFile(buffer, "w") as target:
            for info in source.infolist():
                data = source.read(info.filename)
                if info.filename == "xl/styles.xml":
                    data = re.sub(rb'numFmtId="\d+"', b'numFmtId="abc"', data)
                target.writestr(info, data)
        return buffer.getvalue()

    return build
