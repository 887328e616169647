"""Tests for the end-to-end RequisitionParser."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from requisition_tracker.models import ParseContext
from requisition_tracker.services.manual_config import ManualParseConfig
from requisition_tracker.services.parser import (
    DECODE_FAILURE_MESSAGE,
    HEADER_NOT_FOUND_MESSAGE,
    MANUAL_FAILURE_PREFIX,
    NeedsManualParse,
    ParsedRequisition,
    ParseFailure,
    RequisitionParser,
)
from requisition_tracker.services.pr_assembler import NO_ITEMS_MESSAGE
from requisition_tracker.worksheet import WorksheetGrid

WorkbookFactory = Callable[..., bytes]


@pytest.fixture
def parser() -> RequisitionParser:
    return RequisitionParser()


@pytest.fixture
def headerless_grid() -> WorksheetGrid:
    return WorksheetGrid.from_values(
        [
            ["Supplier order"],
            ["Line", "Goods", "Count"],
            [1, "Bolt", 4],
            [2, "Nut", 8],
        ]
    )


class TestParseGrid:
    def test_wrapped_description_scenario(
        self, parser: RequisitionParser, viewer_context: ParseContext
    ) -> None:
        grid = WorksheetGrid.from_values(
            [
                [],
                [],
                ["No", "Item Description", "Qty"],
                ["1", "Widget A", ""],
                ["", "(cont.)", "10"],
            ]
        )

        outcome = parser.parse_grid(grid, "PR-A.xlsx", viewer_context)

        assert isinstance(outcome, ParsedRequisition)
        pr = outcome.requisition
        assert pr.name == "PR-A"
        assert len(pr.items) == 1
        assert pr.items[0].description == "Widget A\n(cont.)"
        assert pr.items[0].original_quantity == 10

    def test_full_requisition(
        self,
        parser: RequisitionParser,
        viewer_context: ParseContext,
        requisition_grid: WorksheetGrid,
    ) -> None:
        outcome = parser.parse_grid(requisition_grid, "PR-7.xlsx", viewer_context)

        assert isinstance(outcome, ParsedRequisition)
        pr = outcome.requisition
        assert pr.issue_date == "3/1/2024"
        assert pr.requisition_by == "Jordan Lee"
        assert pr.approved_by == "Morgan Diaz"
        assert [(i.description, i.original_quantity) for i in pr.items] == [
            ("Hex bolt M6", 20),
            ("Cable tie 200mm\nblack", 5),
            ("Safety gloves", 4),
        ]
        assert pr.last_modified_by is not None
        assert pr.last_modified_by.user_name == "Vic Viewer"

    def test_missing_header_signals_manual_parse_for_admin(
        self,
        parser: RequisitionParser,
        admin_context: ParseContext,
        headerless_grid: WorksheetGrid,
    ) -> None:
        outcome = parser.parse_grid(headerless_grid, "PR-B.xlsx", admin_context)

        assert isinstance(outcome, NeedsManualParse)
        assert outcome.filename == "PR-B.xlsx"
        assert outcome.grid is headerless_grid

    def test_missing_header_is_rejected_for_viewer(
        self,
        parser: RequisitionParser,
        viewer_context: ParseContext,
        headerless_grid: WorksheetGrid,
    ) -> None:
        outcome = parser.parse_grid(headerless_grid, "PR-B.xlsx", viewer_context)

        assert outcome == ParseFailure(
            filename="PR-B.xlsx", message=HEADER_NOT_FOUND_MESSAGE
        )

    def test_header_without_items_fails(
        self, parser: RequisitionParser, admin_context: ParseContext
    ) -> None:
        grid = WorksheetGrid.from_values([["Description", "Qty"], ["", 0]])

        outcome = parser.parse_grid(grid, "PR-C.xlsx", admin_context)

        assert outcome == ParseFailure(filename="PR-C.xlsx", message=NO_ITEMS_MESSAGE)


class TestParseFile:
    def test_parses_workbook_bytes(
        self,
        parser: RequisitionParser,
        viewer_context: ParseContext,
        make_workbook: WorkbookFactory,
    ) -> None:
        content = make_workbook(
            [
                ["Item Description", "Qty"],
                ["Bolt M6", None],
                [None, None],
                [None, 20],
            ],
            merges=["A2:A4"],
        )

        outcome = parser.parse_file(content, "PR-9.xlsx", viewer_context)

        assert isinstance(outcome, ParsedRequisition)
        items = outcome.requisition.items
        assert [(i.description, i.original_quantity) for i in items] == [
            ("Bolt M6", 20)
        ]

    def test_parses_csv_bytes(
        self, parser: RequisitionParser, viewer_context: ParseContext
    ) -> None:
        content = (
            b"Date,2024-02-10\nNo,Item Description,Qty\n1,Widget A,\n,(cont.),10\n"
        )

        outcome = parser.parse_file(content, "PR-10.csv", viewer_context)

        assert isinstance(outcome, ParsedRequisition)
        assert outcome.requisition.name == "PR-10"
        assert outcome.requisition.issue_date == "2/10/2024"
        assert outcome.requisition.items[0].description == "Widget A\n(cont.)"

    @pytest.mark.parametrize(
        ("content", "filename"),
        [(b"not a workbook", "PR.xlsx"), (b"%PDF-1.4", "PR.pdf")],
    )
    def test_undecodable_files_fail_with_fixed_message(
        self,
        parser: RequisitionParser,
        viewer_context: ParseContext,
        content: bytes,
        filename: str,
    ) -> None:
        outcome = parser.parse_file(content, filename, viewer_context)

        assert outcome == ParseFailure(
            filename=filename, message=DECODE_FAILURE_MESSAGE
        )


class TestParseWithManualConfig:
    def test_manual_columns_skip_header_detection(
        self,
        parser: RequisitionParser,
        admin_context: ParseContext,
        headerless_grid: WorksheetGrid,
    ) -> None:
        config = ManualParseConfig(
            header_row_number=2, desc_col_letter="B", qty_col_letter="C"
        )

        outcome = parser.parse_with_manual_config(
            headerless_grid, "PR-B.xlsx", config, admin_context
        )

        assert isinstance(outcome, ParsedRequisition)
        assert [i.description for i in outcome.requisition.items] == ["Bolt", "Nut"]

    def test_invalid_config_is_reported_without_prefix(
        self,
        parser: RequisitionParser,
        admin_context: ParseContext,
        headerless_grid: WorksheetGrid,
    ) -> None:
        config = ManualParseConfig(
            header_row_number=2, desc_col_letter="B", qty_col_letter="B"
        )

        outcome = parser.parse_with_manual_config(
            headerless_grid, "PR-B.xlsx", config, admin_context
        )

        assert isinstance(outcome, ParseFailure)
        assert outcome.message == "Description and quantity columns must be different."

    def test_no_items_is_prefixed(
        self,
        parser: RequisitionParser,
        admin_context: ParseContext,
        headerless_grid: WorksheetGrid,
    ) -> None:
        config = ManualParseConfig(
            header_row_number=4, desc_col_letter="B", qty_col_letter="C"
        )

        outcome = parser.parse_with_manual_config(
            headerless_grid, "PR-B.xlsx", config, admin_context
        )

        assert outcome == ParseFailure(
            filename="PR-B.xlsx", message=MANUAL_FAILURE_PREFIX + NO_ITEMS_MESSAGE
        )
