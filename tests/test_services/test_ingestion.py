"""Tests for batch ingestion of uploaded spreadsheets."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from requisition_tracker.config import settings
from requisition_tracker.models import (
    BatchReport,
    DuplicateFile,
    FileFailure,
    ParseContext,
    PRItem,
    PurchaseRequisition,
)
from requisition_tracker.services.ingestion import (
    MULTIPLE_MANUAL_MESSAGE,
    IngestionController,
    UploadedFile,
    duplicate_in_batch_message,
)
from requisition_tracker.services.manual_config import ManualParseConfig
from requisition_tracker.services.parser import (
    DECODE_FAILURE_MESSAGE,
    HEADER_NOT_FOUND_MESSAGE,
    ParseOutcome,
    RequisitionParser,
)
from requisition_tracker.services.requisition_store import RequisitionStore
from requisition_tracker.utils.exceptions import (
    ManualParseNotFoundError,
    PermissionDeniedError,
)

WorkbookFactory = Callable[..., bytes]

VALID_CSV = b"No,Item Description,Qty\n1,Widget A,\n,(cont.),10\n2,Gasket,3\n"
HEADERLESS_CSV = b"Line,Goods,Count\n1,Bolt,4\n2,Nut,8\n"


def _upload(filename: str, content: bytes = VALID_CSV) -> UploadedFile:
    return UploadedFile(filename=filename, content=content)


@pytest.fixture
def controller(store: RequisitionStore) -> IngestionController:
    return IngestionController(store)


def _existing(name: str) -> PurchaseRequisition:
    return PurchaseRequisition(
        id=f"existing-{name}",
        name=name,
        issue_date="1/1/2024",
        items=[PRItem(id="e-0", description="Old", original_quantity=1)],
    )


class TestIngest:
    async def test_imports_all_parsed_files(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        viewer_context: ParseContext,
        make_workbook: WorkbookFactory,
    ) -> None:
        workbook = make_workbook([["Item Description", "Qty"], ["Bolt", 4]])

        report = await controller.ingest(
            [_upload("PR-1.csv"), _upload("PR-2.xlsx", workbook)], viewer_context
        )

        assert [pr.name for pr in report.imported] == ["PR-1", "PR-2"]
        assert report.failed == []
        assert report.duplicates == []
        assert report.manual_parse is None
        assert report.selected_pr_id == report.imported[0].id
        assert [pr.name for pr in store.list_requisitions()] == ["PR-1", "PR-2"]

    async def test_bad_file_does_not_abort_batch(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        viewer_context: ParseContext,
    ) -> None:
        report = await controller.ingest(
            [_upload("broken.xlsx", b"garbage"), _upload("PR-1.csv")], viewer_context
        )

        assert report.failed == [
            FileFailure(filename="broken.xlsx", error=DECODE_FAILURE_MESSAGE)
        ]
        assert [pr.name for pr in report.imported] == ["PR-1"]
        assert len(store) == 1

    async def test_malformed_workbook_does_not_abort_batch(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        admin_context: ParseContext,
        make_malformed_workbook: WorkbookFactory,
    ) -> None:
        broken = make_malformed_workbook([["Item Description", "Qty"], ["Bolt", 4]])

        report = await controller.ingest(
            [_upload("PR-1.csv"), _upload("PR-2.xlsx", broken)], admin_context
        )

        assert report.failed == [
            FileFailure(filename="PR-2.xlsx", error=DECODE_FAILURE_MESSAGE)
        ]
        assert [pr.name for pr in report.imported] == ["PR-1"]
        assert store.find_by_name("PR-1") is not None

    async def test_unexpected_parser_error_becomes_failure(
        self, store: RequisitionStore, viewer_context: ParseContext
    ) -> None:
        class ExplodingParser(RequisitionParser):
            def parse_file(
                self, content: bytes, filename: str, context: ParseContext
            ) -> ParseOutcome:
                if filename == "boom.csv":
                    raise RuntimeError("boom")
                return super().parse_file(content, filename, context)

        controller = IngestionController(store, parser=ExplodingParser())

        report = await controller.ingest(
            [_upload("boom.csv"), _upload("PR-1.csv")], viewer_context
        )

        assert report.failed == [
            FileFailure(filename="boom.csv", error=DECODE_FAILURE_MESSAGE)
        ]
        assert [pr.name for pr in report.imported] == ["PR-1"]

    async def test_existing_name_is_reported_as_duplicate(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        viewer_context: ParseContext,
    ) -> None:
        store.add(_existing("PR-1"))

        report = await controller.ingest([_upload("PR-1.csv")], viewer_context)

        assert report.duplicates == [
            DuplicateFile(filename="PR-1.csv", existing_pr_id="existing-PR-1")
        ]
        assert report.imported == []
        assert report.selected_pr_id == "existing-PR-1"
        assert len(store) == 1

    async def test_same_name_twice_in_one_batch(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        viewer_context: ParseContext,
        make_workbook: WorkbookFactory,
    ) -> None:
        workbook = make_workbook([["Item Description", "Qty"], ["Bolt", 4]])

        report = await controller.ingest(
            [_upload("PR-5.csv"), _upload("PR-5.xlsx", workbook)], viewer_context
        )

        assert [pr.name for pr in report.imported] == ["PR-5"]
        assert report.failed == [
            FileFailure(filename="PR-5.xlsx", error=duplicate_in_batch_message("PR-5"))
        ]
        assert len(store) == 1

    async def test_viewer_headerless_file_is_rejected(
        self, controller: IngestionController, viewer_context: ParseContext
    ) -> None:
        report = await controller.ingest(
            [_upload("PR-9.csv", HEADERLESS_CSV)], viewer_context
        )

        assert report.manual_parse is None
        assert report.failed == [
            FileFailure(filename="PR-9.csv", error=HEADER_NOT_FOUND_MESSAGE)
        ]

    async def test_admin_headerless_file_is_held(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        admin_context: ParseContext,
    ) -> None:
        report = await controller.ingest(
            [
                _upload("PR-1.csv"),
                _upload("PR-8.csv", HEADERLESS_CSV),
                _upload("PR-9.csv", HEADERLESS_CSV),
            ],
            admin_context,
        )

        assert report.manual_parse is not None
        assert report.manual_parse.filename == "PR-8.csv"
        assert report.manual_parse.preview_rows[0] == ["Line", "Goods", "Count"]
        assert report.manual_parse.column_letters == ["A", "B", "C"]
        assert report.manual_parse.total_rows == 3
        assert report.failed == [
            FileFailure(filename="PR-9.csv", error=MULTIPLE_MANUAL_MESSAGE)
        ]
        assert report.unsaved == ["PR-1.csv"]
        assert report.imported == []
        assert report.selected_pr_id is None
        assert len(store) == 0
        assert len(controller.registry) == 1

    async def test_oversized_file_is_rejected(
        self,
        controller: IngestionController,
        viewer_context: ParseContext,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "max_file_size_mb", 1)
        content = VALID_CSV + b"," * (1024 * 1024)

        report = await controller.ingest([_upload("PR-1.csv", content)], viewer_context)

        assert report.imported == []
        assert "exceeds maximum allowed size" in report.failed[0].error


class TestIngestManual:
    async def _hold(
        self, controller: IngestionController, admin_context: ParseContext
    ) -> str:
        report = await controller.ingest(
            [_upload("PR-8.csv", HEADERLESS_CSV)], admin_context
        )
        assert report.manual_parse is not None
        return report.manual_parse.token

    async def test_valid_config_imports_requisition(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        admin_context: ParseContext,
    ) -> None:
        token = await self._hold(controller, admin_context)
        config = ManualParseConfig(
            header_row_number=1, desc_col_letter="B", qty_col_letter="C"
        )

        report = controller.ingest_manual(token, config, admin_context)

        assert [pr.name for pr in report.imported] == ["PR-8"]
        assert [i.description for i in report.imported[0].items] == ["Bolt", "Nut"]
        assert report.selected_pr_id == report.imported[0].id
        assert store.find_by_name("PR-8") is not None
        with pytest.raises(ManualParseNotFoundError):
            controller.ingest_manual(token, config, admin_context)

    async def test_invalid_config_keeps_grid_held(
        self, controller: IngestionController, admin_context: ParseContext
    ) -> None:
        token = await self._hold(controller, admin_context)
        bad = ManualParseConfig(
            header_row_number=9, desc_col_letter="B", qty_col_letter="C"
        )
        good = ManualParseConfig(
            header_row_number=1, desc_col_letter="B", qty_col_letter="C"
        )

        failed = controller.ingest_manual(token, bad, admin_context)
        retried = controller.ingest_manual(token, good, admin_context)

        assert failed.failed[0].error.startswith("Header row 9 is out of range.")
        assert [pr.name for pr in retried.imported] == ["PR-8"]

    async def test_duplicate_after_manual_config(
        self,
        controller: IngestionController,
        store: RequisitionStore,
        admin_context: ParseContext,
    ) -> None:
        token = await self._hold(controller, admin_context)
        store.add(_existing("PR-8"))
        config = ManualParseConfig(
            header_row_number=1, desc_col_letter="B", qty_col_letter="C"
        )

        report = controller.ingest_manual(token, config, admin_context)

        assert report.duplicates == [
            DuplicateFile(filename="PR-8.csv", existing_pr_id="existing-PR-8")
        ]
        assert len(store) == 1

    async def test_viewer_cannot_configure(
        self,
        controller: IngestionController,
        admin_context: ParseContext,
        viewer_context: ParseContext,
    ) -> None:
        token = await self._hold(controller, admin_context)
        config = ManualParseConfig(
            header_row_number=1, desc_col_letter="B", qty_col_letter="C"
        )

        with pytest.raises(PermissionDeniedError):
            controller.ingest_manual(token, config, viewer_context)


class TestBatchReportSummary:
    def test_summary_of_mixed_batch(self) -> None:
        report = BatchReport(
            batch_id="b-1",
            imported=[_existing("PR-1")],
            failed=[FileFailure(filename="bad.xlsx", error="Broken")],
            duplicates=[DuplicateFile(filename="PR-2.xlsx", existing_pr_id="x")],
        )

        assert report.summary() == (
            "Successfully imported 1 PR(s).\n\n"
            "Failed to import 1 file(s):\n- bad.xlsx: Broken\n\n"
            "The following 1 file(s) already exist and were not re-imported:\n"
            "- PR-2.xlsx"
        )

    def test_empty_batch_summary(self) -> None:
        assert BatchReport(batch_id="b-1").summary() == ""
