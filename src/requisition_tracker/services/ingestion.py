"""Batch ingestion of uploaded spreadsheets into the requisition store.

Each file in a batch is parsed concurrently on a worker thread; the batch is
then joined and reconciled in upload order:

- a requisition whose name already exists in the store is reported as a
  duplicate and not imported;
- a second file in the same batch with a name already seen is rejected;
- only one file per batch can be held for manual configuration, any further
  file that needs it is rejected;
- while a file is held, the other successfully parsed files are not saved.
"""

import asyncio
import uuid
from dataclasses import dataclass

from requisition_tracker.config import settings
from requisition_tracker.models import (
    BatchReport,
    DuplicateFile,
    FileFailure,
    ManualParseRequired,
    ParseContext,
    PurchaseRequisition,
)
from requisition_tracker.services.manual_config import (
    ManualParseConfig,
    build_preview,
)
from requisition_tracker.services.parser import (
    DECODE_FAILURE_MESSAGE,
    NeedsManualParse,
    ParsedRequisition,
    ParseFailure,
    ParseOutcome,
    RequisitionParser,
)
from requisition_tracker.services.pending_manual_parse import (
    ManualParseRegistry,
    PendingManualParse,
)
from requisition_tracker.services.requisition_store import RequisitionStore
from requisition_tracker.utils.exceptions import (
    FileTooLargeError,
    PermissionDeniedError,
)
from requisition_tracker.utils.logging import LogContext, get_logger, timed_operation

logger = get_logger(__name__)

MULTIPLE_MANUAL_MESSAGE = (
    "Requires manual header selection. Can only process one at a time."
)


def duplicate_in_batch_message(name: str) -> str:
    return f'Duplicate name "{name}" in the same upload batch.'


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes


class IngestionController:
    """Coordinates parsing, reconciliation and storage of upload batches."""

    def __init__(
        self,
        store: RequisitionStore,
        parser: RequisitionParser | None = None,
        registry: ManualParseRegistry | None = None,
    ) -> None:
        self._store = store
        self._parser = parser or RequisitionParser()
        self._registry = registry or ManualParseRegistry()

    @property
    def registry(self) -> ManualParseRegistry:
        return self._registry

    async def ingest(
        self, files: list[UploadedFile], context: ParseContext
    ) -> BatchReport:
        """Parse a batch of files and store the resulting requisitions.

        Args:
            files: Uploaded files in the order they were submitted.
            context: Submitter name and role.

        Returns:
            BatchReport describing what was imported, rejected or held.
        """
        batch_id = str(uuid.uuid4())
        with LogContext(batch_id=batch_id):
            with timed_operation(logger, "ingest_batch") as metrics:
                metrics.files_processed = len(files)
                logger.info(
                    "Upload batch received",
                    file_count=len(files),
                    submitter=context.submitter,
                )
                outcomes = await asyncio.gather(
                    *(asyncio.to_thread(self._parse_one, f, context) for f in files)
                )
                report = self._reconcile(batch_id, list(outcomes), context)
                metrics.items_extracted = sum(len(pr.items) for pr in report.imported)

            logger.info(
                "Upload batch processed",
                imported=len(report.imported),
                failed=len(report.failed),
                duplicates=len(report.duplicates),
                manual_parse=report.manual_parse is not None,
            )
            return report

    def ingest_manual(
        self, token: str, config: ManualParseConfig, context: ParseContext
    ) -> BatchReport:
        """Parse a held grid with an operator-supplied configuration.

        The grid stays held when parsing fails so the configuration can be
        corrected and resubmitted.

        Raises:
            PermissionDeniedError: If the caller is not an admin.
            ManualParseNotFoundError: If the token is unknown or expired.
        """
        if not context.is_admin:
            raise PermissionDeniedError("configure manual parsing", context.submitter)

        pending = self._registry.get(token)
        batch_id = str(uuid.uuid4())
        with LogContext(batch_id=batch_id, filename=pending.filename):
            outcome = self._parser.parse_with_manual_config(
                pending.grid, pending.filename, config, context
            )
            report = BatchReport(batch_id=batch_id)
            if isinstance(outcome, ParseFailure):
                report.failed.append(
                    FileFailure(filename=outcome.filename, error=outcome.message)
                )
                return report

            self._registry.release(token)
            pr = outcome.requisition
            existing = self._store.find_by_name(pr.name)
            if existing is not None:
                report.duplicates.append(
                    DuplicateFile(filename=outcome.filename, existing_pr_id=existing.id)
                )
                report.selected_pr_id = existing.id
                return report

            self._store.add(pr)
            report.imported.append(pr)
            report.selected_pr_id = pr.id
            logger.info("Manually configured requisition imported", pr_id=pr.id)
            return report

    def _parse_one(self, upload: UploadedFile, context: ParseContext) -> ParseOutcome:
        max_size = settings.max_file_size_bytes
        if len(upload.content) > max_size:
            error = FileTooLargeError(len(upload.content), max_size, upload.filename)
            logger.warning("Upload rejected", error=error.message)
            return ParseFailure(filename=upload.filename, message=error.message)
        try:
            return self._parser.parse_file(upload.content, upload.filename, context)
        except Exception as e:
            logger.error(
                "File parse failed",
                filename=upload.filename,
                error=f"{type(e).__name__}: {e}",
                error_type=type(e).__name__,
                exc_info=True,
            )
            return ParseFailure(
                filename=upload.filename, message=DECODE_FAILURE_MESSAGE
            )

    def _reconcile(
        self, batch_id: str, outcomes: list[ParseOutcome], context: ParseContext
    ) -> BatchReport:
        report = BatchReport(batch_id=batch_id)
        accepted: list[ParsedRequisition] = []
        held: PendingManualParse | None = None
        seen_names: set[str] = set()

        for outcome in outcomes:
            if isinstance(outcome, ParsedRequisition):
                name = outcome.requisition.name
                existing = self._store.find_by_name(name)
                if existing is not None:
                    report.duplicates.append(
                        DuplicateFile(
                            filename=outcome.filename, existing_pr_id=existing.id
                        )
                    )
                elif name in seen_names:
                    report.failed.append(
                        FileFailure(
                            filename=outcome.filename,
                            error=duplicate_in_batch_message(name),
                        )
                    )
                else:
                    seen_names.add(name)
                    accepted.append(outcome)
            elif isinstance(outcome, NeedsManualParse):
                if held is None:
                    held = self._registry.hold(
                        outcome.filename, outcome.grid, context.submitter
                    )
                else:
                    report.failed.append(
                        FileFailure(
                            filename=outcome.filename, error=MULTIPLE_MANUAL_MESSAGE
                        )
                    )
            else:
                report.failed.append(
                    FileFailure(filename=outcome.filename, error=outcome.message)
                )

        if held is not None:
            report.manual_parse = _manual_parse_required(held)
            report.unsaved = [parsed.filename for parsed in accepted]
            return report

        prs: list[PurchaseRequisition] = [parsed.requisition for parsed in accepted]
        self._store.add_many(prs)
        report.imported = prs
        if report.duplicates:
            report.selected_pr_id = report.duplicates[0].existing_pr_id
        elif prs:
            report.selected_pr_id = prs[0].id
        return report


def _manual_parse_required(pending: PendingManualParse) -> ManualParseRequired:
    preview = build_preview(pending.grid)
    return ManualParseRequired(
        filename=pending.filename,
        token=pending.token,
        preview_rows=preview.rows,
        column_letters=preview.column_letters,
        total_rows=preview.total_rows,
        expires_at=pending.expires_at,
    )
