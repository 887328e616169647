"""End-to-end parsing of one spreadsheet into a purchase requisition.

The parser never raises for bad input: every file ends in exactly one
outcome value so that a batch of uploads can be processed independently.

    bytes -> decode -> locate header -> scan metadata -> extract items -> assemble
                            |
                            +-- not found -> NeedsManualParse (admin)
                                             ParseFailure     (everyone else)
"""

from __future__ import annotations

from dataclasses import dataclass

from requisition_tracker.models import ParseContext, PurchaseRequisition
from requisition_tracker.services import (
    header_locator,
    item_extractor,
    metadata_scanner,
    pr_assembler,
)
from requisition_tracker.services.manual_config import (
    ManualParseConfig,
    validate_manual_config,
)
from requisition_tracker.services.spreadsheet_decoder import SpreadsheetDecoder
from requisition_tracker.utils.exceptions import FileError
from requisition_tracker.utils.logging import LogContext, get_logger, timed_operation
from requisition_tracker.worksheet import WorksheetGrid

logger = get_logger(__name__)

DECODE_FAILURE_MESSAGE = "Failed to parse. Please ensure it's a valid format."
HEADER_NOT_FOUND_MESSAGE = (
    "Could not automatically find headers. Please ask an admin to upload."
)
MANUAL_FAILURE_PREFIX = "Failed to parse with manual settings: "


@dataclass(frozen=True)
class ParsedRequisition:
    filename: str
    requisition: PurchaseRequisition


@dataclass(frozen=True)
class ParseFailure:
    filename: str
    message: str


@dataclass(frozen=True)
class NeedsManualParse:
    """Header detection failed; the grid is handed back for manual configuration."""

    filename: str
    grid: WorksheetGrid


ParseOutcome = ParsedRequisition | ParseFailure | NeedsManualParse


class RequisitionParser:
    """Runs the extraction pipeline for single files."""

    def __init__(self, decoder: SpreadsheetDecoder | None = None) -> None:
        self._decoder = decoder or SpreadsheetDecoder()

    def parse_file(
        self, content: bytes, filename: str, context: ParseContext
    ) -> ParseOutcome:
        """Decode and parse an uploaded file.

        Args:
            content: Raw file bytes.
            filename: Original file name (also the requisition's identity).
            context: Submitter name and role.

        Returns:
            One of ParsedRequisition, ParseFailure or NeedsManualParse.
        """
        with LogContext(filename=filename):
            try:
                grid = self._decoder.decode(content, filename)
            except FileError as e:
                logger.warning("Spreadsheet could not be decoded", error=e.message)
                return ParseFailure(filename=filename, message=DECODE_FAILURE_MESSAGE)
            return self.parse_grid(grid, filename, context)

    def parse_grid(
        self, grid: WorksheetGrid, filename: str, context: ParseContext
    ) -> ParseOutcome:
        """Parse an already decoded grid using automatic header detection."""
        with timed_operation(logger, "parse_grid") as metrics:
            metrics.rows_scanned = grid.row_count
            header = header_locator.locate(grid)
            if header is None:
                if context.is_admin:
                    logger.log_parse_result(filename, "needs_manual_parse")
                    return NeedsManualParse(filename=filename, grid=grid)
                logger.log_parse_result(
                    filename, "failed", message=HEADER_NOT_FOUND_MESSAGE
                )
                return ParseFailure(filename=filename, message=HEADER_NOT_FOUND_MESSAGE)

            logger.debug(
                "Header row located",
                row=header.row,
                desc_col=header.desc_col,
                qty_col=header.qty_col,
            )
            outcome = self._build(
                grid, filename, context, header.row, header.desc_col, header.qty_col
            )
            if isinstance(outcome, ParsedRequisition):
                metrics.items_extracted = len(outcome.requisition.items)
            return outcome

    def parse_with_manual_config(
        self,
        grid: WorksheetGrid,
        filename: str,
        config: ManualParseConfig,
        context: ParseContext,
    ) -> ParsedRequisition | ParseFailure:
        """Parse using operator-supplied header row and column letters.

        Header detection is skipped entirely. Invalid configuration is
        rejected before extraction.
        """
        columns = validate_manual_config(config, grid.row_count)
        if isinstance(columns, str):
            logger.log_parse_result(filename, "failed", message=columns)
            return ParseFailure(filename=filename, message=columns)

        outcome = self._build(
            grid,
            filename,
            context,
            columns.header_row,
            columns.desc_col,
            columns.qty_col,
        )
        if isinstance(outcome, ParseFailure):
            return ParseFailure(
                filename=filename, message=MANUAL_FAILURE_PREFIX + outcome.message
            )
        return outcome

    def _build(
        self,
        grid: WorksheetGrid,
        filename: str,
        context: ParseContext,
        header_row: int,
        desc_col: int,
        qty_col: int,
    ) -> ParsedRequisition | ParseFailure:
        metadata = metadata_scanner.scan(grid)
        items = item_extractor.extract(
            grid, grid.merges, header_row, desc_col, qty_col, file_identity=filename
        )
        result = pr_assembler.assemble(metadata, items, filename, context.submitter)
        if isinstance(result, str):
            logger.log_parse_result(filename, "failed", message=result)
            return ParseFailure(filename=filename, message=result)

        logger.log_parse_result(filename, "parsed", items=len(result.items))
        return ParsedRequisition(filename=filename, requisition=result)
