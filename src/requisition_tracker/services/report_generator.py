"""Status reports over stored requisitions, with Excel export.

Requisitions are selected by issue date (inclusive over whole days) and
status. The workbook export has an ``In Progress`` sheet listing every
pending item and a ``Completed PRs`` sheet; empty sheets are left out.
"""

from collections.abc import Iterable
from datetime import date, datetime, time
from io import BytesIO

import pandas as pd

from requisition_tracker.models import (
    PendingItemRow,
    PRStatus,
    PurchaseRequisition,
    ReportRequisition,
    StatusReport,
)
from requisition_tracker.utils.logging import get_logger

logger = get_logger(__name__)

IN_PROGRESS_SHEET = "In Progress"
COMPLETED_SHEET = "Completed PRs"
SUMMARY_SHEET = "Summary"

IN_PROGRESS_COLUMNS = {
    "PR Name": 40,
    "Item Description": 50,
    "Original Qty": 15,
    "Received Qty": 15,
    "Pending Qty": 15,
    "Comment": 40,
}
COMPLETED_COLUMNS = {"PR Name": 40, "Issue Date": 15}

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def parse_issue_date(issue_date: str) -> datetime | None:
    """Parse a stored ``M/D/YYYY`` issue date; None when unparseable."""
    try:
        return datetime.strptime(issue_date.strip(), "%m/%d/%Y")
    except ValueError:
        return None


def report_filename(start: date, end: date) -> str:
    return f"PR_Status_Report_{start.isoformat()}_to_{end.isoformat()}.xlsx"


def _entry(pr: PurchaseRequisition) -> ReportRequisition:
    return ReportRequisition(
        pr_id=pr.id,
        pr_name=pr.name,
        issue_date=pr.issue_date,
        status=pr.status,
        total_items=len(pr.items),
        pending_items=sum(1 for item in pr.items if not item.is_complete),
    )


def build_report(
    prs: Iterable[PurchaseRequisition],
    start: date,
    end: date,
    statuses: Iterable[PRStatus] | None = None,
) -> StatusReport:
    """Select requisitions issued in [start, end] with one of the statuses.

    Args:
        prs: Candidate requisitions.
        start: First day of the range (from midnight).
        end: Last day of the range (until the end of the day).
        statuses: Statuses to include; all statuses when omitted.

    Returns:
        StatusReport with in-progress and completed requisitions and the
        pending items of the in-progress ones.
    """
    selected_statuses = list(statuses) if statuses is not None else list(PRStatus)
    range_start = datetime.combine(start, time.min)
    range_end = datetime.combine(end, time.max)

    in_progress: list[ReportRequisition] = []
    completed: list[ReportRequisition] = []
    pending_items: list[PendingItemRow] = []
    skipped = 0

    for pr in prs:
        issued = parse_issue_date(pr.issue_date)
        if issued is None:
            skipped += 1
            continue
        if not range_start <= issued <= range_end:
            continue
        if pr.status not in selected_statuses:
            continue

        if pr.status == PRStatus.COMPLETED:
            completed.append(_entry(pr))
            continue

        in_progress.append(_entry(pr))
        pending_items.extend(
            PendingItemRow(
                pr_name=pr.name,
                item_description=item.description,
                original_quantity=item.original_quantity,
                received_quantity=item.received_quantity,
                pending_quantity=item.pending_quantity,
                comment=item.comment,
            )
            for item in pr.items
            if not item.is_complete
        )

    if skipped:
        logger.warning(
            "Requisitions with unreadable issue dates skipped", count=skipped
        )

    report = StatusReport(
        start=start,
        end=end,
        statuses=selected_statuses,
        total=len(in_progress) + len(completed),
        in_progress=in_progress,
        completed=completed,
        pending_items=pending_items,
    )
    logger.info(
        "Status report built",
        total=report.total,
        in_progress=len(in_progress),
        completed=len(completed),
    )
    return report


def _in_progress_frame(report: StatusReport) -> pd.DataFrame:
    return pd.DataFrame(
        [
            [
                row.pr_name,
                row.item_description,
                row.original_quantity,
                row.received_quantity,
                row.pending_quantity,
                row.comment,
            ]
            for row in report.pending_items
        ],
        columns=list(IN_PROGRESS_COLUMNS),
    )


def _completed_frame(report: StatusReport) -> pd.DataFrame:
    return pd.DataFrame(
        [[entry.pr_name, entry.issue_date] for entry in report.completed],
        columns=list(COMPLETED_COLUMNS),
    )


def _summary_frame(report: StatusReport) -> pd.DataFrame:
    period = f"{report.start.isoformat()} to {report.end.isoformat()}"
    return pd.DataFrame(
        [
            ["Report period", period],
            ["Requisitions", report.total],
        ],
        columns=["Field", "Value"],
    )


def _write_sheet(
    writer: pd.ExcelWriter,
    frame: pd.DataFrame,
    sheet_name: str,
    widths: dict[str, int] | None = None,
) -> None:
    frame.to_excel(writer, index=False, sheet_name=sheet_name)
    if not widths:
        return
    worksheet = writer.sheets[sheet_name]
    for idx, width in enumerate(widths.values()):
        letter = chr(ord("A") + idx)
        worksheet.column_dimensions[letter].width = width


def export_report_xlsx(report: StatusReport) -> bytes:
    """Render a status report as an .xlsx workbook.

    Returns:
        Workbook bytes. A report with nothing to list yields a workbook with
        a single Summary sheet.
    """
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        written = 0
        if report.in_progress:
            _write_sheet(
                writer,
                _in_progress_frame(report),
                IN_PROGRESS_SHEET,
                IN_PROGRESS_COLUMNS,
            )
            written += 1
        if report.completed:
            _write_sheet(
                writer, _completed_frame(report), COMPLETED_SHEET, COMPLETED_COLUMNS
            )
            written += 1
        if not written:
            _write_sheet(writer, _summary_frame(report), SUMMARY_SHEET)
    return buffer.getvalue()
