"""Pydantic models for requisitions and API requests/responses."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PRStatus(str, Enum):
    """Lifecycle status of a purchase requisition."""

    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class UserRole(str, Enum):
    """Role of the operator using the tracker."""

    ADMIN = "Admin"
    VIEWER = "Viewer"


class ParseContext(BaseModel):
    """Who is submitting files, passed explicitly into the parse pipeline."""

    submitter: str = Field(..., description="Name recorded as last modifier")
    role: UserRole = Field(default=UserRole.VIEWER, description="Submitter role")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class LastModifiedInfo(BaseModel):
    """Who touched a record last, and when (epoch milliseconds)."""

    user_name: str
    timestamp: int


class PRItem(BaseModel):
    """A single line item of a purchase requisition."""

    id: str = Field(..., description="Item identifier, unique within the PR")
    description: str = Field(..., min_length=1, description="Item description")
    original_quantity: float = Field(
        ..., ge=0, description="Requested quantity (0 for a trailing note item)"
    )
    received_quantity: float = Field(default=0, ge=0, description="Quantity received")
    comment: str = Field(default="", description="Free-form receipt comment")
    is_complete: bool = Field(default=False, description="Whether fully received")
    last_modified_by: LastModifiedInfo | None = None

    @property
    def pending_quantity(self) -> float:
        return max(self.original_quantity - self.received_quantity, 0)


class PurchaseRequisition(BaseModel):
    """A purchase requisition assembled from one spreadsheet."""

    id: str
    name: str = Field(..., description="File name without spreadsheet extension")
    issue_date: str = Field(..., description="Issue date as a locale date string")
    status: PRStatus = PRStatus.IN_PROGRESS
    items: list[PRItem]
    requisition_by: str = "N/A"
    approved_by: str = "N/A"
    last_modified_by: LastModifiedInfo | None = None


# =============================================================================
# API payloads
# =============================================================================


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class ErrorDetail(BaseModel):
    """Error detail model for API error responses."""

    detail: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E1001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )


class ManualParseRequest(BaseModel):
    """Header row and column letters chosen by an admin."""

    token: str = Field(..., description="Token returned with the upload report")
    header_row_number: int = Field(..., description="1-based header row number")
    desc_col_letter: str = Field(..., description="Description column letter (A-Z)")
    qty_col_letter: str = Field(..., description="Quantity column letter (A-Z)")


class ItemUpdateRequest(BaseModel):
    """Partial update of a line item's receipt state."""

    received_quantity: float | None = Field(default=None, ge=0)
    comment: str | None = None
    is_complete: bool | None = None


class DeleteRequisitionsRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class ItemSearchResult(BaseModel):
    """A line item matched by a search, with its owning requisition."""

    item: PRItem
    pr_name: str
    pr_id: str


# =============================================================================
# Upload batch reports
# =============================================================================


class FileFailure(BaseModel):
    filename: str
    error: str


class DuplicateFile(BaseModel):
    """A parsed file whose requisition name already exists in the store."""

    filename: str
    existing_pr_id: str


class ManualParseRequired(BaseModel):
    """A file held for manual header configuration by an admin."""

    filename: str
    token: str = Field(..., description="Pass back with the manual configuration")
    preview_rows: list[list[str]] = Field(
        ..., description="Leading rows rendered as text"
    )
    column_letters: list[str]
    total_rows: int
    expires_at: datetime


class BatchReport(BaseModel):
    """Outcome of one upload batch (or one manual configuration)."""

    batch_id: str
    imported: list[PurchaseRequisition] = Field(default_factory=list)
    unsaved: list[str] = Field(
        default_factory=list,
        description="Parsed files not saved because another file needs manual setup",
    )
    failed: list[FileFailure] = Field(default_factory=list)
    duplicates: list[DuplicateFile] = Field(default_factory=list)
    manual_parse: ManualParseRequired | None = None
    selected_pr_id: str | None = None

    def summary(self) -> str:
        """Human-readable summary of the batch for display to the operator."""
        if self.manual_parse is not None:
            message = (
                f'File "{self.manual_parse.filename}" requires manual configuration.'
            )
            if self.unsaved:
                message += (
                    f"\n\n{len(self.unsaved)} other file(s) were parsed successfully. "
                    "You may need to re-upload them after configuring."
                )
            other_failures = len(self.failed) + len(self.duplicates)
            if other_failures:
                message += (
                    f"\n\n{other_failures} other file(s) also failed "
                    "or were duplicates."
                )
            return message

        parts: list[str] = []
        if self.imported:
            parts.append(f"Successfully imported {len(self.imported)} PR(s).")
        if self.failed:
            lines = "\n".join(f"- {f.filename}: {f.error}" for f in self.failed)
            parts.append(f"Failed to import {len(self.failed)} file(s):\n{lines}")
        if self.duplicates:
            lines = "\n".join(f"- {d.filename}" for d in self.duplicates)
            parts.append(
                f"The following {len(self.duplicates)} file(s) already exist and "
                f"were not re-imported:\n{lines}"
            )
        return "\n\n".join(parts)


# =============================================================================
# Status reports
# =============================================================================


class ReportRequisition(BaseModel):
    """One requisition within a status report."""

    pr_id: str
    pr_name: str
    issue_date: str
    status: PRStatus
    total_items: int
    pending_items: int


class PendingItemRow(BaseModel):
    """An item still awaiting receipt, as listed in the In Progress sheet."""

    pr_name: str
    item_description: str
    original_quantity: float
    received_quantity: float
    pending_quantity: float
    comment: str


class StatusReport(BaseModel):
    """Requisitions issued within a date range, filtered by status."""

    start: date
    end: date
    statuses: list[PRStatus]
    total: int
    in_progress: list[ReportRequisition] = Field(default_factory=list)
    completed: list[ReportRequisition] = Field(default_factory=list)
    pending_items: list[PendingItemRow] = Field(default_factory=list)


class UploadResponse(BatchReport):
    """Batch report plus the summary text shown to the operator."""

    summary_text: str = ""

    @classmethod
    def from_report(cls, report: BatchReport) -> "UploadResponse":
        return cls(**report.model_dump(), summary_text=report.summary())


class DeleteResponse(BaseModel):
    deleted: int
