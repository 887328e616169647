"""FastAPI application for the purchase requisition tracker."""

import asyncio
import uuid
from datetime import UTC, date, datetime, timedelta
from typing import Annotated, Any

from fastapi import (
    FastAPI,
    Depends,
    File,
    Header,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from requisition_tracker.config import settings, validate_settings_on_startup
from requisition_tracker.models import (
    DeleteRequisitionsRequest,
    DeleteResponse,
    ErrorDetail,
    HealthResponse,
    ItemSearchResult,
    ItemUpdateRequest,
    ManualParseRequest,
    ParseContext,
    PRStatus,
    PurchaseRequisition,
    StatusReport,
    UploadResponse,
    UserRole,
)
from requisition_tracker.services.ingestion import IngestionController, UploadedFile
from requisition_tracker.services.manual_config import ManualParseConfig
from requisition_tracker.services.report_generator import (
    XLSX_MEDIA_TYPE,
    build_report,
    export_report_xlsx,
    report_filename,
)
from requisition_tracker.services.requisition_store import RequisitionStore
from requisition_tracker.utils.exceptions import (
    ErrorCode,
    PermissionDeniedError,
    PRTError,
    ValidationError,
)
from requisition_tracker.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

# Configure structured logging using settings
configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

API_VERSION = "0.1.0"
DEFAULT_USER_NAME = "Anonymous"
DEFAULT_REPORT_DAYS = 30


def caller_context(
    x_user_name: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> ParseContext:
    """Build the caller's identity from the X-User-Name/X-User-Role headers."""
    role = UserRole.VIEWER
    if x_user_role:
        matches = [r for r in UserRole if r.value.lower() == x_user_role.lower()]
        if not matches:
            raise ValidationError(
                message=f"Unknown role '{x_user_role}'",
                field="X-User-Role",
                errors=[f"Expected one of: {', '.join(r.value for r in UserRole)}"],
            )
        role = matches[0]
    name = (x_user_name or "").strip() or DEFAULT_USER_NAME
    return ParseContext(submitter=name, role=role)


Caller = Annotated[ParseContext, Depends(caller_context)]


def require_admin(context: ParseContext, operation: str) -> None:
    if not context.is_admin:
        logger.warning(
            "Operation denied", operation=operation, user=context.submitter
        )
        raise PermissionDeniedError(operation, context.submitter)


def create_app(store: RequisitionStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Requisition store to serve; a fresh in-memory store when omitted.
    """
    app = FastAPI(
        title="Purchase Requisition Tracker API",
        description=(
            "Imports purchase requisitions from spreadsheets and tracks the "
            "receipt of their line items."
        ),
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.store = store or RequisitionStore()
    app.state.ingestion = IngestionController(app.state.store)

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    validate_settings_on_startup(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it in logs and the response headers."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(PRTError)
    async def prt_exception_handler(request: Request, exc: PRTError) -> JSONResponse:
        """Render application exceptions as structured error responses."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.error(
            f"PRT Error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=ErrorDetail(
                detail=exc.message,
                error_code=exc.error_code.value,
                details=exc.details if exc.details else None,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                detail=str(exc.detail),
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler that hides internals unless debugging."""
        request_id = getattr(request.state, "request_id", get_request_id())
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            detail = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            detail = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                detail=detail,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                request_id=request_id,
            ).model_dump(exclude_none=True),
        )

    def get_store(request: Request) -> RequisitionStore:
        store: RequisitionStore = request.app.state.store
        return store

    def get_ingestion(request: Request) -> IngestionController:
        controller: IngestionController = request.app.state.ingestion
        return controller

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        logger.debug("Health check requested")
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": API_VERSION,
        }

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #

    @app.post(
        "/requisitions/upload",
        response_model=UploadResponse,
        tags=["Import"],
        responses={400: {"model": ErrorDetail, "description": "No files provided"}},
    )
    async def upload_requisitions(
        request: Request,
        files: Annotated[
            list[UploadFile], File(description="Spreadsheets to import (.xlsx, .csv)")
        ],
        context: Caller,
    ) -> UploadResponse:
        """Import a batch of requisition spreadsheets.

        Each file is parsed independently. Files whose header row cannot be
        found are held for manual configuration when uploaded by an admin;
        the response then carries a token and a preview of the sheet.
        """
        uploads = [
            UploadedFile(filename=f.filename, content=await f.read())
            for f in files
            if f.filename
        ]
        if not uploads:
            raise ValidationError(
                message="At least one file must be provided", field="files"
            )

        report = await get_ingestion(request).ingest(uploads, context)
        return UploadResponse.from_report(report)

    @app.post(
        "/requisitions/manual-parse",
        response_model=UploadResponse,
        tags=["Import"],
        responses={
            403: {"model": ErrorDetail, "description": "Caller is not an admin"},
            404: {"model": ErrorDetail, "description": "Unknown or expired token"},
        },
    )
    async def manual_parse(
        request: Request,
        body: ManualParseRequest,
        context: Caller,
    ) -> UploadResponse:
        """Parse a held spreadsheet with an admin-chosen header row and columns."""
        config = ManualParseConfig(
            header_row_number=body.header_row_number,
            desc_col_letter=body.desc_col_letter,
            qty_col_letter=body.qty_col_letter,
        )
        report = await asyncio.to_thread(
            get_ingestion(request).ingest_manual, body.token, config, context
        )
        return UploadResponse.from_report(report)

    # ------------------------------------------------------------------ #
    # Requisitions
    # ------------------------------------------------------------------ #

    @app.get(
        "/requisitions",
        response_model=list[PurchaseRequisition],
        tags=["Requisitions"],
    )
    async def list_requisitions(
        request: Request,
        status_filter: Annotated[PRStatus | None, Query(alias="status")] = None,
    ) -> list[PurchaseRequisition]:
        """List requisitions, newest first, optionally filtered by status."""
        return get_store(request).list_requisitions(status_filter)

    @app.get(
        "/requisitions/{pr_id}",
        response_model=PurchaseRequisition,
        tags=["Requisitions"],
        responses={404: {"model": ErrorDetail, "description": "Not found"}},
    )
    async def get_requisition(request: Request, pr_id: str) -> PurchaseRequisition:
        return get_store(request).get(pr_id)

    @app.delete(
        "/requisitions/{pr_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Requisitions"],
        responses={
            403: {"model": ErrorDetail, "description": "Caller is not an admin"},
            404: {"model": ErrorDetail, "description": "Not found"},
        },
    )
    async def delete_requisition(
        request: Request,
        pr_id: str,
        context: Caller,
    ) -> Response:
        require_admin(context, "delete requisitions")
        get_store(request).delete(pr_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/requisitions/delete",
        response_model=DeleteResponse,
        tags=["Requisitions"],
        responses={
            403: {"model": ErrorDetail, "description": "Caller is not an admin"}
        },
    )
    async def delete_requisitions(
        request: Request,
        body: DeleteRequisitionsRequest,
        context: Caller,
    ) -> DeleteResponse:
        """Delete several requisitions at once; unknown IDs are ignored."""
        require_admin(context, "delete requisitions")
        return DeleteResponse(deleted=get_store(request).delete_many(body.ids))

    # ------------------------------------------------------------------ #
    # Receipts
    # ------------------------------------------------------------------ #

    @app.patch(
        "/requisitions/{pr_id}/items/{item_id}",
        response_model=PurchaseRequisition,
        tags=["Receipts"],
        responses={
            400: {"model": ErrorDetail, "description": "Invalid quantity"},
            403: {"model": ErrorDetail, "description": "Caller is not an admin"},
            404: {"model": ErrorDetail, "description": "Not found"},
        },
    )
    async def update_item(
        request: Request,
        pr_id: str,
        item_id: str,
        body: ItemUpdateRequest,
        context: Caller,
    ) -> PurchaseRequisition:
        """Record a receipt against one item.

        ``is_complete: true`` receives the full quantity and ``false`` clears
        the receipt; otherwise the received quantity and/or comment are set.
        """
        require_admin(context, "record receipts")
        store = get_store(request)
        if body.is_complete is True:
            return store.receive_full(pr_id, item_id, context.submitter)
        if body.is_complete is False:
            return store.clear_received(pr_id, item_id, context.submitter)
        return store.update_item(
            pr_id,
            item_id,
            context.submitter,
            received_quantity=body.received_quantity,
            comment=body.comment,
        )

    @app.post(
        "/requisitions/{pr_id}/receive-all",
        response_model=PurchaseRequisition,
        tags=["Receipts"],
    )
    async def receive_all(
        request: Request,
        pr_id: str,
        context: Caller,
    ) -> PurchaseRequisition:
        require_admin(context, "record receipts")
        return get_store(request).receive_all(pr_id, context.submitter)

    @app.post(
        "/requisitions/{pr_id}/reopen",
        response_model=PurchaseRequisition,
        tags=["Receipts"],
    )
    async def reopen(
        request: Request,
        pr_id: str,
        context: Caller,
    ) -> PurchaseRequisition:
        require_admin(context, "reopen requisitions")
        return get_store(request).reopen(pr_id, context.submitter)

    # ------------------------------------------------------------------ #
    # Search and reports
    # ------------------------------------------------------------------ #

    @app.get(
        "/search/items", response_model=list[ItemSearchResult], tags=["Search"]
    )
    async def search_items(
        request: Request, q: Annotated[str, Query()] = ""
    ) -> list[ItemSearchResult]:
        """Case-insensitive substring search over item descriptions."""
        return get_store(request).search_items(q)

    def _report(
        request: Request,
        start: date | None,
        end: date | None,
        statuses: list[PRStatus] | None,
    ) -> StatusReport:
        end = end or date.today()
        start = start or end - timedelta(days=DEFAULT_REPORT_DAYS)
        if start > end:
            raise ValidationError(
                message="Report start date must not be after the end date",
                field="start",
            )
        return build_report(
            get_store(request).list_requisitions(), start, end, statuses or None
        )

    @app.get("/reports/status", response_model=StatusReport, tags=["Reports"])
    async def status_report(
        request: Request,
        start: date | None = None,
        end: date | None = None,
        statuses: Annotated[list[PRStatus] | None, Query(alias="status")] = None,
    ) -> StatusReport:
        """Requisitions issued between start and end (default: last 30 days)."""
        return _report(request, start, end, statuses)

    @app.get(
        "/reports/status.xlsx",
        tags=["Reports"],
        response_class=Response,
        responses={200: {"content": {XLSX_MEDIA_TYPE: {}}}},
    )
    async def status_report_xlsx(
        request: Request,
        start: date | None = None,
        end: date | None = None,
        statuses: Annotated[list[PRStatus] | None, Query(alias="status")] = None,
    ) -> Response:
        """Download the status report as an Excel workbook."""
        report = _report(request, start, end, statuses)
        filename = report_filename(report.start, report.end)
        content = await asyncio.to_thread(export_report_xlsx, report)
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return app


# Create the application instance
app = create_app()
