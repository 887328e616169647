"""Purchase Requisition Tracker - spreadsheet import and receipt tracking."""

from requisition_tracker.api import app, create_app

__all__ = ["app", "create_app"]
__version__ = "0.1.0"


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from requisition_tracker.config import settings

    uvicorn.run(
        "requisition_tracker.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
