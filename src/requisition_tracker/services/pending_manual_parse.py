"""Holding area for grids awaiting manual header configuration.

When header detection fails for an admin upload, the decoded grid is parked
here under a token until the admin submits a configuration or the entry
expires. Expired entries are purged lazily on every access.
"""

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from requisition_tracker.config import settings
from requisition_tracker.utils.exceptions import ManualParseNotFoundError
from requisition_tracker.utils.logging import get_logger
from requisition_tracker.worksheet import WorksheetGrid

logger = get_logger(__name__)


@dataclass
class PendingManualParse:
    token: str
    filename: str
    grid: WorksheetGrid
    submitter: str
    created_at: datetime
    expires_at: datetime


class ManualParseRegistry:
    """Thread-safe, TTL-bounded registry of held grids."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = timedelta(
            seconds=ttl_seconds
            if ttl_seconds is not None
            else settings.manual_parse_ttl_seconds
        )
        self._clock = clock or datetime.now
        self._entries: dict[str, PendingManualParse] = {}
        self._lock = threading.RLock()

    def hold(
        self, filename: str, grid: WorksheetGrid, submitter: str
    ) -> PendingManualParse:
        """Park a grid and return its entry (including the token)."""
        now = self._clock()
        entry = PendingManualParse(
            token=str(uuid.uuid4()),
            filename=filename,
            grid=grid,
            submitter=submitter,
            created_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._purge_expired(now)
            self._entries[entry.token] = entry
        logger.info("Grid held for manual configuration", filename=filename)
        return entry

    def get(self, token: str) -> PendingManualParse:
        """Look up a held grid.

        Raises:
            ManualParseNotFoundError: If the token is unknown or expired.
        """
        with self._lock:
            self._purge_expired(self._clock())
            entry = self._entries.get(token)
        if entry is None:
            raise ManualParseNotFoundError(token)
        return entry

    def release(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def cleanup_expired(self) -> int:
        """Remove expired entries, returning how many were dropped."""
        with self._lock:
            return self._purge_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_expired(self, now: datetime) -> int:
        expired = [
            token for token, entry in self._entries.items() if entry.expires_at <= now
        ]
        for token in expired:
            del self._entries[token]
        if expired:
            logger.info("Expired manual configurations purged", count=len(expired))
        return len(expired)
