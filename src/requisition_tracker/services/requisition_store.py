"""In-memory requisition storage with receipt recording.

Requisitions are kept newest-first. Every mutation replaces the stored
model with an updated copy under a lock, so readers never observe a
half-applied change. Rules enforced here:

- an item is complete exactly when its received quantity reaches the
  requested quantity;
- completing an item prefixes its comment with ``Received on YYYY-MM-DD.``;
- a completed item's quantity and comment are frozen until it is cleared;
- a requisition is Completed exactly when all of its items are complete.
"""

import threading
from collections.abc import Callable, Iterable
from datetime import datetime

from requisition_tracker.models import (
    ItemSearchResult,
    LastModifiedInfo,
    PRItem,
    PRStatus,
    PurchaseRequisition,
)
from requisition_tracker.services.pr_assembler import epoch_millis
from requisition_tracker.utils.exceptions import (
    ErrorCode,
    ItemNotFoundError,
    RequisitionNotFoundError,
    ValidationError,
)
from requisition_tracker.utils.logging import get_logger

logger = get_logger(__name__)


def received_comment(today: datetime, existing: str) -> str:
    """Prefix an item comment with the receipt date."""
    prefix = f"Received on {today.date().isoformat()}."
    return " ".join(part for part in (prefix, existing) if part)


class RequisitionStore:
    """Thread-safe in-memory store of purchase requisitions."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the store.

        Args:
            clock: Source of the current time; defaults to datetime.now.
        """
        self._clock = clock or datetime.now
        self._prs: dict[str, PurchaseRequisition] = {}
        self._order: list[str] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get(self, pr_id: str) -> PurchaseRequisition:
        """Get a requisition by ID.

        Raises:
            RequisitionNotFoundError: If no requisition has this ID.
        """
        with self._lock:
            pr = self._prs.get(pr_id)
        if pr is None:
            raise RequisitionNotFoundError(pr_id)
        return pr

    def list_requisitions(
        self, status: PRStatus | None = None
    ) -> list[PurchaseRequisition]:
        """List requisitions newest-first, optionally filtered by status."""
        with self._lock:
            prs = [self._prs[pr_id] for pr_id in self._order]
        if status is None:
            return prs
        return [pr for pr in prs if pr.status == status]

    def find_by_name(self, name: str) -> PurchaseRequisition | None:
        with self._lock:
            for pr_id in self._order:
                if self._prs[pr_id].name == name:
                    return self._prs[pr_id]
        return None

    def search_items(self, query: str) -> list[ItemSearchResult]:
        """Case-insensitive substring search over item descriptions.

        A blank query matches nothing.
        """
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            ItemSearchResult(item=item, pr_name=pr.name, pr_id=pr.id)
            for pr in self.list_requisitions()
            for item in pr.items
            if needle in item.description.lower()
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._order)

    # ------------------------------------------------------------------ #
    # Insertion and deletion
    # ------------------------------------------------------------------ #

    def add_many(self, prs: Iterable[PurchaseRequisition]) -> None:
        """Store requisitions ahead of existing ones, keeping their given order."""
        new_prs = list(prs)
        with self._lock:
            for pr in new_prs:
                if pr.id in self._prs:
                    self._order.remove(pr.id)
                self._prs[pr.id] = pr
            self._order[:0] = [pr.id for pr in new_prs]
        for pr in new_prs:
            logger.info(
                "Requisition saved", pr_id=pr.id, name=pr.name, items=len(pr.items)
            )

    def add(self, pr: PurchaseRequisition) -> None:
        self.add_many([pr])

    def delete(self, pr_id: str) -> None:
        with self._lock:
            if pr_id not in self._prs:
                raise RequisitionNotFoundError(pr_id)
            del self._prs[pr_id]
            self._order.remove(pr_id)
        logger.info("Requisition deleted", pr_id=pr_id)

    def delete_many(self, pr_ids: Iterable[str]) -> int:
        """Delete the given requisitions, ignoring unknown IDs.

        Returns:
            Number of requisitions removed.
        """
        removed = 0
        with self._lock:
            for pr_id in set(pr_ids):
                if pr_id in self._prs:
                    del self._prs[pr_id]
                    self._order.remove(pr_id)
                    removed += 1
        logger.info("Requisitions deleted", count=removed)
        return removed

    # ------------------------------------------------------------------ #
    # Receipt recording
    # ------------------------------------------------------------------ #

    def update_item(
        self,
        pr_id: str,
        item_id: str,
        user_name: str,
        received_quantity: float | None = None,
        comment: str | None = None,
    ) -> PurchaseRequisition:
        """Record a partial receipt and/or edit an item's comment.

        The item becomes complete when ``received_quantity`` reaches the
        requested quantity.

        Raises:
            ValidationError: If the item is complete or the quantity is out
                of range.
        """

        def apply(item: PRItem, now: datetime) -> dict[str, object]:
            if item.is_complete:
                raise ValidationError(
                    "Completed items cannot be edited; clear the receipt first",
                    field="item_id",
                )
            changes: dict[str, object] = {}
            if comment is not None:
                changes["comment"] = comment
            if received_quantity is not None:
                if not 0 <= received_quantity <= item.original_quantity:
                    raise ValidationError(
                        f"Received quantity must be between 0 and "
                        f"{item.original_quantity:g}",
                        field="received_quantity",
                        error_code=ErrorCode.INVALID_QUANTITY,
                    )
                changes["received_quantity"] = received_quantity
                if received_quantity >= item.original_quantity:
                    changes["is_complete"] = True
                    changes["comment"] = received_comment(
                        now, str(changes.get("comment", item.comment))
                    )
            return changes

        return self._mutate_item(pr_id, item_id, user_name, apply)

    def receive_full(
        self, pr_id: str, item_id: str, user_name: str
    ) -> PurchaseRequisition:
        """Mark one item as fully received."""

        def apply(item: PRItem, now: datetime) -> dict[str, object]:
            if item.is_complete:
                return {}
            return {
                "received_quantity": item.original_quantity,
                "is_complete": True,
                "comment": received_comment(now, item.comment),
            }

        return self._mutate_item(pr_id, item_id, user_name, apply)

    def clear_received(
        self, pr_id: str, item_id: str, user_name: str
    ) -> PurchaseRequisition:
        """Reset an item's receipt: nothing received, incomplete, no comment."""

        def apply(item: PRItem, now: datetime) -> dict[str, object]:
            return {"received_quantity": 0, "is_complete": False, "comment": ""}

        return self._mutate_item(pr_id, item_id, user_name, apply)

    def receive_all(self, pr_id: str, user_name: str) -> PurchaseRequisition:
        """Mark every incomplete item as fully received; the PR becomes Completed."""
        with self._lock:
            pr = self.get(pr_id)
            now = self._clock()
            modified = LastModifiedInfo(
                user_name=user_name, timestamp=epoch_millis(now)
            )
            items = [
                item
                if item.is_complete
                else item.model_copy(
                    update={
                        "received_quantity": item.original_quantity,
                        "is_complete": True,
                        "comment": received_comment(now, item.comment),
                        "last_modified_by": modified,
                    }
                )
                for item in pr.items
            ]
            updated = pr.model_copy(
                update={
                    "items": items,
                    "status": PRStatus.COMPLETED,
                    "last_modified_by": modified,
                }
            )
            self._prs[pr_id] = updated
        logger.info("All items received", pr_id=pr_id, user=user_name)
        return updated

    def reopen(self, pr_id: str, user_name: str) -> PurchaseRequisition:
        """Reset every item's receipt and put the PR back In Progress."""
        with self._lock:
            pr = self.get(pr_id)
            modified = LastModifiedInfo(
                user_name=user_name, timestamp=epoch_millis(self._clock())
            )
            items = [
                item.model_copy(
                    update={
                        "received_quantity": 0,
                        "is_complete": False,
                        "comment": "",
                        "last_modified_by": modified,
                    }
                )
                for item in pr.items
            ]
            updated = pr.model_copy(
                update={
                    "items": items,
                    "status": PRStatus.IN_PROGRESS,
                    "last_modified_by": modified,
                }
            )
            self._prs[pr_id] = updated
        logger.info("Requisition reopened", pr_id=pr_id, user=user_name)
        return updated

    def _mutate_item(
        self,
        pr_id: str,
        item_id: str,
        user_name: str,
        apply: Callable[[PRItem, datetime], dict[str, object]],
    ) -> PurchaseRequisition:
        with self._lock:
            pr = self.get(pr_id)
            index = next(
                (idx for idx, item in enumerate(pr.items) if item.id == item_id), None
            )
            if index is None:
                raise ItemNotFoundError(pr_id, item_id)

            now = self._clock()
            changes = apply(pr.items[index], now)
            if not changes:
                return pr

            modified = LastModifiedInfo(
                user_name=user_name, timestamp=epoch_millis(now)
            )
            items = list(pr.items)
            items[index] = items[index].model_copy(
                update={**changes, "last_modified_by": modified}
            )
            status = (
                PRStatus.COMPLETED
                if all(item.is_complete for item in items)
                else PRStatus.IN_PROGRESS
            )
            updated = pr.model_copy(
                update={"items": items, "status": status, "last_modified_by": modified}
            )
            self._prs[pr_id] = updated

        logger.info(
            "Item updated",
            pr_id=pr_id,
            item_id=item_id,
            user=user_name,
            status=status.value,
        )
        return updated
