"""Merge-aware cell resolution.

Only the top-left cell of a merged range holds a value in the raw grid. The
resolver hands that value out once per line item being built: callers pass
in the set of merge keys already consumed for the current item and reset it
themselves when the item closes.
"""

from __future__ import annotations

from collections.abc import Iterable, MutableSet

from requisition_tracker.worksheet import (
    EMPTY,
    CellValue,
    MergeRange,
    WorksheetGrid,
)


class MergeIndex:
    """Lookup of merged ranges by row.

    Ranges are bucketed by every row they span so a lookup only scans the
    ranges touching that row. When ranges overlap the first declared wins.
    """

    def __init__(self, merges: Iterable[MergeRange]) -> None:
        self._by_row: dict[int, list[MergeRange]] = {}
        for merge in merges:
            for row in range(merge.start_row, merge.end_row + 1):
                self._by_row.setdefault(row, []).append(merge)

    def find(self, row: int, col: int) -> MergeRange | None:
        for merge in self._by_row.get(row, ()):
            if merge.contains(row, col):
                return merge
        return None


def resolve(
    grid: WorksheetGrid,
    merges: MergeIndex | Iterable[MergeRange],
    row: int,
    col: int,
    consumed: MutableSet[tuple[int, int]],
) -> CellValue:
    """Resolve the effective value of ``(row, col)``.

    Args:
        grid: Worksheet being read.
        merges: Merged ranges of the sheet (pre-indexed or raw).
        row: 0-based row index.
        col: 0-based column index.
        consumed: Merge keys already used by the current item; updated in place.

    Returns:
        The merge's top-left value the first time a range is hit for the
        current item, EMPTY on later hits, or the plain cell otherwise.
    """
    index = merges if isinstance(merges, MergeIndex) else MergeIndex(merges)
    merge = index.find(row, col)
    if merge is None:
        return grid.cell(row, col)
    if merge.key in consumed:
        return EMPTY
    consumed.add(merge.key)
    return grid.cell(merge.start_row, merge.start_col)
