from __future__ import annotations

"""
Page admission for a distribution day.

A page index is admitted exactly once per day and strictly in order:

    page_index >= capacity      -> PageCapacityExceeded
    already processed           -> DUPLICATE (success, nothing happens)
    page_index != cursor        -> InvalidPaginationCursor
    page_index == cursor        -> PROCESS (then mark + advance cursor)
"""


from enum import Enum

from ..errors import InvalidPaginationCursor, PageCapacityExceeded
from ..state.progress import Progress


class Admission(str, Enum):
    PROCESS = "process"
    DUPLICATE = "duplicate"


def admit_page(progress: Progress, page_index: int) -> Admission:
    capacity = progress.pages.capacity
    if page_index < 0 or page_index >= capacity:
        raise PageCapacityExceeded(page_index=page_index, capacity=capacity, vault=progress.vault)
    if progress.is_processed(page_index):
        return Admission.DUPLICATE
    if page_index != progress.cursor:
        raise InvalidPaginationCursor(page_index=page_index, cursor=progress.cursor, vault=progress.vault)
    return Admission.PROCESS


def mark_processed(progress: Progress, page_index: int) -> Progress:
    """Record `page_index` as processed and advance the cursor past it."""
    if page_index != progress.cursor:
        raise InvalidPaginationCursor(page_index=page_index, cursor=progress.cursor, vault=progress.vault)
    return progress.page_processed(page_index)


__all__ = ["Admission", "admit_page", "mark_processed"]
