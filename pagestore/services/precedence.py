"""Which value wins when a page is re-persisted.

Each write merges three sources: the record already on disk, the index
entry, and whatever the caller supplied.  The rules live here as plain
functions so they can be tested without touching the filesystem.
"""

from typing import Callable, Optional


def resolve_page_uid(
    on_disk: Optional[str],
    indexed: Optional[str],
    supplied: Optional[str],
    generate: Callable[[], str],
) -> str:
    """Pick the permanent uid: on-disk, then index, then caller, then a fresh one."""
    for candidate in (on_disk, indexed, supplied):
        if candidate:
            return candidate
    return generate()


def resolve_created_at(on_disk: Optional[int], supplied: Optional[int], now: int) -> int:
    """Pick the creation time: positive on-disk value, then positive caller value, then *now*."""
    if on_disk and on_disk > 0:
        return on_disk
    if supplied and supplied > 0:
        return supplied
    return now


def resolve_updated_at(created_at: int, now: int, previous: Optional[int] = None) -> int:
    """Return *now*, clamped so it never precedes ``created_at`` or the previous value."""
    return max(created_at, now, previous or 0)


def resolve_view_count(on_disk: Optional[int], supplied: Optional[int]) -> int:
    """The store owns the counter: an existing record's count always wins."""
    if on_disk is not None:
        return on_disk
    return max(supplied or 0, 0)
