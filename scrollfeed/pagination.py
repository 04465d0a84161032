"""
Pagination primitives for Scrollfeed.

Pages are addressed by index. Page n covers the inclusive row range
[n * page_size, n * page_size + page_size - 1] of a signature's ordered result.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    Represents a single fetched page of a signature.

    Attributes:
        index: Position of the page in the stream (0 for the first page)
        items: Records appended to the stream by this page, after de-duplication
        next_page: Index of the page to request next (None if the stream is exhausted)
        fetched: Number of rows the store returned for this page
    """

    index: int
    items: tuple[T, ...]
    next_page: int | None
    fetched: int

    @property
    def has_more(self) -> bool:
        """Returns True if more pages may be available."""
        return self.next_page is not None

    @property
    def count(self) -> int:
        return len(self.items)


def page_bounds(index: int, page_size: int) -> tuple[int, int]:
    """
    Inclusive row bounds of a page.

    Usage:
        page_bounds(0, 12)  # (0, 11)
        page_bounds(2, 12)  # (24, 35)
    """
    if index < 0:
        raise ValueError("Page index must not be negative")
    if page_size < 1:
        raise ValueError("Page size must be positive")
    start = index * page_size
    return start, start + page_size - 1


def next_page_for(index: int, fetched: int, page_size: int) -> int | None:
    """
    Continuation heuristic: a full page means more rows may exist.

    When the total is an exact multiple of the page size this reports one page
    too many; that page comes back empty and ends the stream.
    """
    if fetched >= page_size:
        return index + 1
    return None
