"""
Per-signature fetch state machine.

States and allowed moves:

    EMPTY           -> FETCHING_FIRST
    FETCHING_FIRST  -> IDLE | EXHAUSTED | ERRORED
    FETCHING_NEXT   -> IDLE | EXHAUSTED | ERRORED
    IDLE            -> FETCHING_NEXT | FETCHING_FIRST (stale refresh)
    EXHAUSTED       -> FETCHING_FIRST (stale refresh)
    ERRORED         -> FETCHING_FIRST | FETCHING_NEXT (retry)

Only PaginatedCollectionView drives these transitions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from ._logging import logger
from .exceptions import InvalidStateTransition, PageFetchError
from .pagination import Page, next_page_for
from .signature import QuerySignature, SortOrder, comes_after

T = TypeVar("T")


class FetchStatus(str, Enum):
    EMPTY = "empty"
    FETCHING_FIRST = "fetching_first"
    IDLE = "idle"
    FETCHING_NEXT = "fetching_next"
    EXHAUSTED = "exhausted"
    ERRORED = "errored"


_TRANSITIONS: dict[FetchStatus, frozenset[FetchStatus]] = {
    FetchStatus.EMPTY: frozenset({FetchStatus.FETCHING_FIRST}),
    FetchStatus.FETCHING_FIRST: frozenset(
        {FetchStatus.IDLE, FetchStatus.EXHAUSTED, FetchStatus.ERRORED}
    ),
    FetchStatus.FETCHING_NEXT: frozenset(
        {FetchStatus.IDLE, FetchStatus.EXHAUSTED, FetchStatus.ERRORED}
    ),
    FetchStatus.IDLE: frozenset({FetchStatus.FETCHING_NEXT, FetchStatus.FETCHING_FIRST}),
    FetchStatus.EXHAUSTED: frozenset({FetchStatus.FETCHING_FIRST}),
    FetchStatus.ERRORED: frozenset({FetchStatus.FETCHING_FIRST, FetchStatus.FETCHING_NEXT}),
}


@dataclass(eq=False)
class FetchState(Generic[T]):
    """
    Accumulated pages, cursor and flags of one query signature.

    Attributes:
        signature: The resolved signature (order always set)
        page_size: Rows requested per page
        id_field: Record attribute used to de-duplicate and break ties
        status: Current FetchStatus
        pages: Fetched pages in stream order
        error: Last fetch failure, cleared by the next successful page
        updated_at: Clock reading of the last successful first-page fetch
    """

    signature: QuerySignature
    page_size: int
    id_field: str = "id"
    status: FetchStatus = FetchStatus.EMPTY
    pages: list[Page[T]] = field(default_factory=list)
    error: PageFetchError | None = None
    updated_at: float | None = None
    _seen: set[Any] = field(default_factory=set, repr=False)

    def __post_init__(self) -> None:
        if self.signature.order is None:
            raise ValueError("FetchState needs a resolved signature")

    # --- Read side ---

    @property
    def order(self) -> SortOrder:
        assert self.signature.order is not None
        return self.signature.order

    @property
    def items(self) -> tuple[T, ...]:
        """All accumulated records in signature order."""
        return tuple(item for page in self.pages for item in page.items)

    @property
    def count(self) -> int:
        return sum(page.count for page in self.pages)

    @property
    def has_more(self) -> bool:
        """True iff the most recently fetched page came back full."""
        return bool(self.pages) and self.pages[-1].has_more

    @property
    def cursor(self) -> int | None:
        """Index of the next page to request (None when exhausted)."""
        if not self.pages:
            return 0
        return self.pages[-1].next_page

    @property
    def is_fetching(self) -> bool:
        return self.status in (FetchStatus.FETCHING_FIRST, FetchStatus.FETCHING_NEXT)

    @property
    def is_fetching_first_page(self) -> bool:
        return self.status is FetchStatus.FETCHING_FIRST

    @property
    def is_fetching_next_page(self) -> bool:
        return self.status is FetchStatus.FETCHING_NEXT

    @property
    def is_refreshing(self) -> bool:
        """Re-fetching the first page while older pages stay visible."""
        return self.status is FetchStatus.FETCHING_FIRST and bool(self.pages)

    # --- Transitions ---

    def transition(self, target: FetchStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidStateTransition(self.status, target)
        self.status = target

    def begin_first(self) -> int:
        """Marks a first-page fetch in flight. Returns the page index to request."""
        self.transition(FetchStatus.FETCHING_FIRST)
        return 0

    def begin_next(self) -> int | None:
        """
        Marks a next-page fetch in flight if one is allowed.

        Returns the page index to request, or None when the call must be a no-op
        (a fetch is in flight, or the stream is exhausted).
        """
        if self.status is FetchStatus.IDLE:
            self.transition(FetchStatus.FETCHING_NEXT)
            return self.cursor
        if self.status is FetchStatus.ERRORED:
            if not self.pages:
                return self.begin_first()
            if self.has_more:
                self.transition(FetchStatus.FETCHING_NEXT)
                return self.cursor
        return None

    def complete(self, index: int, records: list[T], fetched: int, now: float) -> Page[T]:
        """
        Appends a successfully fetched page and settles the state.

        A first page replaces whatever was accumulated before (refresh).
        """
        if index == 0:
            self.pages = []
            self._seen = set()
            self.updated_at = now

        page = self._build_page(index, records, fetched)
        self.pages.append(page)
        self.error = None
        self.transition(FetchStatus.IDLE if page.has_more else FetchStatus.EXHAUSTED)
        return page

    def fail(self, error: PageFetchError) -> None:
        """Records a failed fetch. Accumulated pages stay untouched."""
        self.error = error
        self.transition(FetchStatus.ERRORED)

    def _build_page(self, index: int, records: list[T], fetched: int) -> Page[T]:
        tail: T | None = None
        for earlier in reversed(self.pages):
            if earlier.items:
                tail = earlier.items[-1]
                break

        accepted: list[T] = []
        duplicates = 0
        out_of_order = 0
        for record in records:
            record_id = getattr(record, self.id_field)
            if record_id in self._seen:
                duplicates += 1
                continue
            if tail is not None and not comes_after(record, tail, self.order, self.id_field):
                out_of_order += 1
                continue
            accepted.append(record)
            self._seen.add(record_id)
            tail = record

        if duplicates or out_of_order:
            logger.debug(
                "Dropped records while appending page",
                extra={
                    "collection": self.signature.collection,
                    "page": index,
                    "duplicates": duplicates,
                    "out_of_order": out_of_order,
                },
            )

        return Page(
            index=index,
            items=tuple(accepted),
            next_page=next_page_for(index, fetched, self.page_size),
            fetched=fetched,
        )
