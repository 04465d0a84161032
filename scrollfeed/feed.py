import asyncio
from dataclasses import dataclass
from typing import Any

from ._logging import logger, redact_value
from .exceptions import PageFetchError
from .filters import Attr, Predicate
from .signature import QuerySignature, SortOrder
from .state import FetchStatus
from .view import PaginatedCollectionView


@dataclass(frozen=True)
class FeedSnapshot:
    """What a list renders: the records and flags of exactly one signature."""

    signature: QuerySignature
    items: tuple[Any, ...]
    status: FetchStatus
    has_more: bool
    error: PageFetchError | None

    @property
    def is_loading(self) -> bool:
        return self.status is FetchStatus.FETCHING_FIRST and not self.items

    @property
    def is_loading_more(self) -> bool:
        return self.status is FetchStatus.FETCHING_NEXT

    @property
    def is_empty(self) -> bool:
        return self.status in (FetchStatus.IDLE, FetchStatus.EXHAUSTED) and not self.items


class CollectionFeed:
    """
    Consumer-side handle for one rendered list (articles page, video grid, Q&A).

    Combines fixed base filters with a category filter and a free-text search.
    Changing either produces a new signature; the snapshot is always built from
    the current signature's state only, so records of an old filter never show
    up next to records of the new one.

    Usage:
        feed = CollectionFeed(view, "articles", base_filters=(Attr("type") == "article",))
        await feed.load()
        feed.set_category("Tarih")
        await feed.load()
        feed.on_sentinel_visible()    # from the scroll observer
    """

    def __init__(
        self,
        view: PaginatedCollectionView,
        collection: str,
        base_filters: tuple[Predicate, ...] = (),
        order: SortOrder | None = None,
        category_field: str = "category",
        search_field: str = "title",
    ) -> None:
        self.view = view
        self.collection = collection
        self.base_filters = tuple(base_filters)
        self.order = order
        self.category_field = category_field
        self.search_field = search_field
        self.category: str | None = None
        self.search: str | None = None
        # Fail fast on a feed that could never be queried.
        self.view.resolve(self.signature)

    @property
    def signature(self) -> QuerySignature:
        filters = list(self.base_filters)
        if self.category is not None:
            filters.append(Attr(self.category_field) == self.category)
        if self.search is not None:
            filters.append(Attr(self.search_field).matches(self.search))
        return QuerySignature(self.collection, tuple(filters), self.order)

    def set_category(self, category: str | None) -> None:
        """Selects a category; None or an empty string shows every category."""
        self.category = category or None
        logger.debug(
            "Feed category changed",
            extra={"collection": self.collection, "category": self.category},
        )

    def set_search(self, text: str | None) -> None:
        """Sets the search text; blank text clears the search."""
        cleaned = text.strip() if text else ""
        self.search = cleaned or None
        logger.debug(
            "Feed search changed",
            extra={
                "collection": self.collection,
                "search_hash": redact_value(self.search) if self.search else None,
            },
        )

    async def load(self) -> FeedSnapshot:
        """Queries the current signature (cached pages are reused while fresh)."""
        await self.view.query(self.signature)
        return self.snapshot()

    async def load_more(self) -> FeedSnapshot:
        await self.view.fetch_next(self.signature)
        return self.snapshot()

    def on_sentinel_visible(self) -> asyncio.Task[None] | None:
        """Scroll-observer hook; see PaginatedCollectionView.on_visible_sentinel_reached."""
        return self.view.on_visible_sentinel_reached(self.signature)

    async def refresh(self) -> FeedSnapshot:
        """Drops the current signature's pages and loads the first page again."""
        self.view.invalidate(self.signature)
        return await self.load()

    def snapshot(self) -> FeedSnapshot:
        sig, _ = self.view.resolve(self.signature)
        state = self.view.state(sig)
        if state is None:
            return FeedSnapshot(
                signature=sig, items=(), status=FetchStatus.EMPTY, has_more=False, error=None
            )
        return FeedSnapshot(
            signature=sig,
            items=state.items,
            status=state.status,
            has_more=state.has_more,
            error=state.error,
        )
