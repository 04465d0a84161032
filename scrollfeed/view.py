"""
Paginated collection view.

Serves infinitely-scrollable, filterable, cached views over the collections
of a RemoteStore. One FetchState per resolved QuerySignature lives in the
QueryCache; every fetch runs as an asyncio task registered per signature,
which is what enforces the at-most-one-fetch-in-flight rule.
"""

import asyncio
from typing import Any

from ._logging import logger
from .cache import QueryCache
from .config import DEFAULT_COLLECTIONS, CollectionOptions
from .exceptions import InvalidSignatureError, PageFetchError, RecordValidationError
from .models import parse_record
from .pagination import page_bounds
from .signature import QuerySignature
from .state import FetchState
from .store import RemoteStore


class PaginatedCollectionView:
    """
    Cached, de-duplicated, order-stable paging over remote collections.

    Architectural Note:
    -------------------
    The store and the cache are constructor arguments, so a test can hand in a
    MemoryStore and a cache with a fake clock. All mutation happens on the
    event loop thread; the in-flight flag is set before the first await, so two
    calls issued back to back see each other.

    Usage:
        view = PaginatedCollectionView(MemoryStore())
        sig = QuerySignature("articles", filters=(Attr("type") == "article",))

        state = await view.query(sig)      # first page
        await view.fetch_next(sig)         # next page (no-op when exhausted)
        state.items                        # all records so far
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: QueryCache | None = None,
        collections: dict[str, CollectionOptions] | None = None,
    ) -> None:
        self.store = store
        self.cache = cache or QueryCache()
        self.collections = dict(collections if collections is not None else DEFAULT_COLLECTIONS)
        self._inflight: dict[QuerySignature, asyncio.Task[None]] = {}

    def resolve(self, signature: QuerySignature) -> tuple[QuerySignature, CollectionOptions]:
        """
        Validates a signature and fills in its collection's default order.

        Raises:
            InvalidSignatureError: Unknown collection, or a field the collection does not declare
        """
        if not isinstance(signature, QuerySignature):
            raise InvalidSignatureError(
                f"Expected QuerySignature, got {type(signature).__name__}"
            )
        options = self.collections.get(signature.collection)
        if options is None:
            raise InvalidSignatureError(f"Unknown collection '{signature.collection}'")
        return signature.resolved(options), options

    def state(self, signature: QuerySignature) -> FetchState[Any] | None:
        """Returns the cached state of a signature without fetching anything."""
        sig, _ = self.resolve(signature)
        return self.cache.peek(sig)

    def is_fetching(self, signature: QuerySignature) -> bool:
        sig, _ = self.resolve(signature)
        return sig in self._inflight

    async def query(self, signature: QuerySignature) -> FetchState[Any]:
        """
        Returns the FetchState of a signature, fetching the first page if needed.

        A first-page fetch starts when there is no cached state or the cached one
        is stale; concurrent callers share the same request. Fetch failures do not
        raise: they are exposed on `FetchState.error`.

        If the signature is invalidated while this call waits, the returned state
        is detached from the cache.

        Raises:
            InvalidSignatureError: If the signature is malformed
        """
        sig, options = self.resolve(signature)
        self.cache.collect_garbage()

        state = self.cache.get(sig)
        if state is None:
            state = FetchState(sig, options.page_size, options.id_field)
            self.cache.put(sig, state)

        task = self._inflight.get(sig)
        if task is None and not state.is_fetching and self.cache.is_stale(state):
            task = self._start(sig, state, state.begin_first(), options)
        elif task is None:
            logger.debug(
                "Serving cached pages",
                extra={**sig.describe(), "operation": "query", "pages": len(state.pages)},
            )

        if task is not None and state.is_fetching_first_page:
            await asyncio.shield(task)

        current = self.cache.peek(sig)
        return current if current is not None else state

    async def fetch_next(self, signature: QuerySignature) -> None:
        """
        Fetches the next page of a signature using its stored cursor.

        No-op when nothing was queried yet, the stream is exhausted, or a fetch
        for the signature is already in flight. Never raises for fetch failures.
        """
        task = self._schedule_next(signature)
        if task is not None:
            await asyncio.shield(task)

    def on_visible_sentinel_reached(self, signature: QuerySignature) -> asyncio.Task[None] | None:
        """
        Observer callback for "the last rendered item became visible".

        Must be called from the running event loop. Schedules the next-page fetch
        and returns its task; triggers arriving while a fetch is in flight are
        dropped and return None.
        """
        return self._schedule_next(signature)

    def invalidate(self, signature: QuerySignature) -> None:
        """
        Drops the cached pages and state of a signature.

        A fetch already in flight is not cancelled; its result is discarded on arrival.
        """
        sig, _ = self.resolve(signature)
        dropped = self.cache.drop(sig)
        self._inflight.pop(sig, None)
        logger.info(
            "Invalidated query",
            extra={**sig.describe(), "operation": "invalidate", "was_cached": dropped},
        )

    def invalidate_collection(self, collection: str) -> int:
        """
        Invalidates every cached signature of a collection.

        Returns:
            Number of dropped signatures
        """
        dropped = self.cache.drop_collection(collection)
        for sig in [s for s in self._inflight if s.collection == collection]:
            del self._inflight[sig]
        logger.info(
            "Invalidated collection",
            extra={"collection": collection, "operation": "invalidate", "dropped": len(dropped)},
        )
        return len(dropped)

    def collect_garbage(self) -> int:
        return self.cache.collect_garbage()

    # --- Internals ---

    def _schedule_next(self, signature: QuerySignature) -> asyncio.Task[None] | None:
        loop = asyncio.get_running_loop()
        sig, options = self.resolve(signature)

        state = self.cache.get(sig)
        if state is None:
            logger.debug("No state to extend", extra={**sig.describe(), "operation": "fetch_next"})
            return None
        if sig in self._inflight or state.is_fetching:
            logger.debug(
                "Dropped next-page request, fetch in flight",
                extra={**sig.describe(), "operation": "fetch_next"},
            )
            return None

        index = state.begin_next()
        if index is None:
            logger.debug(
                "Stream exhausted", extra={**sig.describe(), "operation": "fetch_next"}
            )
            return None
        return self._start(sig, state, index, options, loop)

    def _start(
        self,
        sig: QuerySignature,
        state: FetchState[Any],
        index: int,
        options: CollectionOptions,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> asyncio.Task[None]:
        loop = loop or asyncio.get_running_loop()
        task = loop.create_task(self._run_fetch(sig, state, index, options))
        self._inflight[sig] = task
        return task

    async def _run_fetch(
        self,
        sig: QuerySignature,
        state: FetchState[Any],
        index: int,
        options: CollectionOptions,
    ) -> None:
        assert sig.order is not None
        bounds = page_bounds(index, options.page_size)
        logger.info(
            "Fetching page",
            extra={**sig.describe(), "operation": "select", "page": index, "bounds": bounds},
        )

        try:
            try:
                rows = await self.store.select(sig.collection, sig.filters, sig.order, bounds)
            except Exception as e:
                if self.cache.peek(sig) is not state:
                    self._log_discard(sig, index)
                    return
                state.fail(PageFetchError(sig, index, original_error=e))
                logger.warning(
                    "Page fetch failed",
                    extra={**sig.describe(), "operation": "select", "page": index},
                    exc_info=e,
                )
                return

            if self.cache.peek(sig) is not state:
                self._log_discard(sig, index)
                return

            records = []
            for row in rows:
                try:
                    records.append(parse_record(options.model, sig.collection, row))
                except RecordValidationError as e:
                    logger.warning(
                        "Skipping invalid record",
                        extra={
                            "collection": sig.collection,
                            "page": index,
                            "errors": len(e.errors),
                        },
                    )

            page = state.complete(index, records, fetched=len(rows), now=self.cache.clock())
            logger.info(
                "Page fetched",
                extra={
                    **sig.describe(),
                    "operation": "select",
                    "page": index,
                    "fetched": page.fetched,
                    "appended": page.count,
                    "has_more": page.has_more,
                },
            )
        finally:
            if self._inflight.get(sig) is asyncio.current_task():
                del self._inflight[sig]

    def _log_discard(self, sig: QuerySignature, index: int) -> None:
        logger.debug(
            "Discarding result of invalidated query",
            extra={**sig.describe(), "operation": "select", "page": index},
        )
