import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from ._logging import logger
from .config import CacheOptions
from .signature import QuerySignature
from .state import FetchState


@dataclass
class CacheEntry:
    state: FetchState[Any]
    last_used: float


class QueryCache:
    """
    Maps resolved query signatures to their FetchState.

    Freshness is measured from the state's last successful first-page fetch;
    eviction from the last time the entry was read. Entries with a fetch in
    flight are never evicted.

    Usage:
        cache = QueryCache(CacheOptions(stale_time=60, gc_time=600))
        view = PaginatedCollectionView(store, cache=cache)
    """

    def __init__(
        self,
        options: CacheOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options or CacheOptions()
        self.clock = clock
        self._entries: dict[QuerySignature, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def __iter__(self) -> Iterator[QuerySignature]:
        return iter(list(self._entries))

    def get(self, signature: QuerySignature) -> FetchState[Any] | None:
        """Returns the cached state and marks the entry as used."""
        entry = self._entries.get(signature)
        if entry is None:
            return None
        entry.last_used = self.clock()
        return entry.state

    def peek(self, signature: QuerySignature) -> FetchState[Any] | None:
        """Returns the cached state without touching its usage time."""
        entry = self._entries.get(signature)
        return entry.state if entry is not None else None

    def put(self, signature: QuerySignature, state: FetchState[Any]) -> None:
        self._entries[signature] = CacheEntry(state=state, last_used=self.clock())

    def is_stale(self, state: FetchState[Any]) -> bool:
        """A state is stale when it never completed a first page or is older than stale_time."""
        if state.updated_at is None:
            return True
        return self.clock() - state.updated_at >= self.options.stale_time

    def drop(self, signature: QuerySignature) -> bool:
        """Removes a signature. Returns True if it was cached."""
        return self._entries.pop(signature, None) is not None

    def drop_collection(self, collection: str) -> list[QuerySignature]:
        """Removes every signature of a collection and returns them."""
        dropped = [sig for sig in self if sig.collection == collection]
        for sig in dropped:
            del self._entries[sig]
        return dropped

    def collect_garbage(self) -> int:
        """
        Evicts entries unused for gc_time.

        Returns:
            Number of evicted entries
        """
        now = self.clock()
        expired = [
            sig
            for sig, entry in self._entries.items()
            if not entry.state.is_fetching and now - entry.last_used >= self.options.gc_time
        ]
        for sig in expired:
            del self._entries[sig]

        if expired:
            logger.debug(
                "Evicted inactive query states",
                extra={"operation": "gc", "evicted": len(expired), "remaining": len(self._entries)},
            )
        return len(expired)
