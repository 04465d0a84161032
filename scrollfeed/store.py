"""
Remote store contract and an in-process implementation.

A store applies filters, order and range itself and returns raw rows (plain
dicts). Rows are validated into record models by the view, not by the store.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from ._logging import logger
from .exceptions import CollectionNotFoundError, ConditionFailedError, RecordNotFoundError
from .filters import Predicate, evaluate_all, normalize_value
from .signature import SortOrder, sort_records


@runtime_checkable
class RemoteStore(Protocol):
    """
    The operations Scrollfeed needs from a hosted table store.

    `select` is the whole contract of the collection view; the other operations
    back detail pages, the writer panel and the dashboard.
    """

    async def select(
        self,
        collection: str,
        filters: tuple[Predicate, ...],
        order: SortOrder,
        bounds: tuple[int, int],
    ) -> list[dict[str, Any]]:
        """Rows matching every filter, in order, restricted to inclusive `bounds`."""
        ...

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None: ...

    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]: ...

    async def update(
        self, collection: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def delete(self, collection: str, record_id: str) -> None: ...

    async def count(self, collection: str, filters: tuple[Predicate, ...] = ()) -> int: ...


def prepare_row(row: dict[str, Any]) -> dict[str, Any]:
    """Flattens enums, datetimes and UUIDs to the plain values rows hold."""
    return {key: normalize_value(value) for key, value in row.items()}


class MemoryStore:
    """
    In-process RemoteStore keeping rows in dicts.

    Deterministic for a given content, which makes it the store of choice for
    tests and local development. Rows are copied on the way in and out.

    Usage:
        store = MemoryStore()
        await store.insert("articles", {"title": "...", "published_at": "..."})
    """

    def __init__(
        self,
        collections: dict[str, list[dict[str, Any]]] | None = None,
        id_field: str = "id",
    ) -> None:
        self.id_field = id_field
        self._rows: dict[str, dict[str, dict[str, Any]]] = {
            name: {} for name in ("articles", "videos", "questions")
        }
        for name, rows in (collections or {}).items():
            table = self._rows.setdefault(name, {})
            for row in rows:
                prepared = prepare_row(row)
                table[str(prepared[id_field])] = prepared

    def _table(self, collection: str) -> dict[str, dict[str, Any]]:
        try:
            return self._rows[collection]
        except KeyError:
            raise CollectionNotFoundError(collection) from None

    async def select(
        self,
        collection: str,
        filters: tuple[Predicate, ...],
        order: SortOrder,
        bounds: tuple[int, int],
    ) -> list[dict[str, Any]]:
        start, end = bounds
        matching = [row for row in self._table(collection).values() if evaluate_all(filters, row)]
        ordered = sort_records(matching, order, self.id_field)
        logger.debug(
            "Memory select",
            extra={"collection": collection, "operation": "select", "start": start, "end": end},
        )
        return copy.deepcopy(ordered[start : end + 1])

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        row = self._table(collection).get(record_id)
        return copy.deepcopy(row) if row is not None else None

    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        table = self._table(collection)
        prepared = prepare_row(row)
        prepared.setdefault(self.id_field, str(uuid.uuid4()))
        prepared.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        record_id = str(prepared[self.id_field])
        if record_id in table:
            raise ConditionFailedError(f"attribute_not_exists({self.id_field})")
        table[record_id] = prepared
        return copy.deepcopy(prepared)

    async def update(
        self, collection: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        table = self._table(collection)
        if record_id not in table:
            raise RecordNotFoundError(collection, record_id)
        prepared = prepare_row(changes)
        prepared.pop(self.id_field, None)
        table[record_id].update(prepared)
        return copy.deepcopy(table[record_id])

    async def delete(self, collection: str, record_id: str) -> None:
        self._table(collection).pop(record_id, None)

    async def count(self, collection: str, filters: tuple[Predicate, ...] = ()) -> int:
        return sum(1 for row in self._table(collection).values() if evaluate_all(filters, row))
