from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ._logging import redact_value
from .exceptions import InvalidSignatureError
from .filters import TEXT_OPS, Predicate

if TYPE_CHECKING:
    from .config import CollectionOptions


@dataclass(frozen=True)
class SortOrder:
    """Sort key of a signature. Ties are always broken by the record id."""

    field: str
    descending: bool = True

    def __str__(self) -> str:
        return f"{self.field} {'desc' if self.descending else 'asc'}"


@dataclass(frozen=True)
class QuerySignature:
    """
    Identifies one logical paginated result stream: (collection, filters, order).

    Filters are combined with AND and stored in a canonical order, so two
    signatures built from the same predicates in a different order are equal
    and share one cache entry.

    Usage:
        sig = QuerySignature(
            "articles",
            filters=(Attr("type") == "article", Attr("category") == "Tarih"),
            order=SortOrder("published_at"),
        )
    """

    collection: str
    filters: tuple[Predicate, ...] = ()
    order: SortOrder | None = field(default=None)

    def __post_init__(self) -> None:
        if not isinstance(self.collection, str) or not self.collection:
            raise InvalidSignatureError("Signature needs a collection name")
        filters = tuple(self.filters)
        for predicate in filters:
            if not isinstance(predicate, Predicate):
                raise InvalidSignatureError(
                    f"Expected Predicate, got {type(predicate).__name__}"
                )
        canonical = tuple(sorted(set(filters), key=lambda p: p.sort_key))
        object.__setattr__(self, "filters", canonical)

    def with_order(self, order: SortOrder) -> "QuerySignature":
        return QuerySignature(self.collection, self.filters, order)

    def resolved(self, options: "CollectionOptions") -> "QuerySignature":
        """
        Validates the signature against its collection and fills in the default order.

        Raises:
            InvalidSignatureError: If a filter or the order uses a field the
                collection does not declare, or the collection does not match.
        """
        if options.name != self.collection:
            raise InvalidSignatureError(
                f"Signature for '{self.collection}' checked against '{options.name}'"
            )

        for predicate in self.filters:
            if predicate.field not in options.filterable_fields:
                raise InvalidSignatureError(
                    f"Field '{predicate.field}' is not filterable on '{self.collection}'",
                    field=predicate.field,
                )
            if predicate.op in TEXT_OPS and predicate.field not in options.searchable_fields:
                raise InvalidSignatureError(
                    f"Field '{predicate.field}' is not searchable on '{self.collection}'",
                    field=predicate.field,
                )

        order = self.order or SortOrder(options.sort_field, options.descending)
        if order.field not in options.sortable_fields:
            raise InvalidSignatureError(
                f"Field '{order.field}' is not sortable on '{self.collection}'",
                field=order.field,
            )
        if order == self.order:
            return self
        return self.with_order(order)

    def describe(self) -> dict[str, Any]:
        """Log-safe description; free-text values are hashed."""
        return {
            "collection": self.collection,
            "filters": [
                f"{p.field} {p.op} "
                + (redact_value(p.value) if p.op in TEXT_OPS else repr(p.value))
                for p in self.filters
            ],
            "order": str(self.order) if self.order else None,
        }


def sortable_value(value: Any) -> Any:
    """
    Brings timestamps to one comparable form.

    ISO strings and datetimes become aware UTC datetimes, so '...+03:00' and
    '...Z' rows sort by instant rather than by text. Naive values are UTC.
    Anything else is returned unchanged.
    """
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value


def order_key(record: Any, order: SortOrder, id_field: str = "id") -> tuple[Any, ...]:
    """
    Total ordering key of a record (model instance or raw row).

    Raw rows and parsed records of the same item produce the same key.
    Records missing the sort value compare lower than any record that has one,
    so with a descending order they come last. Ties break on the id.
    """
    if isinstance(record, dict):
        value = record.get(order.field)
        record_id = record.get(id_field)
    else:
        value = getattr(record, order.field, None)
        record_id = getattr(record, id_field, None)
    return (value is not None, sortable_value(value), str(record_id))


def sort_records(records: list[Any], order: SortOrder, id_field: str = "id") -> list[Any]:
    """Sorts records into signature order."""
    return sorted(records, key=lambda r: order_key(r, order, id_field), reverse=order.descending)


def comes_after(record: Any, tail: Any, order: SortOrder, id_field: str = "id") -> bool:
    """True if `record` belongs strictly after `tail` in signature order."""
    key = order_key(record, order, id_field)
    tail_key = order_key(tail, order, id_field)
    if order.descending:
        return key < tail_key
    return key > tail_key
