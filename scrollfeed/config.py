import os
from dataclasses import dataclass, field
from typing import Any

from .fields import has_marker
from .models import Article, ContentRecord, Question, Video


@dataclass(frozen=True)
class CacheOptions:
    """
    Timing windows of the query cache, in seconds.

    stale_time: cached pages younger than this are served without a round trip.
    gc_time: entries unused for this long (and with no fetch in flight) are evicted.
    """

    stale_time: float = 300.0
    gc_time: float = 1800.0

    def __post_init__(self) -> None:
        if self.stale_time < 0 or self.gc_time < 0:
            raise ValueError("Cache windows must not be negative")
        if self.gc_time < self.stale_time:
            raise ValueError("gc_time must be at least stale_time")


@dataclass
class CollectionOptions:
    """
    Metadata for one paginated collection.

    The identifier, sortable, filterable and searchable field sets are read
    from the record model's field markers (see fields.py).
    """

    name: str
    model: type[ContentRecord]
    sort_field: str
    page_size: int = 12
    descending: bool = True

    id_field: str = field(init=False)
    sortable_fields: frozenset[str] = field(init=False)
    filterable_fields: frozenset[str] = field(init=False)
    searchable_fields: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"Collection '{self.name}' needs a positive page_size")

        ids: list[str] = []
        sortable: set[str] = set()
        filterable: set[str] = set()
        searchable: set[str] = set()
        for field_name, field_info in self.model.model_fields.items():
            if has_marker(field_info, "_feed_id"):
                ids.append(field_name)
            if has_marker(field_info, "_feed_sortable"):
                sortable.add(field_name)
            if has_marker(field_info, "_feed_filterable"):
                filterable.add(field_name)
            if has_marker(field_info, "_feed_searchable"):
                searchable.add(field_name)

        if len(ids) != 1:
            raise ValueError(
                f"Model {self.model.__name__} must have exactly one field defined with Identifier()"
            )
        if self.sort_field not in sortable:
            raise ValueError(
                f"Sort field '{self.sort_field}' is not Sortable() on {self.model.__name__}"
            )

        self.id_field = ids[0]
        self.sortable_fields = frozenset(sortable)
        # The identifier can always be filtered on (detail lookups).
        self.filterable_fields = frozenset(filterable | {self.id_field})
        self.searchable_fields = frozenset(searchable)


def default_collections() -> dict[str, CollectionOptions]:
    """The collections served by the author site."""
    return {
        "articles": CollectionOptions(name="articles", model=Article, sort_field="published_at"),
        "videos": CollectionOptions(name="videos", model=Video, sort_field="created_at"),
        "questions": CollectionOptions(name="questions", model=Question, sort_field="created_at"),
    }


DEFAULT_COLLECTIONS = default_collections()


@dataclass
class DynamoTableOptions:
    """
    Where a collection lives in DynamoDB.

    Without an index the whole table is scanned. With an index, the collection
    is read with a Query on `partition_key = partition_value` of that index.
    """

    table_name: str
    id_attribute: str = "id"
    index_name: str | None = None
    partition_key: str | None = None
    partition_value: Any | None = None

    def __post_init__(self) -> None:
        if self.index_name and (self.partition_key is None or self.partition_value is None):
            raise ValueError(
                f"Table '{self.table_name}': index '{self.index_name}' needs "
                "partition_key and partition_value"
            )

    @property
    def uses_query(self) -> bool:
        return self.index_name is not None


@dataclass(frozen=True)
class WriterCredentials:
    """
    The single writer account of the panel.

    password_hash has the form 'pbkdf2_sha256$<iterations>$<salt hex>$<digest hex>'.
    """

    username: str
    password_hash: str

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "WriterCredentials":
        """
        Reads SCROLLFEED_WRITER_USERNAME and SCROLLFEED_WRITER_PASSWORD_HASH.

        Raises:
            ValueError: If either variable is missing
        """
        env = os.environ if environ is None else environ
        username = env.get("SCROLLFEED_WRITER_USERNAME")
        password_hash = env.get("SCROLLFEED_WRITER_PASSWORD_HASH")
        if not username or not password_hash:
            raise ValueError(
                "SCROLLFEED_WRITER_USERNAME and SCROLLFEED_WRITER_PASSWORD_HASH must be set"
            )
        return cls(username=username, password_hash=password_hash)
