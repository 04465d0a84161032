from typing import Any

from pydantic import Field
from pydantic.fields import FieldInfo


def Identifier(default: Any = ..., **kwargs: Any) -> Any:
    """
    Marks a Pydantic field as the record identifier.

    Usage:
        id: str = Identifier()

    Architectural Note:
    -------------------
    This function wraps the standard Pydantic Field. It injects a hidden flag
    ('_feed_id') into 'json_schema_extra'. CollectionOptions inspects these flags
    to learn which field de-duplicates pages and breaks ordering ties, without
    requiring the collection to declare it a second time.
    """
    json_schema_extra = kwargs.pop("json_schema_extra", {})
    json_schema_extra["_feed_id"] = True
    return Field(default, json_schema_extra=json_schema_extra, **kwargs)


def Sortable(default: Any = ..., **kwargs: Any) -> Any:
    """Marks a Pydantic field as usable in a SortOrder."""
    json_schema_extra = kwargs.pop("json_schema_extra", {})
    json_schema_extra["_feed_sortable"] = True
    return Field(default, json_schema_extra=json_schema_extra, **kwargs)


def Filterable(default: Any = ..., **kwargs: Any) -> Any:
    """
    Marks a Pydantic field as usable in comparison predicates
    (==, !=, <, <=, >, >=, is_in).

    Usage:
        category: str = Filterable()
    """
    json_schema_extra = kwargs.pop("json_schema_extra", {})
    json_schema_extra["_feed_filterable"] = True
    return Field(default, json_schema_extra=json_schema_extra, **kwargs)


def Searchable(default: Any = ..., **kwargs: Any) -> Any:
    """
    Marks a Pydantic text field as usable in free-text predicates
    (contains, matches).

    A searchable field is also filterable.
    """
    json_schema_extra = kwargs.pop("json_schema_extra", {})
    json_schema_extra["_feed_filterable"] = True
    json_schema_extra["_feed_searchable"] = True
    return Field(default, json_schema_extra=json_schema_extra, **kwargs)


def has_marker(field_info: FieldInfo, marker: str) -> bool:
    """Returns True if the field carries the given '_feed_*' flag."""
    extra = field_info.json_schema_extra
    return isinstance(extra, dict) and bool(extra.get(marker))
