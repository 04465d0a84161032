"""
Filter predicate DSL for Scrollfeed.

This module provides an Attr builder that creates Predicate objects. A query
signature holds a tuple of predicates combined with AND. Predicates are:

- hashable and canonical, so equal filters produce equal cache keys
- evaluable against a raw store row (used by MemoryStore and for client-side text search)
- compilable to a boto3 condition for DynamoDB FilterExpressions

Usage:
    from scrollfeed import Attr

    Attr("category") == "Tarih"
    Attr("status").is_in(["draft", "published"])
    Attr("title").matches("osmanlı")    # case-insensitive free text
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from boto3.dynamodb.conditions import Attr as Boto3Attr
from boto3.dynamodb.conditions import ConditionBase as Boto3ConditionBase

from .exceptions import InvalidSignatureError

SCALAR_TYPES = (str, int, float, bool, type(None))

COMPARISON_OPS = frozenset({"eq", "ne", "lt", "le", "gt", "ge", "in"})
TEXT_OPS = frozenset({"contains", "matches"})

# Operators DynamoDB cannot evaluate are applied after the rows come back.
CLIENT_SIDE_OPS = frozenset({"matches"})


def normalize_value(value: Any) -> Any:
    """
    Convert Python values to the plain form stored in rows.

    Handles datetime, UUID and Enum values so that predicates compare
    against what the store actually holds.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


@dataclass(frozen=True)
class Predicate:
    """
    One filter clause: `<field> <op> <value>`.

    Users typically don't instantiate this directly - use Attr() instead.
    """

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in COMPARISON_OPS and self.op not in TEXT_OPS:
            raise InvalidSignatureError(f"Unknown filter operator '{self.op}'", field=self.field)
        if not isinstance(self.field, str) or not self.field:
            raise InvalidSignatureError("Filter field must be a non-empty string")

        if self.op == "in":
            if not isinstance(self.value, tuple) or not self.value:
                raise InvalidSignatureError(
                    "is_in() needs a non-empty collection of values", field=self.field
                )
            for item in self.value:
                _check_scalar(self.field, item)
        elif self.op in TEXT_OPS:
            if not isinstance(self.value, str) or not self.value.strip():
                raise InvalidSignatureError(
                    f"{self.op}() needs a non-empty string", field=self.field
                )
        else:
            _check_scalar(self.field, self.value)

    @property
    def client_side(self) -> bool:
        """True if the predicate must be evaluated after rows are fetched."""
        return self.op in CLIENT_SIDE_OPS

    @property
    def sort_key(self) -> tuple[str, str, str]:
        """Canonical position of this predicate inside a signature."""
        return (self.field, self.op, repr(self.value))

    def evaluate(self, row: dict[str, Any]) -> bool:
        """
        Evaluates the predicate against a raw store row.

        Missing attributes and values of incomparable types never match.
        """
        actual = row.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "ne":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "contains":
            return isinstance(actual, str) and self.value in actual
        if self.op == "matches":
            return isinstance(actual, str) and self.value.casefold() in actual.casefold()
        try:
            if self.op == "lt":
                return actual < self.value
            if self.op == "le":
                return actual <= self.value
            if self.op == "gt":
                return actual > self.value
            return actual >= self.value
        except TypeError:
            return False

    def to_condition(self) -> Boto3ConditionBase:
        """
        Builds the equivalent boto3 condition.

        Raises:
            ValueError: For client-side operators, which DynamoDB cannot evaluate
        """
        attr = Boto3Attr(self.field)
        if self.op == "eq":
            return attr.eq(self.value)
        if self.op == "ne":
            return attr.ne(self.value)
        if self.op == "lt":
            return attr.lt(self.value)
        if self.op == "le":
            return attr.lte(self.value)
        if self.op == "gt":
            return attr.gt(self.value)
        if self.op == "ge":
            return attr.gte(self.value)
        if self.op == "in":
            return attr.is_in(list(self.value))
        if self.op == "contains":
            return attr.contains(self.value)
        raise ValueError(f"Operator '{self.op}' has no DynamoDB equivalent")

    def __repr__(self) -> str:
        return f"Predicate({self.field!r} {self.op} {self.value!r})"


class Attr:
    """
    Represents a record attribute for building filter predicates.

    All methods return Predicate instances.

    Usage:
        # Comparison operators
        Attr("category") == "Tarih"
        Attr("views") >= 100

        # Functions
        Attr("status").is_in(["draft", "published"])
        Attr("title").contains("Osmanlı")    # case-sensitive substring
        Attr("title").matches("osmanlı")     # case-insensitive substring
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    # Comparison Operators - all return Predicate

    def __eq__(self, value: Any) -> Predicate:  # type: ignore[override]
        """Equals predicate: Attr("field") == value"""
        return Predicate(self.name, "eq", normalize_value(value))

    def __ne__(self, value: Any) -> Predicate:  # type: ignore[override]
        """Not equals predicate: Attr("field") != value"""
        return Predicate(self.name, "ne", normalize_value(value))

    def __lt__(self, value: Any) -> Predicate:
        return Predicate(self.name, "lt", normalize_value(value))

    def __le__(self, value: Any) -> Predicate:
        return Predicate(self.name, "le", normalize_value(value))

    def __gt__(self, value: Any) -> Predicate:
        return Predicate(self.name, "gt", normalize_value(value))

    def __ge__(self, value: Any) -> Predicate:
        return Predicate(self.name, "ge", normalize_value(value))

    def is_in(self, values: list[Any] | tuple[Any, ...] | set[Any]) -> Predicate:
        """
        Checks if the attribute value is one of the provided values.
        The values are de-duplicated and sorted so the predicate is canonical.
        """
        normalized = {normalize_value(v) for v in values}
        return Predicate(self.name, "in", tuple(sorted(normalized, key=repr)))

    def contains(self, text: str) -> Predicate:
        """Checks if a string attribute contains text (case-sensitive)."""
        return Predicate(self.name, "contains", text)

    def matches(self, text: str) -> Predicate:
        """
        Checks if a string attribute contains text, ignoring case.
        Surrounding whitespace of the search text is dropped.
        """
        return Predicate(self.name, "matches", text.strip() if isinstance(text, str) else text)

    def __repr__(self) -> str:
        return f"Attr({self.name!r})"


def _check_scalar(field: str, value: Any) -> None:
    if not isinstance(value, SCALAR_TYPES):
        raise InvalidSignatureError(
            f"Filter value for '{field}' must be a scalar, got {type(value).__name__}",
            field=field,
        )


def compile_predicates(predicates: tuple[Predicate, ...]) -> Boto3ConditionBase | None:
    """
    Combines the server-side predicates into one boto3 condition (AND).

    Returns None when no predicate can be evaluated by DynamoDB.
    """
    condition: Boto3ConditionBase | None = None
    for predicate in predicates:
        if predicate.client_side:
            continue
        clause = predicate.to_condition()
        condition = clause if condition is None else condition & clause
    return condition


def evaluate_all(predicates: tuple[Predicate, ...], row: dict[str, Any]) -> bool:
    """True if the row satisfies every predicate."""
    return all(predicate.evaluate(row) for predicate in predicates)
