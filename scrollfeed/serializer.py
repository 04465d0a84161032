from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, cast
from uuid import UUID

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .exceptions import StoreSerializationError


class DynamoSerializer:
    """
    Converts store rows between plain Python and the DynamoDB low-level format.

    Architectural Note:
    -------------------
    DynamoDB requires numbers as 'Decimal' and boto3's TypeSerializer rejects
    floats. Rows travel through Scrollfeed as JSON-like dicts (ISO timestamps,
    enum values, floats), so this class converts on the way to boto3 and
    restores ints/floats on the way back.
    """

    def __init__(self) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def to_item(self, row: dict[str, Any]) -> dict[str, dict[str, Any]]:
        """Converts a row to DynamoDB JSON ({"S": "..."}, {"N": "..."}). None values are dropped."""
        item: dict[str, dict[str, Any]] = {}
        for key, value in row.items():
            if value is None:
                continue
            item[key] = self.to_value(value, field=key)
        return item

    def to_value(self, value: Any, field: str | None = None) -> dict[str, Any]:
        """
        Serializes a single value.
        E.g.: 10.5 -> {'N': '10.5'}
        """
        try:
            return cast(dict[str, Any], self._serializer.serialize(self._prepare(value)))
        except TypeError as e:
            target = f"field '{field}'" if field else "value"
            raise StoreSerializationError(
                f"Failed to serialize {target}. value={value!r} error={e!s}", original_error=e
            ) from e

    def from_item(self, item: dict[str, Any]) -> dict[str, Any]:
        """Converts DynamoDB JSON back to a plain row."""
        return {k: self._restore(self._deserializer.deserialize(v)) for k, v in item.items()}

    def _prepare(self, value: Any) -> Any:
        """
        Recursively prepares values for boto3's TypeSerializer.

        Converts:
        - float -> Decimal
        - datetime/date -> ISO 8601 string
        - UUID -> string
        - Enum -> value
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, float):
            # Go through str to avoid binary float artifacts in the Decimal
            return Decimal(str(value))
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, Enum):
            return self._prepare(value.value)
        if isinstance(value, list | tuple):
            return [self._prepare(v) for v in value]
        if isinstance(value, dict):
            return {k: self._prepare(v) for k, v in value.items()}
        return value

    def _restore(self, value: Any) -> Any:
        """Decimal -> int (whole numbers) or float, recursively."""
        if isinstance(value, Decimal):
            if value % 1 == 0:
                return int(value)
            return float(value)
        if isinstance(value, list):
            return [self._restore(v) for v in value]
        if isinstance(value, dict):
            return {k: self._restore(v) for k, v in value.items()}
        return value
