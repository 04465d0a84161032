"""
DynamoDB implementation of the RemoteStore contract.

Each collection maps to a table (DynamoTableOptions). Reads use a Query on a
partition index when one is configured and a Scan otherwise; predicates that
DynamoDB can evaluate go into the FilterExpression, case-insensitive text
predicates are applied to the returned rows.

DynamoDB has no offset addressing, so `select` reads the matching rows of the
collection, orders them by (sort key, id) and slices the requested bounds.
That keeps page boundaries identical to the in-memory store and suits the
size of a personal site's collections.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

import boto3
from boto3.dynamodb.conditions import Attr as Boto3Attr
from boto3.dynamodb.conditions import ConditionBase as Boto3ConditionBase
from boto3.dynamodb.conditions import ConditionExpressionBuilder

from ._logging import logger, redact_value
from .config import DynamoTableOptions
from .exceptions import (
    CollectionNotFoundError,
    ConditionFailedError,
    RecordNotFoundError,
    handle_store_errors,
)
from .filters import Predicate, compile_predicates, evaluate_all
from .serializer import DynamoSerializer
from .signature import SortOrder, sort_records
from .store import prepare_row


def default_tables(prefix: str = "") -> dict[str, DynamoTableOptions]:
    """One table per collection, named '<prefix><collection>'."""
    return {
        name: DynamoTableOptions(table_name=f"{prefix}{name}")
        for name in ("articles", "videos", "questions")
    }


class DynamoStore:
    """
    RemoteStore backed by DynamoDB through a boto3 client.

    The client is passed in (or created for this store on first use); there is
    no process-wide client.

    Usage:
        store = DynamoStore(default_tables(prefix="site-"), client=boto3.client("dynamodb"))
        view = PaginatedCollectionView(store)
    """

    def __init__(
        self,
        tables: dict[str, DynamoTableOptions] | None = None,
        client: Any | None = None,
        serializer: DynamoSerializer | None = None,
    ) -> None:
        self.tables = tables if tables is not None else default_tables()
        self._client = client
        self.serializer = serializer or DynamoSerializer()

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("dynamodb")
        return self._client

    def _options(self, collection: str) -> DynamoTableOptions:
        try:
            return self.tables[collection]
        except KeyError:
            raise CollectionNotFoundError(collection) from None

    def _compile(self, condition: Boto3ConditionBase) -> tuple[str, dict[str, str], dict[str, Any]]:
        """
        Compiles a boto3 condition with boto3's ConditionExpressionBuilder.

        Returns the expression, its attribute names and its serialized values.
        """
        builder = ConditionExpressionBuilder()
        expression = builder.build_expression(condition, is_key_condition=False)
        names = dict(expression.attribute_name_placeholders)
        values = {
            placeholder: self.serializer.to_value(value)
            for placeholder, value in expression.attribute_value_placeholders.items()
        }
        return expression.condition_expression, names, values

    # --- Reads ---

    def _read_kwargs(
        self, options: DynamoTableOptions, filters: tuple[Predicate, ...]
    ) -> dict[str, Any]:
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        kwargs: dict[str, Any] = {"TableName": options.table_name}

        if options.uses_query:
            kwargs["IndexName"] = options.index_name
            kwargs["KeyConditionExpression"] = "#pk = :pk"
            names["#pk"] = options.partition_key  # type: ignore[assignment]
            values[":pk"] = self.serializer.to_value(options.partition_value)

        condition = compile_predicates(filters)
        if condition is not None:
            expression, filter_names, filter_values = self._compile(condition)
            kwargs["FilterExpression"] = expression
            names.update(filter_names)
            values.update(filter_values)

        if names:
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = values
        return kwargs

    def _read_rows(self, collection: str, filters: tuple[Predicate, ...]) -> list[dict[str, Any]]:
        options = self._options(collection)
        kwargs = self._read_kwargs(options, filters)
        operation = "query" if options.uses_query else "scan"
        local = tuple(p for p in filters if p.client_side)

        logger.info(
            "Reading collection",
            extra={
                "collection": collection,
                "table": options.table_name,
                "operation": operation,
                "index": options.index_name,
                "has_filter": "FilterExpression" in kwargs,
                "local_filters": len(local),
            },
        )

        rows: list[dict[str, Any]] = []
        with handle_store_errors(collection=collection):
            paginator = self.client.get_paginator(operation)
            for page in paginator.paginate(**kwargs):
                for item in page.get("Items", []):
                    row = self.serializer.from_item(item)
                    if evaluate_all(local, row):
                        rows.append(row)
        return rows

    async def select(
        self,
        collection: str,
        filters: tuple[Predicate, ...],
        order: SortOrder,
        bounds: tuple[int, int],
    ) -> list[dict[str, Any]]:
        start, end = bounds
        options = self._options(collection)
        rows = await asyncio.to_thread(self._read_rows, collection, filters)
        ordered = sort_records(rows, order, options.id_attribute)
        return ordered[start : end + 1]

    def _get_sync(self, collection: str, record_id: str) -> dict[str, Any] | None:
        options = self._options(collection)
        logger.debug(
            "Fetching record",
            extra={
                "collection": collection,
                "operation": "get",
                "key_hash": redact_value(record_id),
            },
        )
        with handle_store_errors(collection=collection):
            response = self.client.get_item(
                TableName=options.table_name,
                Key={options.id_attribute: self.serializer.to_value(record_id)},
            )
        if "Item" not in response:
            return None
        return self.serializer.from_item(response["Item"])

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get_sync, collection, record_id)

    def _count_sync(self, collection: str, filters: tuple[Predicate, ...]) -> int:
        if any(p.client_side for p in filters):
            return len(self._read_rows(collection, filters))

        options = self._options(collection)
        kwargs = self._read_kwargs(options, filters)
        kwargs["Select"] = "COUNT"
        operation = "query" if options.uses_query else "scan"

        total = 0
        with handle_store_errors(collection=collection):
            paginator = self.client.get_paginator(operation)
            for page in paginator.paginate(**kwargs):
                total += page.get("Count", 0)
        return total

    async def count(self, collection: str, filters: tuple[Predicate, ...] = ()) -> int:
        return await asyncio.to_thread(self._count_sync, collection, filters)

    # --- Writes ---

    def _insert_sync(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        options = self._options(collection)
        prepared = prepare_row(row)
        prepared.setdefault(options.id_attribute, str(uuid.uuid4()))
        prepared.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        if options.partition_key is not None:
            prepared.setdefault(options.partition_key, options.partition_value)

        expression, names, _ = self._compile(Boto3Attr(options.id_attribute).not_exists())
        logger.info(
            "Inserting record",
            extra={
                "collection": collection,
                "operation": "insert",
                "key_hash": redact_value(prepared[options.id_attribute]),
            },
        )
        with handle_store_errors(collection=collection):
            self.client.put_item(
                TableName=options.table_name,
                Item=self.serializer.to_item(prepared),
                ConditionExpression=expression,
                ExpressionAttributeNames=names,
            )
        logger.info("Insert successful", extra={"collection": collection, "operation": "insert"})
        return {k: v for k, v in prepared.items() if v is not None}

    async def insert(self, collection: str, row: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._insert_sync, collection, row)

    def _update_sync(
        self, collection: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        options = self._options(collection)
        prepared = prepare_row(changes)
        prepared.pop(options.id_attribute, None)

        condition, names, values = self._compile(Boto3Attr(options.id_attribute).exists())
        set_parts: list[str] = []
        remove_parts: list[str] = []
        for i, (key, value) in enumerate(sorted(prepared.items())):
            name_ph = f"#u{i}"
            names[name_ph] = key
            if value is None:
                remove_parts.append(name_ph)
            else:
                value_ph = f":u{i}"
                values[value_ph] = self.serializer.to_value(value, field=key)
                set_parts.append(f"{name_ph} = {value_ph}")

        update_expression = []
        if set_parts:
            update_expression.append("SET " + ", ".join(set_parts))
        if remove_parts:
            update_expression.append("REMOVE " + ", ".join(remove_parts))

        kwargs: dict[str, Any] = {
            "TableName": options.table_name,
            "Key": {options.id_attribute: self.serializer.to_value(record_id)},
            "ConditionExpression": condition,
            "ExpressionAttributeNames": names,
            "ReturnValues": "ALL_NEW",
        }
        if update_expression:
            kwargs["UpdateExpression"] = " ".join(update_expression)
        else:
            # Nothing to change: touch the id so the existence check still runs.
            kwargs["UpdateExpression"] = "SET #u_id = :u_id"
            names["#u_id"] = options.id_attribute
            values[":u_id"] = self.serializer.to_value(record_id)
        if values:
            kwargs["ExpressionAttributeValues"] = values

        logger.info(
            "Updating record",
            extra={
                "collection": collection,
                "operation": "update",
                "key_hash": redact_value(record_id),
                "fields": sorted(prepared),
            },
        )
        try:
            with handle_store_errors(collection=collection):
                response = self.client.update_item(**kwargs)
        except ConditionFailedError as e:
            raise RecordNotFoundError(collection, record_id, original_error=e) from e

        logger.info("Update successful", extra={"collection": collection, "operation": "update"})
        return self.serializer.from_item(response.get("Attributes", {}))

    async def update(
        self, collection: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self._update_sync, collection, record_id, changes)

    def _delete_sync(self, collection: str, record_id: str) -> None:
        options = self._options(collection)
        logger.info(
            "Deleting record",
            extra={
                "collection": collection,
                "operation": "delete",
                "key_hash": redact_value(record_id),
            },
        )
        with handle_store_errors(collection=collection):
            self.client.delete_item(
                TableName=options.table_name,
                Key={options.id_attribute: self.serializer.to_value(record_id)},
            )
        logger.info("Delete successful", extra={"collection": collection, "operation": "delete"})

    async def delete(self, collection: str, record_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, collection, record_id)
