"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

SDK clients for the key-value database service.

Provides a developer-friendly API over the request dispatchers. Item and key
values are passed through in the service's attribute-value encoding
(e.g. ``{"pk": {"S": "user#1"}}``); the client only validates that required
arguments are present.
"""

from typing import Any, Dict, List, Optional, Union

from kestrel.config.settings import ClientConfig, load_config
from kestrel.core.dispatcher import AsyncRequestDispatcher, RequestDispatcher
from kestrel.core.signing import Signer
from kestrel.exceptions import ResponseFormatError, SDKConfigurationError
from kestrel.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def _resolve_config(config: Union[ClientConfig, str, None]) -> ClientConfig:
    if isinstance(config, ClientConfig):
        return config
    return load_config(config)


def _field(response: Any, operation: str, name: str, default: Any = None) -> Any:
    if not isinstance(response, dict):
        raise ResponseFormatError(
            f"{operation} returned {type(response).__name__}, expected a JSON object"
        )
    return response.get(name, default)


def _require(value: Any, name: str) -> None:
    if not value:
        raise SDKConfigurationError(f"{name} is required")


def _merge(payload: Dict[str, Any], extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if extra:
        overlap = set(payload) & set(extra)
        if overlap:
            raise SDKConfigurationError(
                f"extra parameters must not override {sorted(overlap)}"
            )
        payload.update(extra)
    return payload


def list_tables_payload(limit: Optional[int] = None, start_table: Optional[str] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if limit is not None:
        if limit <= 0:
            raise SDKConfigurationError("limit must be positive")
        payload["Limit"] = limit
    if start_table:
        payload["ExclusiveStartTableName"] = start_table
    return payload


def describe_table_payload(table_name: str) -> Dict[str, Any]:
    _require(table_name, "table_name")
    return {"TableName": table_name}


def get_item_payload(
    table_name: str,
    key: Dict[str, Any],
    consistent_read: bool = False,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _require(table_name, "table_name")
    _require(key, "key")
    payload: Dict[str, Any] = {"TableName": table_name, "Key": key}
    if consistent_read:
        payload["ConsistentRead"] = True
    return _merge(payload, extra)


def put_item_payload(
    table_name: str,
    item: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _require(table_name, "table_name")
    _require(item, "item")
    return _merge({"TableName": table_name, "Item": item}, extra)


def delete_item_payload(
    table_name: str,
    key: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _require(table_name, "table_name")
    _require(key, "key")
    return _merge({"TableName": table_name, "Key": key}, extra)


def update_item_payload(
    table_name: str,
    key: Dict[str, Any],
    update_expression: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _require(table_name, "table_name")
    _require(key, "key")
    _require(update_expression, "update_expression")
    return _merge(
        {"TableName": table_name, "Key": key, "UpdateExpression": update_expression},
        extra,
    )


def query_payload(
    table_name: str,
    key_condition_expression: str,
    expression_attribute_values: Optional[Dict[str, Any]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    _require(table_name, "table_name")
    _require(key_condition_expression, "key_condition_expression")
    payload: Dict[str, Any] = {
        "TableName": table_name,
        "KeyConditionExpression": key_condition_expression,
    }
    if expression_attribute_values:
        payload["ExpressionAttributeValues"] = expression_attribute_values
    return _merge(payload, extra)


def scan_payload(table_name: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    _require(table_name, "table_name")
    return _merge({"TableName": table_name}, extra)


class KestrelClient:
    """
    Blocking SDK client.

    Args:
        config: ClientConfig, or a path to a YAML configuration file
                (None loads the default configuration path)
        signer: Optional Signer overriding the one chosen from credentials
        dispatcher: Optional pre-built RequestDispatcher
        apply_logging: Configure structlog from the ``logging`` section of the config

    Example:
        >>> with KestrelClient(ClientConfig(endpoint="localhost:8000", use_tls=False)) as client:
        ...     client.put_item("users", {"pk": {"S": "user#1"}, "name": {"S": "Ada"}})
        ...     item = client.get_item("users", {"pk": {"S": "user#1"}})
    """

    def __init__(
        self,
        config: Union[ClientConfig, str, None] = None,
        signer: Optional[Signer] = None,
        dispatcher: Optional[RequestDispatcher] = None,
        apply_logging: bool = False,
    ):
        self.config = _resolve_config(config) if dispatcher is None else dispatcher.config
        if apply_logging:
            configure_logging(self.config.logging)
        self.dispatcher = dispatcher or RequestDispatcher(self.config, signer=signer)
        logger.info("Kestrel client initialized", endpoint=self.config.endpoint)

    def call(self, operation: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Dispatch any service operation with a raw payload."""
        return self.dispatcher.dispatch(operation, payload or {})

    def list_tables(self, limit: Optional[int] = None, start_table: Optional[str] = None) -> List[str]:
        """Return the table names of one ListTables page."""
        response = self.call("ListTables", list_tables_payload(limit, start_table))
        return _field(response, "ListTables", "TableNames", [])

    def describe_table(self, table_name: str) -> Dict[str, Any]:
        response = self.call("DescribeTable", describe_table_payload(table_name))
        return _field(response, "DescribeTable", "Table", {})

    def get_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        consistent_read: bool = False,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one item by primary key.

        Returns:
            The item's attribute map, or None if no item has this key
        """
        response = self.call("GetItem", get_item_payload(table_name, key, consistent_read, extra))
        return _field(response, "GetItem", "Item")

    def put_item(
        self,
        table_name: str,
        item: Dict[str, Any],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Write one item.

        Raises:
            ConditionalCheckFailedError: If ``extra`` carries a condition that fails
        """
        return self.call("PutItem", put_item_payload(table_name, item, extra))

    def delete_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self.call("DeleteItem", delete_item_payload(table_name, key, extra))

    def update_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        update_expression: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self.call("UpdateItem", update_item_payload(table_name, key, update_expression, extra))

    def query(
        self,
        table_name: str,
        key_condition_expression: str,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run one Query page; the raw response carries Items and LastEvaluatedKey."""
        return self.call(
            "Query",
            query_payload(table_name, key_condition_expression, expression_attribute_values, extra),
        )

    def scan(self, table_name: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.call("Scan", scan_payload(table_name, extra))

    def close(self) -> None:
        """Close the underlying connection."""
        self.dispatcher.close()
        logger.debug("Closed Kestrel client")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncKestrelClient:
    """
    Asyncio SDK client.

    See KestrelClient for full documentation.
    """

    def __init__(
        self,
        config: Union[ClientConfig, str, None] = None,
        signer: Optional[Signer] = None,
        dispatcher: Optional[AsyncRequestDispatcher] = None,
        apply_logging: bool = False,
    ):
        self.config = _resolve_config(config) if dispatcher is None else dispatcher.config
        if apply_logging:
            configure_logging(self.config.logging)
        self.dispatcher = dispatcher or AsyncRequestDispatcher(self.config, signer=signer)
        logger.info("Async Kestrel client initialized", endpoint=self.config.endpoint)

    async def call(self, operation: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(operation, payload or {})

    async def list_tables(self, limit: Optional[int] = None, start_table: Optional[str] = None) -> List[str]:
        response = await self.call("ListTables", list_tables_payload(limit, start_table))
        return _field(response, "ListTables", "TableNames", [])

    async def describe_table(self, table_name: str) -> Dict[str, Any]:
        response = await self.call("DescribeTable", describe_table_payload(table_name))
        return _field(response, "DescribeTable", "Table", {})

    async def get_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        consistent_read: bool = False,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        response = await self.call("GetItem", get_item_payload(table_name, key, consistent_read, extra))
        return _field(response, "GetItem", "Item")

    async def put_item(
        self,
        table_name: str,
        item: Dict[str, Any],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.call("PutItem", put_item_payload(table_name, item, extra))

    async def delete_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.call("DeleteItem", delete_item_payload(table_name, key, extra))

    async def update_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        update_expression: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.call("UpdateItem", update_item_payload(table_name, key, update_expression, extra))

    async def query(
        self,
        table_name: str,
        key_condition_expression: str,
        expression_attribute_values: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.call(
            "Query",
            query_payload(table_name, key_condition_expression, expression_attribute_values, extra),
        )

    async def scan(self, table_name: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.call("Scan", scan_payload(table_name, extra))

    async def close(self) -> None:
        await self.dispatcher.close()
        logger.debug("Closed async Kestrel client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
