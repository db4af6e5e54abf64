"""
Read-only table tools: list, describe, get item, scan, and query-as-scan.

Each function takes the injected store and returns the same envelope
family as ``smart_query`` (``success`` / ``message`` / ``errorType``) so a
tool host can forward results verbatim.  Store errors are caught here and
reported with the store's own error code.
"""

from typing import Any, Dict, Optional

from logger import logger
from response_formatter import (
    INVALID_ARGUMENT,
    SCHEMA_ERROR,
    clean_items,
    error_result,
    error_type_of,
    sanitise_value,
)
from schema_utils import describe_attributes
from table_store import fix_item_key_types


READ_ONLY_TOOLS = [
    {
        "name": "list_tables",
        "description": "Lists all tables in the account",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {"type": "number", "description": "Maximum number of tables to return (optional)"},
                "exclusiveStartTableName": {"type": "string", "description": "Name of the table to start from for pagination (optional)"},
            },
        },
    },
    {
        "name": "describe_table",
        "description": "Gets detailed information about a table including schema, indexes, and capacity",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tableName": {"type": "string", "description": "Name of the table to describe"},
            },
            "required": ["tableName"],
        },
    },
    {
        "name": "get_item",
        "description": "Retrieves an item from a table by its primary key",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tableName": {"type": "string", "description": "Name of the table"},
                "key": {"type": "object", "description": "Primary key of the item to retrieve"},
            },
            "required": ["tableName", "key"],
        },
    },
    {
        "name": "query_table",
        "description": "Queries a table using key conditions and optional filters (executed as a filtered scan).",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tableName": {"type": "string", "description": "Name of the table"},
                "keyConditionExpression": {"type": "string", "description": "Key condition expression (required for query)"},
                "expressionAttributeValues": {"type": "object", "description": "Values for the key condition expression"},
                "expressionAttributeNames": {"type": "object", "description": "Attribute name mappings (optional)"},
                "limit": {"type": "number", "description": "Maximum number of items to return (optional)"},
                "indexName": {"type": "string", "description": "Name of the index to query (optional)"},
            },
            "required": ["tableName", "keyConditionExpression", "expressionAttributeValues"],
        },
    },
    {
        "name": "scan_table",
        "description": "Scans an entire table with optional filters. Use for full table scans or when partition key is unknown.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tableName": {"type": "string", "description": "Name of the table"},
                "filterExpression": {"type": "string", "description": "Filter expression (optional)"},
                "expressionAttributeValues": {"type": "object", "description": "Values for the filter expression (optional)"},
                "expressionAttributeNames": {"type": "object", "description": "Attribute name mappings (optional)"},
                "limit": {"type": "number", "description": "Maximum number of items to return (optional)"},
                "indexName": {"type": "string", "description": "Name of the index to scan (optional)"},
            },
            "required": ["tableName"],
        },
    },
]


def list_tables(
    store,
    limit: Optional[int] = None,
    exclusive_start_table_name: Optional[str] = None,
) -> Dict[str, Any]:
    try:
        listed = store.list_tables(limit, exclusive_start_table_name)
    except Exception as e:
        logger.error("list_tables error: %s", e)
        return error_result(error_type_of(e), f"Failed to list tables: {e}")

    tables = listed.get("tables", [])
    return {
        "success": True,
        "message": "Tables listed successfully",
        "tables": tables,
        "lastEvaluatedTable": listed.get("last_evaluated_table"),
        "tableCount": len(tables),
    }


def describe_table(store, table_name: str) -> Dict[str, Any]:
    try:
        table = store.describe_table(table_name)
    except Exception as e:
        logger.error("describe_table error for %s: %s", table_name, e)
        return error_result(error_type_of(e), f"Failed to describe table: {e}")

    key_schema = table.get("KeySchema") or []
    return {
        "success": True,
        "message": f"Table {table_name} described successfully",
        "table": sanitise_value(table),
        "summary": {
            "tableName": table.get("TableName"),
            "status": table.get("TableStatus"),
            "itemCount": table.get("ItemCount"),
            "tableSize": table.get("TableSizeBytes"),
            "partitionKey": next(
                (k["AttributeName"] for k in key_schema if k.get("KeyType") == "HASH"), None,
            ),
            "sortKey": next(
                (k["AttributeName"] for k in key_schema if k.get("KeyType") == "RANGE"), None,
            ),
            "gsiCount": len(table.get("GlobalSecondaryIndexes") or []),
            "lsiCount": len(table.get("LocalSecondaryIndexes") or []),
        },
    }


def get_table_schema(store, table_name: str) -> Dict[str, Any]:
    schema = store.describe_schema(table_name)
    if schema is None:
        return error_result(SCHEMA_ERROR, f"Could not retrieve schema for table {table_name}.")
    return {
        "success": True,
        "message": f"Schema for table {table_name}",
        "attributes": describe_attributes(schema),
        "attributeCount": len(schema.attributes),
    }


def get_item(store, table_name: str, key: Dict[str, Any]) -> Dict[str, Any]:
    if not key:
        return error_result(INVALID_ARGUMENT, "key is required")
    try:
        try:
            description = store.describe_table(table_name)
        except Exception as e:
            logger.warning("get_item — could not describe %s, key types unchanged: %s", table_name, e)
            description = None
        fixed_key = fix_item_key_types(key, description)
        item = store.get_item(table_name, fixed_key)
    except Exception as e:
        logger.error("get_item error on %s: %s", table_name, e)
        return error_result(error_type_of(e), f"Failed to get item: {e}")

    return {
        "success": True,
        "message": (
            f"Item retrieved successfully from table {table_name}"
            if item
            else f"No item found with the specified key in table {table_name}"
        ),
        "item": sanitise_value(item) if item else None,
        "found": bool(item),
    }


def scan_table(
    store,
    table_name: str,
    filter_expression: Optional[str] = None,
    expression_attribute_names: Optional[Dict[str, str]] = None,
    expression_attribute_values: Any = None,
    index_name: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    try:
        result = store.scan(
            table_name,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            index_name=index_name,
            limit=limit,
        )
    except Exception as e:
        logger.error("scan_table error on %s: %s", table_name, e)
        return error_result(error_type_of(e), f"Failed to scan table: {e}")

    items = clean_items(result.get("items") or [])
    return {
        "success": True,
        "message": (
            f"Scan executed successfully on table {table_name}"
            f"{f' (index: {index_name})' if index_name else ''}"
        ),
        "items": items,
        "count": len(items),
        "scannedCount": result.get("scanned_count"),
        "lastEvaluatedKey": sanitise_value(result.get("last_evaluated_key")),
    }


def query_table(
    store,
    table_name: str,
    key_condition_expression: str,
    expression_attribute_values: Any,
    expression_attribute_names: Optional[Dict[str, str]] = None,
    index_name: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Run a key-condition query as a filtered scan.  Slower than a native
    query but accepts any attribute in the condition, not just keys."""
    result = scan_table(
        store,
        table_name,
        filter_expression=key_condition_expression,
        expression_attribute_names=expression_attribute_names,
        expression_attribute_values=expression_attribute_values,
        index_name=index_name,
        limit=limit,
    )
    result["message"] = f"Query converted to scan: {result['message']}"
    return result
