"""
Smart query: interpret a natural-language question against one table and
run it.

Pipeline (strictly sequential, one request at a time):

    validate input → fetch schema → parse (superlative | cascade)
        → validate IR → compile → execute → format

``smart_query`` never raises.  Every failure is reported as a result
envelope with one of the ``errorType`` tags from ``response_formatter``.
The store is passed in, so any object with ``describe_schema`` and ``scan``
works (tests use an in-memory fake).
"""

from typing import Any, Dict, Optional

from db_executor import execute_filtered_scan, execute_superlative
from ir_compiler import compile_ir_to_scan
from ir_validator import validate_ir, validate_limit
from logger import logger
from parser import parse_to_ir
from response_formatter import (
    INTERNAL_ERROR,
    INVALID_ARGUMENT,
    INVALID_FILTER,
    SCHEMA_ERROR,
    error_result,
    success_result,
)


SMART_QUERY_TOOL: Dict[str, Any] = {
    "name": "smart_query",
    "description": (
        "Performs an interpretive query on a table from a plain-language "
        "request. Use this only as a fallback, when the structured query and "
        "scan tools cannot express the request: natural-language filtering "
        "(e.g. 'records from China'), superlatives (e.g. 'the highest amount') "
        "or loose attribute naming (e.g. 'price' for an 'Amount' column). "
        "Requires tableName and queryText."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "tableName": {
                "type": "string",
                "description": "The name of the table to query.",
            },
            "queryText": {
                "type": "string",
                "description": (
                    "The natural language query provided by the user "
                    "(e.g. 'records from China', 'highest Amount')."
                ),
            },
            "limit": {
                "type": "number",
                "description": (
                    "Optional: the maximum number of items to return "
                    "(default 100, or 1 for highest / lowest queries)."
                ),
            },
        },
        "required": ["tableName", "queryText"],
    },
}


def validate_request(table_name: Any, query_text: Any, limit: Any) -> Optional[int]:
    """Check raw caller input; raises ``ValueError``, returns the limit."""
    if not isinstance(table_name, str) or not table_name.strip():
        raise ValueError("tableName and queryText are required")
    if not isinstance(query_text, str) or not query_text.strip():
        raise ValueError("tableName and queryText are required")
    return validate_limit(limit)


def smart_query(
    store,
    table_name: Any,
    query_text: Any,
    limit: Any = None,
) -> Dict[str, Any]:
    """Interpret *query_text* against *table_name* and return a result
    envelope (see ``response_formatter``)."""

    # 1. Input validation: no store access on failure
    try:
        limit = validate_request(table_name, query_text, limit)
    except ValueError as e:
        return error_result(INVALID_ARGUMENT, str(e))

    # 2. Schema
    try:
        schema = store.describe_schema(table_name)
    except Exception as e:
        logger.error("[SMART_QUERY] Step 2 — Schema fetch failed for %s: %s", table_name, e)
        schema = None
    if schema is None or not schema.attributes:
        return error_result(
            SCHEMA_ERROR, f"Could not retrieve schema for table {table_name}.",
        )
    attribute_names = schema.attribute_names

    logger.info(
        "[SMART_QUERY] Step 2 — Schema: %s attributes=%s", table_name, attribute_names,
    )

    # 3. Parse
    ir = parse_to_ir(query_text, attribute_names, limit)
    if ir is None:
        return error_result(
            INVALID_FILTER,
            "SmartQuery could not generate a valid filter expression from the "
            "natural language query. Please be more specific or use the exact "
            "attribute name.",
        )

    logger.info(
        "[SMART_QUERY] Step 3 — Parsed IR: operation=%s rule=%s conditions=%s sort=%s limit=%s",
        ir["operation"], ir.get("rule"), ir["conditions"], ir.get("sort"), ir.get("limit"),
    )

    # 4. Validate + compile
    try:
        validate_ir(ir, attribute_names)
        compiled = compile_ir_to_scan(ir)
    except ValueError as e:
        logger.warning("[SMART_QUERY] Step 4 — Validation failed: %s", e)
        return error_result(INVALID_FILTER, str(e))

    # 5. Execute
    try:
        if compiled["type"] == "superlative":
            executed = execute_superlative(store, table_name, compiled["sort"], compiled["limit"])
        else:
            executed = execute_filtered_scan(store, table_name, compiled)
    except Exception as e:
        logger.error("[SMART_QUERY] Step 5 — Execution failed on %s: %s", table_name, e)
        return error_result(INTERNAL_ERROR, f"SmartQuery failed: {e}")

    logger.info(
        "[SMART_QUERY] Step 5 — %d items returned from %s", executed["count"], table_name,
    )

    # 6. Format
    if compiled["type"] == "superlative":
        field, direction = compiled["sort"]
        extreme = "highest" if direction == "desc" else "lowest"
        message = (
            f"SmartQuery executed: returning {extreme} {field} item(s) "
            f"by scanning the table ({executed['scanned']} items scanned)."
        )
    else:
        message = (
            f"SmartQuery executed successfully on table {table_name}. "
            f"Filter: {compiled['filter_expression']}"
        )
    return success_result(executed["items"], message)
