"""
FastAPI Smart Query service — natural-language access to DynamoDB tables.

Features:
- ``/smart-query``: plain-language question → filter expression → scan
- Superlative queries ("highest amount") via full scan + in-memory sort
- Read-only table tools (list, describe, schema, get item, scan, query)
- Tool capability metadata for agent hosts (``/tools``)
- Step-by-step interpretation trace (``/diagnose``)

The table store is created once and injected into every endpoint through
``get_store`` so tests can swap in a fake.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from attribute_resolver import resolve_attribute
from ir_compiler import compile_ir_to_scan
from ir_validator import validate_ir
from logger import logger
from parser import EXTRACTION_RULES, _preprocess_query, detect_superlative, parse_to_ir
from response_formatter import (
    INTERNAL_ERROR,
    INVALID_ARGUMENT,
    INVALID_FILTER,
    SCHEMA_ERROR,
    clean_items,
    paraphrase_ir,
)
from schema_utils import find_numeric_attribute
from smart_query import SMART_QUERY_TOOL, smart_query, validate_request
from table_manager import (
    READ_ONLY_TOOLS,
    describe_table,
    get_item,
    get_table_schema,
    list_tables,
    query_table,
    scan_table,
)
from table_store import connect_to_store

VERSION = "1.0.0"


# One store client per process, built before the first request is served
@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.store = connect_to_store()
    yield


app = FastAPI(title="DynamoDB Smart Query", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(request: Request):
    """The process-wide store client created at start-up."""
    return request.app.state.store


# errorType → HTTP status; unknown store error codes count as 500
_STATUS_BY_ERROR = {
    INVALID_ARGUMENT: 400,
    INVALID_FILTER: 400,
    SCHEMA_ERROR: 404,
    INTERNAL_ERROR: 500,
}


def _respond(result: Dict[str, Any]) -> JSONResponse:
    status = 200 if result.get("success") else _STATUS_BY_ERROR.get(result.get("errorType"), 500)
    return JSONResponse(status_code=status, content=result)


# ---------------------- REQUEST MODELS ----------------------


# Loosely typed: smart_query reports bad input as InvalidArgument instead
# of a 422 body
class SmartQueryRequest(BaseModel):
    tableName: Optional[Any] = None
    queryText: Optional[Any] = None
    limit: Optional[Any] = Field(default=None, description="Max items (default 100, 1 for superlatives)")


class ListTablesRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    exclusiveStartTableName: Optional[str] = None


class TableRequest(BaseModel):
    tableName: str


class GetItemRequest(BaseModel):
    tableName: str
    key: Dict[str, Any]


class ScanRequest(BaseModel):
    tableName: str
    filterExpression: Optional[str] = None
    expressionAttributeNames: Optional[Dict[str, str]] = None
    expressionAttributeValues: Optional[Any] = None
    indexName: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class QueryRequest(BaseModel):
    tableName: str
    keyConditionExpression: str
    expressionAttributeValues: Any
    expressionAttributeNames: Optional[Dict[str, str]] = None
    indexName: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


# ---------------------- ENDPOINTS ----------------------


@app.post("/smart-query")
def run_smart_query(request: SmartQueryRequest, store=Depends(get_store)):
    """Full pipeline: schema → parse → validate → compile → execute → respond."""
    logger.info(
        "[SMART_QUERY] Request — table=%s query=%r limit=%s",
        request.tableName, request.queryText, request.limit,
    )
    return _respond(smart_query(store, request.tableName, request.queryText, request.limit))


@app.get("/tools")
def tools():
    """Capability metadata for tool-calling hosts.  ``smart_query`` is the
    interpretive fallback; the read-only tools come first."""
    return {"tools": READ_ONLY_TOOLS + [SMART_QUERY_TOOL]}


@app.post("/list-tables")
def list_tables_endpoint(request: ListTablesRequest, store=Depends(get_store)):
    return _respond(list_tables(store, request.limit, request.exclusiveStartTableName))


@app.post("/describe-table")
def describe_table_endpoint(request: TableRequest, store=Depends(get_store)):
    return _respond(describe_table(store, request.tableName))


@app.post("/get-schema")
def get_schema(request: TableRequest, store=Depends(get_store)):
    """Return the attribute definitions the interpreter resolves against."""
    return _respond(get_table_schema(store, request.tableName))


@app.post("/get-item")
def get_item_endpoint(request: GetItemRequest, store=Depends(get_store)):
    return _respond(get_item(store, request.tableName, request.key))


@app.post("/scan-table")
def scan_table_endpoint(request: ScanRequest, store=Depends(get_store)):
    return _respond(scan_table(
        store,
        request.tableName,
        filter_expression=request.filterExpression,
        expression_attribute_names=request.expressionAttributeNames,
        expression_attribute_values=request.expressionAttributeValues,
        index_name=request.indexName,
        limit=request.limit,
    ))


@app.post("/query-table")
def query_table_endpoint(request: QueryRequest, store=Depends(get_store)):
    return _respond(query_table(
        store,
        request.tableName,
        request.keyConditionExpression,
        request.expressionAttributeValues,
        expression_attribute_names=request.expressionAttributeNames,
        index_name=request.indexName,
        limit=request.limit,
    ))


@app.post("/diagnose")
def diagnose(request: SmartQueryRequest, store=Depends(get_store)):
    """Diagnostic endpoint — runs the interpretation pipeline and returns
    every intermediate step instead of final results.

    Returns:
    - ``1_schema``: attribute names from the table description
    - ``2_superlative``: detected direction and numeric sort attribute
    - ``3_cascade``: each extraction rule with its outcome (rules after the
      first match are reported as skipped)
    - ``4_ir``: parsed IR and its paraphrase
    - ``5_compile``: filter expression and placeholder maps
    - ``6_execute_preview``: first 3 items from a limited run
    """
    trace: Dict[str, Any] = {
        "table": request.tableName,
        "query": request.queryText,
        "steps": {},
    }
    try:
        limit = validate_request(request.tableName, request.queryText, request.limit)
    except ValueError as e:
        trace["steps"]["0_input"] = {"status": "error", "error": str(e)}
        return trace

    # Step 1: Schema
    schema = store.describe_schema(request.tableName)
    if schema is None:
        trace["steps"]["1_schema"] = {
            "status": "error",
            "error": f"Could not retrieve schema for table {request.tableName}.",
        }
        return trace
    names = schema.attribute_names
    trace["steps"]["1_schema"] = {"status": "ok", "attributes": names}

    cleaned = _preprocess_query(request.queryText)

    # Step 2: Superlative detection
    direction = detect_superlative(cleaned)
    trace["steps"]["2_superlative"] = {
        "direction": direction,
        "sort_attribute": find_numeric_attribute(names) if direction else None,
    }

    # Step 3: Cascade, every rule evaluated for visibility
    cascade = []
    matched = False
    for rule_name, rule in EXTRACTION_RULES:
        if matched:
            cascade.append({"rule": rule_name, "status": "skipped"})
            continue
        condition = rule(cleaned, names)
        cascade.append({
            "rule": rule_name,
            "status": "matched" if condition else "no match",
            "condition": condition,
        })
        matched = condition is not None
    trace["steps"]["3_cascade"] = {
        "implied_attribute": resolve_attribute(cleaned, names),
        "rules": cascade,
    }

    # Step 4: IR
    ir = parse_to_ir(request.queryText, names, limit)
    if ir is None:
        trace["steps"]["4_ir"] = {"status": "error", "error": "No attribute could be resolved"}
        return trace
    try:
        validate_ir(ir, names)
    except ValueError as e:
        trace["steps"]["4_ir"] = {"status": "error", "ir": ir, "error": str(e)}
        return trace
    trace["steps"]["4_ir"] = {"status": "ok", "ir": ir, "interpretation": paraphrase_ir(ir)}

    # Step 5: Compile
    compiled = compile_ir_to_scan(ir)
    trace["steps"]["5_compile"] = {"status": "ok", **compiled}

    # Step 6: Execute preview
    if compiled["type"] == "scan":
        try:
            preview = store.scan(
                request.tableName,
                filter_expression=compiled["filter_expression"],
                expression_attribute_names=compiled["expression_attribute_names"],
                expression_attribute_values=compiled["expression_attribute_values"],
                limit=compiled["limit"],
            )
            items = clean_items(preview.get("items") or [])
            trace["steps"]["6_execute_preview"] = {
                "status": "ok",
                "returned": len(items),
                "sample_items": items[:3],
            }
        except Exception as e:
            trace["steps"]["6_execute_preview"] = {"status": "error", "error": str(e)}
    else:
        trace["steps"]["6_execute_preview"] = {
            "status": "skipped",
            "reason": "superlative queries read the whole table; use /smart-query",
        }

    return trace


@app.get("/health")
def health_check():
    return {"status": "ok", "version": VERSION}
