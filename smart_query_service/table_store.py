"""
DynamoDB table store: the read-only primitives the interpreter and the
table tools run on.

``DynamoTableStore`` wraps a boto3 low-level client and speaks plain Python
values on both sides — marshalling to and from the wire's ``{"S": ..}`` /
``{"N": ..}`` form happens here and nowhere else.

Public surface:

    list_tables(limit, exclusive_start_table_name)
    describe_table(table_name)          → raw ``Table`` dict
    describe_schema(table_name)         → ``Schema`` | None
    get_item(table_name, key)           → item | None
    scan(table_name, filter_expression, expression_attribute_names,
         expression_attribute_values, index_name, limit, all_pages)

Every method except ``describe_schema`` lets store errors
(``botocore.exceptions.ClientError`` / ``BotoCoreError``, ``ValueError`` for
malformed placeholders) propagate to the caller.
"""

import json
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from config import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    DYNAMODB_ENDPOINT_URL,
)
from logger import logger
from schema_utils import Schema, schema_from_description

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


# ---------------------- MARSHALLING ----------------------

def _to_wire_safe(value: Any) -> Any:
    """The serializer rejects ``float``; route them through ``Decimal``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_wire_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_wire_safe(v) for v in value]
    return value


def marshall(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _serializer.serialize(_to_wire_safe(v)) for k, v in values.items()}


def unmarshall(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


# ---------------------- PLACEHOLDER HELPERS ----------------------

def normalize_attribute_values(values: Any) -> Optional[Dict[str, Any]]:
    """Accept expression values as a dict or a JSON string, with each value
    either plain or in wire form (``{"N": "5"}``), and return plain values.

    Returns ``None`` for empty input or unparseable JSON.
    """
    if not values:
        return None

    if isinstance(values, str):
        try:
            values = json.loads(values)
        except ValueError as e:
            logger.error("Error parsing expression attribute values: %s", e)
            return None
        if not isinstance(values, dict):
            return None

    normalized: Dict[str, Any] = {}
    for key, val in values.items():
        if isinstance(val, dict) and val.keys() & {"N", "S", "B"}:
            if "N" in val:
                normalized[key] = Decimal(str(val["N"]))
            elif "S" in val:
                normalized[key] = val["S"]
            else:
                normalized[key] = val["B"]
        else:
            normalized[key] = val
    return normalized


def clean_expression_attribute_names(
    names: Optional[Dict[str, str]],
    expressions: List[Optional[str]],
) -> Optional[Dict[str, str]]:
    """Keep only the name placeholders the expressions reference.

    The store rejects unused placeholders, so stray entries are dropped
    rather than sent.  A bare ``"#"`` key is never valid and raises
    ``ValueError``.
    """
    if not names:
        return None

    combined = " ".join(e for e in expressions if isinstance(e, str))
    cleaned: Dict[str, str] = {}
    for key, name in names.items():
        if key == "#":
            raise ValueError(
                'Invalid ExpressionAttributeNames key: "#" is not allowed. '
                'Use descriptive names like "#age", "#name".'
            )
        # "#attr1" must not match inside "#attr10"
        if re.search(re.escape(key) + r"(?!\w)", combined):
            cleaned[key] = name
    return cleaned or None


def fix_item_key_types(
    key: Optional[Dict[str, Any]],
    description: Optional[Dict[str, Any]],
) -> Optional[Dict[str, Any]]:
    """Coerce primary-key values to the types the table declares.

    ``{"TradeId": 42}`` becomes ``{"TradeId": "42"}`` when ``TradeId`` is a
    string key, and ``{"Year": "2024"}`` becomes ``{"Year": 2024}`` for a
    number key.  Non-key attributes and unconvertible values pass through.
    """
    if not key or not description:
        return key
    key_schema = description.get("KeySchema") or []
    definitions = description.get("AttributeDefinitions") or []
    if not key_schema or not definitions:
        return key

    attr_types = {
        d["AttributeName"]: d["AttributeType"]
        for d in definitions
        if isinstance(d.get("AttributeName"), str) and isinstance(d.get("AttributeType"), str)
    }

    fixed = dict(key)
    for entry in key_schema:
        attr = entry.get("AttributeName")
        if attr not in fixed:
            continue
        expected = attr_types.get(attr)
        current = fixed[attr]
        if expected == "S" and not isinstance(current, str):
            fixed[attr] = json.dumps(current) if isinstance(current, (dict, list)) else str(current)
        elif expected == "N" and (isinstance(current, str) or isinstance(current, bool)):
            try:
                fixed[attr] = Decimal(str(current).strip())
            except ArithmeticError:
                pass
    return fixed


# ---------------------- CLIENT ----------------------

def connect_to_store() -> "DynamoTableStore":
    """Build the store client from configuration.  No network call is made
    until the first operation."""
    kwargs: Dict[str, Any] = {"region_name": AWS_REGION}
    if AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = AWS_SECRET_ACCESS_KEY
    if DYNAMODB_ENDPOINT_URL:
        kwargs["endpoint_url"] = DYNAMODB_ENDPOINT_URL

    logger.info(
        "Connecting to DynamoDB — region=%s endpoint=%s",
        AWS_REGION, DYNAMODB_ENDPOINT_URL or "default",
    )
    return DynamoTableStore(boto3.client("dynamodb", **kwargs))


class DynamoTableStore:
    """Read-only table store backed by a boto3 ``dynamodb`` client."""

    def __init__(self, client):
        self._client = client

    def list_tables(
        self,
        limit: Optional[int] = None,
        exclusive_start_table_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if limit is not None:
            kwargs["Limit"] = limit
        if exclusive_start_table_name:
            kwargs["ExclusiveStartTableName"] = exclusive_start_table_name
        response = self._client.list_tables(**kwargs)
        return {
            "tables": response.get("TableNames", []),
            "last_evaluated_table": response.get("LastEvaluatedTableName"),
        }

    def describe_table(self, table_name: str) -> Dict[str, Any]:
        return self._client.describe_table(TableName=table_name)["Table"]

    def describe_schema(self, table_name: str) -> Optional[Schema]:
        """Schema snapshot, or ``None`` when the table cannot be described."""
        try:
            description = self.describe_table(table_name)
        except Exception as e:
            logger.error("Error getting table schema for %s: %s", table_name, e)
            return None
        return schema_from_description(table_name, description)

    def get_item(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self._client.get_item(TableName=table_name, Key=marshall(key))
        item = response.get("Item")
        return unmarshall(item) if item else None

    def scan(
        self,
        table_name: str,
        filter_expression: Optional[str] = None,
        expression_attribute_names: Optional[Dict[str, str]] = None,
        expression_attribute_values: Any = None,
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        all_pages: bool = False,
    ) -> Dict[str, Any]:
        """Scan *table_name*.

        By default a single page is read (``Limit`` caps the items the store
        evaluates) and its ``LastEvaluatedKey`` is returned so the caller can
        continue.  With ``all_pages`` every page is followed until
        ``LastEvaluatedKey`` runs out.
        """
        names = clean_expression_attribute_names(
            expression_attribute_names, [filter_expression],
        )
        values = normalize_attribute_values(expression_attribute_values)

        kwargs: Dict[str, Any] = {"TableName": table_name}
        if index_name:
            kwargs["IndexName"] = index_name
        if filter_expression:
            kwargs["FilterExpression"] = filter_expression
        if names:
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = marshall(values)

        if limit is not None:
            kwargs["Limit"] = limit
        if all_pages:
            pages = self._client.get_paginator("scan").paginate(**kwargs)
        else:
            pages = [self._client.scan(**kwargs)]

        items: List[Dict[str, Any]] = []
        scanned = 0
        last_key = None
        for page in pages:
            items.extend(unmarshall(item) for item in page.get("Items", []))
            scanned += page.get("ScannedCount", 0)
            last_key = page.get("LastEvaluatedKey")

        logger.info(
            "Scan on %s%s — %d items (%d scanned)",
            table_name, f" (index: {index_name})" if index_name else "",
            len(items), scanned,
        )
        return {
            "items": items,
            "count": len(items),
            "scanned_count": scanned,
            "last_evaluated_key": unmarshall(last_key) if last_key else None,
        }
