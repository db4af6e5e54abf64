"""
IR-to-filter-expression compiler.

Turns validated IR conditions into the placeholder form a table-store scan
expects::

    FilterExpression           "#attr0 > :val0"
    ExpressionAttributeNames   {"#attr0": "Amount"}
    ExpressionAttributeValues  {":val0": 1000}

Attribute names never appear in the expression text, so reserved words
and odd characters in column names are safe.  Placeholder indices start at
0 for every compilation and are never reused within one.

**Value typing** (raw condition strings → typed literals), in this order:

  - attribute name contains "date"/"time" and the value is shaped like a
    4-digit-year date → canonical ``YYYY-MM-DD`` string (the raw string
    is kept when the date does not parse)
  - value is a finite number → ``int`` when integral, else ``float``
  - anything else → the string itself

Date handling runs first so "2025-02-25" under ``TradeDate`` never turns
into the number 2025.
"""

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from schema_utils import is_date_attribute

# 4-digit year, month, day; optional time part after it
_DATE_SHAPE_RE = re.compile(r"^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}(?:[T ].*)?$")

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")

# Date formats tried in order for date-shaped values
_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%fZ",   # ISO with ms and Z
    "%Y-%m-%dT%H:%M:%SZ",      # ISO with Z
    "%Y-%m-%dT%H:%M:%S.%f",    # ISO with ms
    "%Y-%m-%dT%H:%M:%S",       # ISO
    "%Y-%m-%d %H:%M:%S",       # space-separated
    "%Y-%m-%d",                 # date only
    "%Y/%m/%d",
    "%Y.%m.%d",
]

OPERATORS = ("=", ">", "<", ">=", "<=")

_QUOTES = "\"'"


def _parse_date_value(value: str) -> str:
    """Normalize a date-shaped string to ``YYYY-MM-DD``.

    Returns the original string when no format fits (e.g. "2025-13-45").
    """
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    return value


def _parse_number(value: str) -> Optional[Any]:
    if not _NUMBER_RE.match(value):
        return None
    if _INTEGER_RE.match(value):
        return int(value)
    number = float(value)
    if not math.isfinite(number):
        return None
    return number


def coerce_value(field: str, raw: Any) -> Any:
    """Type a raw condition value for *field* (see module docstring)."""
    if not isinstance(raw, str):
        return raw
    value = raw.strip().strip(_QUOTES).strip()

    if is_date_attribute(field) and _DATE_SHAPE_RE.match(value):
        return _parse_date_value(value)

    number = _parse_number(value)
    if number is not None:
        return number

    return value


def build_filter_expression(conditions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Build the placeholder expression and its two maps from *conditions*.

    Fragments are joined with ``AND``; with no conditions the expression is
    ``None`` and both maps are empty.
    """
    fragments: List[str] = []
    names: Dict[str, str] = {}
    values: Dict[str, Any] = {}

    for index, condition in enumerate(conditions):
        field = condition["field"]
        operator = condition["operator"]
        if operator not in OPERATORS:
            raise ValueError(f"Operator '{operator}' not allowed")

        name_key = f"#attr{index}"
        value_key = f":val{index}"
        fragments.append(f"{name_key} {operator} {value_key}")
        names[name_key] = field
        values[value_key] = coerce_value(field, condition["value"])

    return {
        "filter_expression": " AND ".join(fragments) if fragments else None,
        "expression_attribute_names": names,
        "expression_attribute_values": values,
    }


def compile_ir_to_scan(ir: Dict[str, Any]) -> Dict[str, Any]:
    """Compile a validated IR into an executable scan request."""

    if ir["operation"] == "superlative":
        return {
            "type": "superlative",
            "sort": (ir["sort"]["field"], ir["sort"]["direction"]),
            "limit": ir.get("limit"),
        }

    compiled = build_filter_expression(ir["conditions"])
    compiled["type"] = "scan"
    compiled["limit"] = ir.get("limit")
    return compiled
