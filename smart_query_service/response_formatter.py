"""
Response formatter: builds the result envelopes returned to callers.

Every operation answers with the same shape::

    {"success": bool, "items": [...], "count": int, "message": str}

plus ``"errorType"`` on failure.  Items are sanitised so they serialise to
JSON (``Decimal`` numbers, binary values and sets come back from the store).
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

# errorType tags
INVALID_ARGUMENT = "InvalidArgument"
SCHEMA_ERROR = "SchemaError"
INVALID_FILTER = "InvalidFilter"
INTERNAL_ERROR = "InternalError"

_OP_WORDS = {
    "=": "is",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
}


def paraphrase_ir(ir: Dict[str, Any]) -> str:
    """Generate a human-readable description of the parsed IR."""
    parts: List[str] = []

    if ir["operation"] == "superlative":
        sort = ir["sort"]
        extreme = "highest" if sort["direction"] == "desc" else "lowest"
        parts.append(f"Finding the {extreme} {sort['field']}")
    else:
        parts.append("Showing records")

    for condition in ir.get("conditions", []):
        op = _OP_WORDS.get(condition["operator"], condition["operator"])
        parts.append(f"where {condition['field']} {op} {condition['value']}")

    if ir.get("limit"):
        parts.append(f"limited to {ir['limit']} results")

    return " ".join(parts) + "."


def sanitise_value(obj: Any) -> Any:
    """Recursively convert non-JSON-safe types to safe representations."""
    if isinstance(obj, dict):
        return {k: sanitise_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitise_value(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted((sanitise_value(item) for item in obj), key=str)
    if isinstance(obj, Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, (bytes, bytearray)):
        try:
            return bytes(obj).decode("utf-8")
        except UnicodeDecodeError:
            return f"[binary {len(obj)} bytes]"
    if isinstance(obj, (int, float, str, bool, type(None))):
        return obj
    # boto3 Binary wrapper and anything else exotic
    return str(obj)


def clean_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [sanitise_value(item) for item in items]


def success_result(items: List[Dict[str, Any]], message: str, **extra: Any) -> Dict[str, Any]:
    cleaned = clean_items(items)
    result: Dict[str, Any] = {
        "success": True,
        "items": cleaned,
        "count": len(cleaned),
        "message": message,
    }
    result.update({k: sanitise_value(v) for k, v in extra.items()})
    return result


def error_result(error_type: str, message: str, **extra: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "success": False,
        "items": [],
        "count": 0,
        "message": message,
        "errorType": error_type,
    }
    result.update(extra)
    return result


def error_type_of(exc: BaseException, default: str = INTERNAL_ERROR) -> str:
    """Store exception → errorType: botocore error code when present."""
    code: Optional[str] = None
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        code = (response.get("Error") or {}).get("Code")
    return code or default
