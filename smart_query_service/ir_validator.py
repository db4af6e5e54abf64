"""
IR validator: checks parsed IR against the table schema before it is
compiled.

Supports:
- Attribute allow-list (every condition / sort field must be a schema
  attribute, matched exactly)
- Operator allow-list
- Limit sanity (positive integer)
- "Did you mean?" suggestions for unknown attributes
"""

from difflib import get_close_matches
from typing import Any, Dict, List, Optional

from logger import logger

ALLOWED_OPERATORS = ["=", ">", "<", ">=", "<="]
ALLOWED_OPERATIONS = ["find", "superlative"]


# ---------------------- HELPERS ----------------------


def _suggest_field(field: str, attribute_names: List[str]) -> str:
    """Return a 'did you mean?' hint for an unknown attribute."""
    lowered = {name.lower(): name for name in attribute_names}
    matches = get_close_matches(field.lower(), list(lowered), n=3, cutoff=0.5)
    if matches:
        return f" Did you mean: {', '.join(lowered[m] for m in matches)}?"
    return ""


def _check_field(field: Optional[str], attribute_names: List[str], context: str) -> None:
    if field not in attribute_names:
        hint = _suggest_field(field or "", attribute_names)
        raise ValueError(f"{context} attribute '{field}' not found in table.{hint}")


# ---------------------- MAIN VALIDATOR ----------------------


def validate_limit(limit: Any) -> Optional[int]:
    """Accept ``None`` or a positive integer; raise ``ValueError`` otherwise."""
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")
    return limit


def validate_ir(ir: Dict[str, Any], attribute_names: List[str]) -> Dict[str, Any]:
    """Validate an IR dict against the table's attribute names.

    Raises ``ValueError`` on an unknown operation, an attribute outside the
    schema, a disallowed operator or a bad limit.  Returns the IR unchanged.
    """
    if ir.get("operation") not in ALLOWED_OPERATIONS:
        raise ValueError(f"Operation '{ir.get('operation')}' not supported")

    for condition in ir.get("conditions", []):
        _check_field(condition["field"], attribute_names, "Filter")
        if condition["operator"] not in ALLOWED_OPERATORS:
            raise ValueError(f"Operator '{condition['operator']}' not allowed")
        if condition.get("value") in (None, ""):
            raise ValueError(f"Empty value for attribute '{condition['field']}'")

    sort = ir.get("sort")
    if sort:
        _check_field(sort.get("field"), attribute_names, "Sort")
        if sort.get("direction") not in ("asc", "desc"):
            raise ValueError(f"Sort direction '{sort.get('direction')}' not allowed")

    if ir["operation"] == "find" and not ir.get("conditions"):
        raise ValueError("No filter condition extracted")

    validate_limit(ir.get("limit"))

    logger.debug("validate_ir — IR valid: %s", ir)
    return ir
