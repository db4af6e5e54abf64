"""
Scan executor: runs compiled smart queries against a table store.

Two execution paths:

- **filtered scan** — one scan with the compiled placeholder expression
  and the caller's limit.
- **superlative** — a full, unfiltered scan of every page followed by an
  in-memory numeric sort.  The store cannot sort a scan, so the true
  global max / min needs the whole table.

Store errors propagate; callers decide how to report them.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

from config import DEFAULT_SCAN_LIMIT, SUPERLATIVE_DEFAULT_LIMIT
from logger import logger


# ---------------------- HELPERS ----------------------

def _sort_number(value: Any) -> float:
    """Numeric sort key: missing, non-numeric and non-finite values are 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def sort_items(
    items: List[Dict[str, Any]],
    field: str,
    direction: str,
) -> List[Dict[str, Any]]:
    """Stable numeric sort of *items* on *field* (``"asc"`` / ``"desc"``)."""
    return sorted(
        items,
        key=lambda item: _sort_number(item.get(field)),
        reverse=(direction == "desc"),
    )


# ---------------------- EXECUTORS ----------------------

def execute_filtered_scan(store, table_name: str, compiled: Dict[str, Any]) -> Dict[str, Any]:
    """Run a compiled ``scan`` request.  Returns ``{"items", "count"}``."""
    limit = compiled.get("limit") or DEFAULT_SCAN_LIMIT
    result = store.scan(
        table_name,
        filter_expression=compiled["filter_expression"],
        expression_attribute_names=compiled["expression_attribute_names"],
        expression_attribute_values=compiled["expression_attribute_values"],
        limit=limit,
    )
    items = list(result.get("items") or [])
    return {"items": items, "count": len(items)}


def execute_superlative(
    store,
    table_name: str,
    sort: Tuple[str, str],
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Full scan, sort on ``sort = (field, direction)``, keep the first
    *limit* items (default 1)."""
    field, direction = sort
    limit = limit or SUPERLATIVE_DEFAULT_LIMIT

    result = store.scan(table_name, all_pages=True)
    items = list(result.get("items") or [])

    logger.info(
        "execute_superlative — %d items scanned from %s, sorting on %s (%s)",
        len(items), table_name, field, direction,
    )

    top = sort_items(items, field, direction)[:limit]
    return {"items": top, "count": len(top), "scanned": len(items)}
