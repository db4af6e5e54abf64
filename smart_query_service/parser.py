"""
Rule-based natural-language parser: query text + attribute names → IR.

Two strategies, tried in this order:

* **Superlative** — "highest amount", "min value": read the whole table and
  sort in memory on the first numeric-looking attribute.
* **Extraction cascade** — an ordered list of named rules, each returning a
  single ``{"field", "operator", "value"}`` condition or ``None``.  The first
  rule that produces a condition wins; later rules never run.

    natural_operator      "trades after 2025-02-25"   → TradeDate > 2025-02-25
    explicit_operator     "Amount >= 1000"            → Amount >= 1000
    bare_attribute_value  "records from China"        → SourceCountry = China

IR shape::

    {
        "operation": "superlative" | "find",
        "conditions": [{"field": str, "operator": str, "value": str}],
        "sort": {"field": str, "direction": "asc" | "desc"} | None,
        "limit": int,
        "rule": str | None,        # cascade rule that fired
    }

Values are left as raw strings here; typing happens in ``ir_compiler``.
"""

import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from attribute_resolver import resolve_attribute
from config import DEFAULT_SCAN_LIMIT, SUPERLATIVE_DEFAULT_LIMIT
from logger import logger
from schema_utils import find_numeric_attribute


# --- Superlative keywords → sort direction ---
_SUPERLATIVE_DESC = {"highest", "maximum", "max"}
_SUPERLATIVE_ASC = {"lowest", "minimum", "min"}

# --- Natural comparison phrases → operator ---
_NATURAL_OPERATORS = {
    "after": ">",
    "greater than": ">",
    "before": "<",
    "less than": "<",
}

_NATURAL_OP_RE = re.compile(
    r"\b(after|before|less\s+than|greater\s+than)\s+(\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)
_EXPLICIT_OP_RE = re.compile(r"(\w+)\s*(>=|<=|>|<|=)\s*(.+)")
_TOKEN_RE = re.compile(r"\w+")

# Connector words dropped from the front of a bare value ("Currency is USD")
_VALUE_LEADERS_RE = re.compile(r"^(?:is|equals)\s+", re.IGNORECASE)

_QUOTES = "\"'"


# ---------------------- PREPROCESSING ----------------------

def _preprocess_query(raw: str) -> str:
    """Collapse whitespace and drop trailing sentence punctuation."""
    text = re.sub(r"\s+", " ", raw or "").strip()
    return text.rstrip("?!.;:,").strip()


def _clean_value(raw: str) -> str:
    return raw.strip().strip(_QUOTES).strip()


def _words(text: str) -> List[str]:
    return [w.lower() for w in _TOKEN_RE.findall(text)]


# ---------------------- SUPERLATIVE ----------------------

def detect_superlative(text: str) -> Optional[str]:
    """Return ``"desc"`` for highest/max, ``"asc"`` for lowest/min, else
    ``None``.  Matches whole words, so "admin" or "Minneapolis" never
    trigger a sort.  When both directions appear, descending wins."""
    words = set(_words(text))
    if words & _SUPERLATIVE_DESC:
        return "desc"
    if words & _SUPERLATIVE_ASC:
        return "asc"
    return None


# ---------------------- EXTRACTION RULES ----------------------

Condition = Dict[str, str]
ExtractionRule = Callable[[str, Sequence[str]], Optional[Condition]]


def _condition(field: str, operator: str, raw_value: str) -> Optional[Condition]:
    value = _clean_value(raw_value)
    if not value:
        return None
    return {"field": field, "operator": operator, "value": value}


def extract_natural_operator(text: str, attribute_names: Sequence[str]) -> Optional[Condition]:
    """Attribute implied by the whole text, operator from a phrase such as
    "after", "before", "less than" or "greater than"."""
    field = resolve_attribute(text, attribute_names)
    if field is None:
        return None
    m = _NATURAL_OP_RE.search(text)
    if not m:
        return None
    phrase = re.sub(r"\s+", " ", m.group(1).lower())
    return _condition(field, _NATURAL_OPERATORS[phrase], m.group(2))


def extract_explicit_operator(text: str, attribute_names: Sequence[str]) -> Optional[Condition]:
    """``<token> <op> <value>`` with a literal comparison operator."""
    m = _EXPLICIT_OP_RE.search(text)
    if not m:
        return None
    field = resolve_attribute(m.group(1), attribute_names)
    if field is None:
        return None
    return _condition(field, m.group(2), m.group(3))


def extract_bare_attribute_value(text: str, attribute_names: Sequence[str]) -> Optional[Condition]:
    """``<token> <value>`` with implied equality.  Tokens are tried left to
    right; the first one that resolves to an attribute takes the rest of
    the text as its value."""
    for m in _TOKEN_RE.finditer(text):
        rest = text[m.end():].strip()
        if not rest:
            break
        field = resolve_attribute(m.group(0), attribute_names)
        if field is None:
            continue
        return _condition(field, "=", _VALUE_LEADERS_RE.sub("", rest))
    return None


EXTRACTION_RULES: List[Tuple[str, ExtractionRule]] = [
    ("natural_operator", extract_natural_operator),
    ("explicit_operator", extract_explicit_operator),
    ("bare_attribute_value", extract_bare_attribute_value),
]


def run_cascade(
    text: str,
    attribute_names: Sequence[str],
    rules: Sequence[Tuple[str, ExtractionRule]] = EXTRACTION_RULES,
) -> Tuple[Optional[str], Optional[Condition]]:
    """Evaluate *rules* in order and stop at the first condition.

    Returns ``(rule_name, condition)`` or ``(None, None)``.
    """
    for name, rule in rules:
        condition = rule(text, attribute_names)
        if condition is not None:
            logger.info("run_cascade — rule '%s' matched: %s", name, condition)
            return name, condition
    logger.info("run_cascade — no rule matched '%s'", text)
    return None, None


# ---------------------- ENTRY POINT ----------------------

def parse_to_ir(
    query_text: str,
    attribute_names: Sequence[str],
    limit: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """Parse *query_text* into an IR dict, or ``None`` when nothing in the
    text could be tied to an attribute."""
    cleaned = _preprocess_query(query_text)

    direction = detect_superlative(cleaned)
    if direction is not None:
        sort_field = find_numeric_attribute(list(attribute_names))
        if sort_field is not None:
            return {
                "operation": "superlative",
                "conditions": [],
                "sort": {"field": sort_field, "direction": direction},
                "limit": limit if limit is not None else SUPERLATIVE_DEFAULT_LIMIT,
                "rule": None,
            }
        logger.info(
            "parse_to_ir — superlative '%s' requested but no numeric attribute in %s; "
            "falling back to filter extraction",
            direction, list(attribute_names),
        )

    rule, condition = run_cascade(cleaned, attribute_names)
    if condition is None:
        return None

    return {
        "operation": "find",
        "conditions": [condition],
        "sort": None,
        "limit": limit if limit is not None else DEFAULT_SCAN_LIMIT,
        "rule": rule,
    }
