"""
Attribute resolver: map free text onto one of a table's attribute names.

Resolution strategy (first success wins):

1. **Direct match** — an attribute name appears verbatim (case-insensitive)
   inside the text.  Schema order breaks ties.
2. **Keyword classes** — an ordered table of ``(trigger, fragments)`` rules.
   When a trigger matches the text as a whole word, its fragments are tried
   in order and the first attribute whose name contains the fragment is
   returned.  Rule order, then fragment order, is the tie-break policy.
3. Otherwise ``None``.

The function is pure: no I/O, no state, same input → same answer.
"""

import re
from typing import List, Optional, Pattern, Sequence, Tuple

from logger import logger


KeywordRule = Tuple[str, Pattern[str], Tuple[str, ...]]

# (class name, trigger pattern, candidate name fragments)
KEYWORD_CLASSES: List[KeywordRule] = [
    ("origin", re.compile(r"\b(from|source)\b", re.IGNORECASE),
     ("source", "from")),
    ("destination", re.compile(r"\b(to|destination)\b", re.IGNORECASE),
     ("destination", "to")),
    ("monetary", re.compile(r"\b(amt|cost|price|value)\b", re.IGNORECASE),
     ("amount", "cost", "price", "value")),
    # "after" / "before" are how people compare dates in plain speech
    ("temporal", re.compile(r"\b(when|day|time|period|after|before)\b", re.IGNORECASE),
     ("date", "timestamp")),
    ("categorical", re.compile(r"\b(type|category)\b", re.IGNORECASE),
     ("type", "category")),
]


def _direct_match(lowered: str, attribute_names: Sequence[str]) -> Optional[str]:
    for name in attribute_names:
        if name and name.lower() in lowered:
            return name
    return None


def _first_containing(fragment: str, attribute_names: Sequence[str]) -> Optional[str]:
    fragment = fragment.lower()
    for name in attribute_names:
        if fragment in name.lower():
            return name
    return None


def resolve_attribute(
    text: str,
    attribute_names: Sequence[str],
    keyword_classes: Sequence[KeywordRule] = KEYWORD_CLASSES,
) -> Optional[str]:
    """Return the attribute *text* refers to, or ``None``."""
    if not text or not attribute_names:
        return None

    lowered = text.lower()

    direct = _direct_match(lowered, attribute_names)
    if direct is not None:
        logger.debug("resolve_attribute — Direct match: '%s' → '%s'", text, direct)
        return direct

    for class_name, trigger, fragments in keyword_classes:
        if not trigger.search(text):
            continue
        for fragment in fragments:
            match = _first_containing(fragment, attribute_names)
            if match is not None:
                logger.debug(
                    "resolve_attribute — %s keyword: '%s' → '%s' (fragment '%s')",
                    class_name, text, match, fragment,
                )
                return match

    logger.debug("resolve_attribute — No match for '%s'", text)
    return None
