"""
Schema utilities: turn a table description into an immutable attribute
snapshot and answer the type-hint questions the interpreter asks.

A table store only declares the attributes it indexes (key and index
attributes), each with one of three scalar types:

    S  — string
    N  — number
    B  — binary

The snapshot is rebuilt on every request.  Nothing here is cached: a table
can gain or lose index attributes at any time and a stale schema would
silently steer attribute resolution to the wrong column.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from logger import logger


# ---------------------- TYPE NAMES ----------------------

TYPE_STRING = "S"
TYPE_NUMBER = "N"
TYPE_BINARY = "B"

ATTRIBUTE_TYPES = (TYPE_STRING, TYPE_NUMBER, TYPE_BINARY)

# Substrings that mark an attribute as the sort key for superlative queries
NUMERIC_NAME_HINTS = ("amount", "value")

# Substrings that mark an attribute as holding calendar dates
DATE_NAME_HINTS = ("date", "time")


class Attribute(NamedTuple):
    name: str
    type: str


class Schema(NamedTuple):
    table_name: str
    attributes: Tuple[Attribute, ...]

    @property
    def attribute_names(self) -> List[str]:
        return [attr.name for attr in self.attributes]


# ---------------------- SNAPSHOT ----------------------

def schema_from_description(
    table_name: str,
    description: Optional[Dict[str, Any]],
) -> Optional[Schema]:
    """Build a ``Schema`` from a ``DescribeTable`` ``Table`` dict.

    Returns ``None`` when the description is missing or declares no
    attribute definitions.  Definitions without a name are skipped and
    unknown type codes are kept as-is so a newer store type does not
    hide the attribute from resolution.
    """
    if not description:
        return None

    definitions = description.get("AttributeDefinitions") or []
    attributes: List[Attribute] = []
    for definition in definitions:
        name = definition.get("AttributeName")
        if not name:
            continue
        attr_type = definition.get("AttributeType") or TYPE_STRING
        if attr_type not in ATTRIBUTE_TYPES:
            logger.warning(
                "Unknown attribute type '%s' for %s.%s", attr_type, table_name, name,
            )
        attributes.append(Attribute(name, attr_type))

    if not attributes:
        return None

    logger.info(
        "Schema for %s — %d attributes: %s",
        table_name, len(attributes), [a.name for a in attributes],
    )
    return Schema(table_name, tuple(attributes))


# ---------------------- TYPE HINTS ----------------------

def is_date_attribute(name: str) -> bool:
    lowered = name.lower()
    return any(hint in lowered for hint in DATE_NAME_HINTS)


def find_numeric_attribute(attribute_names: List[str]) -> Optional[str]:
    """First attribute (schema order) whose name suggests a numeric
    measure, used as the sort key for highest / lowest queries."""
    for name in attribute_names:
        lowered = name.lower()
        if any(hint in lowered for hint in NUMERIC_NAME_HINTS):
            return name
    return None


def describe_attributes(schema: Schema) -> List[Dict[str, str]]:
    """JSON-friendly attribute list for API responses."""
    return [{"name": a.name, "type": a.type} for a in schema.attributes]
