import operator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import app as service
from app import app, get_store
from schema_utils import schema_from_description


TRADES_DESCRIPTION = {
    "TableName": "Trades",
    "TableStatus": "ACTIVE",
    "ItemCount": 4,
    "TableSizeBytes": 512,
    "KeySchema": [
        {"AttributeName": "TradeId", "KeyType": "HASH"},
    ],
    "AttributeDefinitions": [
        {"AttributeName": "TradeId", "AttributeType": "S"},
        {"AttributeName": "Amount", "AttributeType": "N"},
        {"AttributeName": "SourceCountry", "AttributeType": "S"},
        {"AttributeName": "TradeDate", "AttributeType": "S"},
    ],
    "GlobalSecondaryIndexes": [{"IndexName": "by-country"}],
}

TRADES = [
    {"TradeId": "T1", "Amount": Decimal("500"), "SourceCountry": "China", "TradeDate": "2025-01-10"},
    {"TradeId": "T2", "Amount": Decimal("2500"), "SourceCountry": "India", "TradeDate": "2025-03-01"},
    {"TradeId": "T3", "Amount": Decimal("1200.5"), "SourceCountry": "China", "TradeDate": "2025-02-26"},
    {"TradeId": "T4", "SourceCountry": "Brazil", "TradeDate": "2025-02-20"},
]

_OPS = {
    "=": operator.eq,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def _matches(item, expression, names, values):
    """Evaluate ``#a op :v AND ...`` the way the store would."""
    for fragment in expression.split(" AND "):
        name_key, op, value_key = fragment.split(" ")
        actual = item.get(names[name_key])
        expected = values[value_key]
        if actual is None:
            return False
        if isinstance(expected, (int, float)) and not isinstance(expected, bool):
            if not isinstance(actual, (int, float, Decimal)):
                return False
            actual, expected = Decimal(str(actual)), Decimal(str(expected))
        elif isinstance(actual, Decimal):
            return False
        if not _OPS[op](actual, expected):
            return False
    return True


class FakeTableStore:
    """In-memory stand-in for ``DynamoTableStore`` that records calls."""

    def __init__(self, descriptions=None, items=None, scan_error=None):
        self.descriptions = dict(descriptions or {})
        self.items = {name: list(rows) for name, rows in (items or {}).items()}
        self.scan_error = scan_error
        self.calls = []

    def list_tables(self, limit=None, exclusive_start_table_name=None):
        self.calls.append(("list_tables", limit, exclusive_start_table_name))
        names = sorted(self.descriptions)
        if exclusive_start_table_name:
            names = [n for n in names if n > exclusive_start_table_name]
        if limit:
            names = names[:limit]
        return {"tables": names, "last_evaluated_table": None}

    def describe_table(self, table_name):
        self.calls.append(("describe_table", table_name))
        if table_name not in self.descriptions:
            raise LookupError(f"Requested resource not found: Table: {table_name} not found")
        return self.descriptions[table_name]

    def describe_schema(self, table_name):
        self.calls.append(("describe_schema", table_name))
        return schema_from_description(table_name, self.descriptions.get(table_name))

    def get_item(self, table_name, key):
        self.calls.append(("get_item", table_name, key))
        for item in self.items.get(table_name, []):
            if all(item.get(k) == v for k, v in key.items()):
                return dict(item)
        return None

    def scan(
        self,
        table_name,
        filter_expression=None,
        expression_attribute_names=None,
        expression_attribute_values=None,
        index_name=None,
        limit=None,
        all_pages=False,
    ):
        self.calls.append((
            "scan", table_name, filter_expression,
            expression_attribute_names, expression_attribute_values, limit, all_pages,
        ))
        if self.scan_error is not None:
            raise self.scan_error
        rows = self.items.get(table_name, [])
        if limit is not None:
            rows = rows[:limit]
        if filter_expression:
            rows = [
                r for r in rows
                if _matches(r, filter_expression, expression_attribute_names or {},
                            expression_attribute_values or {})
            ]
        rows = [dict(r) for r in rows]
        return {"items": rows, "count": len(rows), "scanned_count": len(rows),
                "last_evaluated_key": None}

    def scans(self):
        return [c for c in self.calls if c[0] == "scan"]


@pytest.fixture
def trade_store():
    return FakeTableStore({"Trades": TRADES_DESCRIPTION}, {"Trades": TRADES})


@pytest.fixture
def client(trade_store, monkeypatch):
    monkeypatch.setattr(service, "connect_to_store", lambda: trade_store)
    app.dependency_overrides[get_store] = lambda: trade_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
