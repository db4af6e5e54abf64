import app as service
from app import VERSION, app, get_store
from conftest import TRADES, TRADES_DESCRIPTION, FakeTableStore
from fastapi.testclient import TestClient


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": VERSION}


def test_tools_lists_smart_query_last(client):
    tools = client.get("/tools").json()["tools"]
    names = [t["name"] for t in tools]
    assert names[-1] == "smart_query"
    assert {"list_tables", "describe_table", "get_item", "query_table", "scan_table"} <= set(names)


# ---------------------- SMART QUERY ----------------------


def test_smart_query_success(client):
    response = client.post("/smart-query", json={"tableName": "Trades", "queryText": "Amount > 1000"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert sorted(i["TradeId"] for i in body["items"]) == ["T2", "T3"]
    assert body["count"] == 2


def test_smart_query_superlative(client):
    body = client.post(
        "/smart-query", json={"tableName": "Trades", "queryText": "highest amount"},
    ).json()
    assert [i["TradeId"] for i in body["items"]] == ["T2"]


def test_smart_query_missing_input_is_400(client, trade_store):
    response = client.post("/smart-query", json={"tableName": "Trades"})
    assert response.status_code == 400
    assert response.json()["errorType"] == "InvalidArgument"
    assert trade_store.calls == []


def test_smart_query_unknown_table_is_404(client):
    response = client.post("/smart-query", json={"tableName": "Nope", "queryText": "Amount > 1"})
    assert response.status_code == 404
    assert response.json()["errorType"] == "SchemaError"


def test_smart_query_unresolvable_is_400(client):
    response = client.post("/smart-query", json={"tableName": "Trades", "queryText": "xyz123 blah"})
    assert response.status_code == 400
    assert response.json()["errorType"] == "InvalidFilter"


def test_smart_query_store_failure_is_500(monkeypatch):
    store = FakeTableStore(
        {"Trades": TRADES_DESCRIPTION}, {"Trades": TRADES}, scan_error=RuntimeError("down"),
    )
    monkeypatch.setattr(service, "connect_to_store", lambda: store)
    app.dependency_overrides[get_store] = lambda: store
    try:
        with TestClient(app) as test_client:
            response = test_client.post(
                "/smart-query", json={"tableName": "Trades", "queryText": "Amount > 1"},
            )
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 500
    assert response.json()["errorType"] == "InternalError"


# ---------------------- TABLE TOOLS ----------------------


def test_list_tables(client):
    body = client.post("/list-tables", json={}).json()
    assert body["success"] is True
    assert body["tables"] == ["Trades"]
    assert body["tableCount"] == 1


def test_list_tables_rejects_out_of_range_limit(client):
    assert client.post("/list-tables", json={"limit": 0}).status_code == 422


def test_describe_table(client):
    body = client.post("/describe-table", json={"tableName": "Trades"}).json()
    assert body["summary"]["partitionKey"] == "TradeId"
    assert body["summary"]["sortKey"] is None
    assert body["summary"]["gsiCount"] == 1
    assert body["summary"]["itemCount"] == 4


def test_describe_unknown_table_is_error(client):
    response = client.post("/describe-table", json={"tableName": "Nope"})
    assert response.status_code == 500
    assert response.json()["success"] is False


def test_get_schema(client):
    body = client.post("/get-schema", json={"tableName": "Trades"}).json()
    assert body["attributeCount"] == 4
    assert body["attributes"][1] == {"name": "Amount", "type": "N"}


def test_get_item(client):
    body = client.post("/get-item", json={"tableName": "Trades", "key": {"TradeId": "T1"}}).json()
    assert body["found"] is True
    assert body["item"]["Amount"] == 500


def test_get_item_empty_key(client):
    response = client.post("/get-item", json={"tableName": "Trades", "key": {}})
    assert response.status_code == 400


def test_scan_table(client, trade_store):
    body = client.post("/scan-table", json={
        "tableName": "Trades",
        "filterExpression": "#c = :c",
        "expressionAttributeNames": {"#c": "SourceCountry"},
        "expressionAttributeValues": {":c": "China"},
    }).json()
    assert [i["TradeId"] for i in body["items"]] == ["T1", "T3"]
    assert trade_store.scans()[0][5] is None


def test_query_table_runs_as_scan(client):
    body = client.post("/query-table", json={
        "tableName": "Trades",
        "keyConditionExpression": "#id = :id",
        "expressionAttributeNames": {"#id": "TradeId"},
        "expressionAttributeValues": {":id": "T2"},
    }).json()
    assert body["message"].startswith("Query converted to scan: ")
    assert [i["TradeId"] for i in body["items"]] == ["T2"]


# ---------------------- DIAGNOSE ----------------------


def test_diagnose_trace(client):
    steps = client.post(
        "/diagnose", json={"tableName": "Trades", "queryText": "Amount > 1000"},
    ).json()["steps"]

    assert steps["1_schema"]["attributes"] == ["TradeId", "Amount", "SourceCountry", "TradeDate"]
    assert steps["2_superlative"] == {"direction": None, "sort_attribute": None}
    rules = steps["3_cascade"]["rules"]
    assert [r["status"] for r in rules] == ["no match", "matched", "skipped"]
    assert steps["4_ir"]["status"] == "ok"
    assert steps["5_compile"]["filter_expression"] == "#attr0 > :val0"
    assert steps["6_execute_preview"]["returned"] == 2


def test_diagnose_superlative_skips_preview(client):
    steps = client.post(
        "/diagnose", json={"tableName": "Trades", "queryText": "highest amount"},
    ).json()["steps"]
    assert steps["2_superlative"] == {"direction": "desc", "sort_attribute": "Amount"}
    assert steps["5_compile"]["sort"] == ["Amount", "desc"]
    assert steps["6_execute_preview"]["status"] == "skipped"


def test_diagnose_missing_input(client):
    steps = client.post("/diagnose", json={"tableName": "Trades"}).json()["steps"]
    assert steps["0_input"]["status"] == "error"


def test_diagnose_unknown_table(client):
    steps = client.post("/diagnose", json={"tableName": "Nope", "queryText": "x"}).json()["steps"]
    assert steps["1_schema"]["status"] == "error"


# ---------------------- INPUT SHAPES ----------------------


def test_smart_query_wrongly_typed_input_is_400(client, trade_store):
    for body in (
        {"tableName": {}, "queryText": ""},
        {"tableName": 42, "queryText": "Amount > 1"},
        {"tableName": "Trades", "queryText": ["Amount", ">", "1"]},
        {"tableName": "Trades", "queryText": "Amount > 1", "limit": "ten"},
    ):
        response = client.post("/smart-query", json=body)
        assert response.status_code == 400
        result = response.json()
        assert result["success"] is False
        assert result["errorType"] == "InvalidArgument"
        assert result["items"] == []
        assert result["count"] == 0
    assert trade_store.calls == []


def test_diagnose_wrongly_typed_input(client, trade_store):
    response = client.post("/diagnose", json={"tableName": {}, "queryText": "x"})
    assert response.status_code == 200
    assert response.json()["steps"]["0_input"]["status"] == "error"
    assert trade_store.calls == []


# ---------------------- STORE LIFECYCLE ----------------------


def test_store_is_built_once_at_startup(monkeypatch):
    built = []

    def fake_connect():
        store = FakeTableStore({"Trades": TRADES_DESCRIPTION}, {"Trades": TRADES})
        built.append(store)
        return store

    monkeypatch.setattr(service, "connect_to_store", fake_connect)

    with TestClient(app) as test_client:
        assert len(built) == 1
        test_client.post("/smart-query", json={"tableName": "Trades", "queryText": "Amount > 1"})
        test_client.post("/get-schema", json={"tableName": "Trades"})

    assert len(built) == 1
    assert len(built[0].scans()) == 1
