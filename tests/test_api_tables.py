"""API tests for table editing sessions."""

from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient

from shared.schemas import ColumnDocument, ColumnKind, DecisionTableDocument, RuleDocument
from table_editor.errors import TableEditError
from table_editor.routes.tables import ERROR_STATUS


def make_document(table_id: str = "discount") -> dict:
    document = DecisionTableDocument(
        id=table_id,
        name="Discount",
        columns=[
            ColumnDocument(id="age", kind=ColumnKind.INPUT, label="Age", type_ref="number"),
            ColumnDocument(id="discount", kind=ColumnKind.OUTPUT, label="Discount", type_ref="string"),
        ],
        rules=[RuleDocument(id="r1", values=["< 18", '"junior"'])],
    )
    return document.model_dump(mode="json")


def open_table(client: TestClient, table_id: str = "discount") -> dict:
    r = client.post("/api/tables/", json=make_document(table_id))
    assert r.status_code == 201
    return r.json()


def test_root(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["service"] == "decision-table-editor"


def test_list_tables_empty(client: TestClient):
    r = client.get("/api/tables/")
    assert r.status_code == 200
    assert r.json() == []


def test_open_and_get_table(client: TestClient):
    data = open_table(client)
    assert data["id"] == "discount"
    assert data["document"]["rules"][0]["values"] == ["< 18", '"junior"']
    assert data["history"]["can_undo"] is False

    r = client.get("/api/tables/discount")
    assert r.status_code == 200
    assert r.json()["document"]["name"] == "Discount"

    listing = client.get("/api/tables/").json()
    assert listing == [{"id": "discount", "name": "Discount", "hit_policy": "UNIQUE", "columns": 2, "rules": 1}]


def test_open_twice_conflicts(client: TestClient):
    open_table(client)
    r = client.post("/api/tables/", json=make_document())
    assert r.status_code == 409


def test_open_document_with_bad_rule_conflicts(client: TestClient):
    document = make_document("bad")
    document["rules"][0]["values"] = ["only one"]
    r = client.post("/api/tables/", json=document)
    assert r.status_code == 409


def test_unknown_table_404(client: TestClient):
    assert client.get("/api/tables/missing").status_code == 404
    assert client.post("/api/tables/missing/undo").status_code == 404


def test_command_undo_redo(client: TestClient):
    open_table(client)
    r = client.post(
        "/api/tables/discount/commands",
        json={"op": "insert_rule", "rule_id": "r2", "values": ["[18..64]", '"none"']},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "success"
    assert body["event"]["affected_rule_ids"] == ["r2"]
    assert len(body["table"]["document"]["rules"]) == 2

    r = client.post("/api/tables/discount/undo")
    assert r.json()["status"] == "success"
    assert len(r.json()["table"]["document"]["rules"]) == 1

    r = client.post("/api/tables/discount/redo")
    assert len(r.json()["table"]["document"]["rules"]) == 2

    r = client.post("/api/tables/discount/redo")
    assert r.status_code == 200
    assert r.json()["status"] == "noop"


def test_invalid_value_is_reported_not_rejected(client: TestClient):
    open_table(client)
    r = client.post(
        "/api/tables/discount/commands",
        json={"op": "set_cell", "rule_id": "r1", "column_id": "discount", "value": "18"},
    )
    assert r.status_code == 200
    invalid = r.json()["table"]["invalid_cells"]
    assert [(c["rule_id"], c["column_id"]) for c in invalid] == [("r1", "discount")]


def test_command_error_mapping(client: TestClient):
    open_table(client)
    url = "/api/tables/discount/commands"
    assert client.post(url, json={"op": "remove_column", "column_id": "nope"}).status_code == 404
    assert client.post(url, json={"op": "insert_rule", "values": ["1"]}).status_code == 409
    assert client.post(url, json={"op": "move_rule", "source_index": 5, "target_index": 0}).status_code == 400
    assert (
        client.post(url, json={"op": "set_properties", "hit_policy": "FIRST", "aggregation": "SUM"}).status_code
        == 400
    )
    assert client.post(url, json={"op": "unknown"}).status_code == 422


def test_selection_endpoints(client: TestClient):
    open_table(client)
    client.post(
        "/api/tables/discount/commands",
        json={"op": "insert_rule", "rule_id": "r2", "values": ["", ""]},
    )
    assert client.get("/api/tables/discount/selection").json() == {"active_cell": None, "range": None}

    r = client.put("/api/tables/discount/selection", json={"rule_id": "r1", "column_id": "age"})
    assert r.json()["active_cell"] == {"rule_id": "r1", "column_id": "age"}

    r = client.post("/api/tables/discount/selection/move", json={"advance": True})
    assert r.json()["active_cell"] == {"rule_id": "r1", "column_id": "discount"}

    r = client.post("/api/tables/discount/selection/move", json={"row_delta": 1, "extend": True})
    assert r.json()["range"] == [
        {"rule_id": "r1", "column_id": "discount"},
        {"rule_id": "r2", "column_id": "discount"},
    ]

    r = client.put("/api/tables/discount/selection", json={"rule_id": "zzz", "column_id": "age"})
    assert r.status_code == 404


def test_close_table_returns_document(client: TestClient):
    open_table(client)
    r = client.delete("/api/tables/discount")
    assert r.status_code == 200
    assert r.json()["id"] == "discount"
    assert client.get("/api/tables/discount").status_code == 404


def test_health_and_metrics(client: TestClient):
    open_table(client)
    client.post("/api/tables/discount/undo")
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["checks"]["sessions"]["open_tables"] == 1

    metrics = client.get("/api/metrics").json()
    assert metrics["tables_open"] == 1
    assert metrics["rules_total"] == 1
    assert metrics["results_noop"] == 1


def test_concurrent_commands_are_serialized(client: TestClient):
    open_table(client)
    url = "/api/tables/discount/commands"

    def insert_rules(count: int) -> list[int]:
        return [client.post(url, json={"op": "insert_rule"}).status_code for _ in range(count)]

    def insert_columns(count: int) -> list[int]:
        return [
            client.post(url, json={"op": "insert_column", "kind": "input", "type_ref": "number"}).status_code
            for _ in range(count)
        ]

    with ThreadPoolExecutor(max_workers=5) as pool:
        futures = [pool.submit(insert_rules, 25) for _ in range(4)]
        futures.append(pool.submit(insert_columns, 5))
        codes = [code for future in futures for code in future.result()]

    assert set(codes) == {200}
    document = client.get("/api/tables/discount").json()["document"]
    assert len(document["rules"]) == 101
    assert len(document["columns"]) == 7
    assert all(len(rule["values"]) == 7 for rule in document["rules"])


def test_every_edit_error_has_a_status():
    kinds = {cls.kind for cls in TableEditError.__subclasses__()}
    assert kinds == set(ERROR_STATUS)
