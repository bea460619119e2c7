from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

import main
from schemas.game_schemas import COLLECTIONS
from services.errors import IdentityConflictError, RecordNotFoundError
from storage.fs_store import FSStore
from storage.record_store import RecordStore, collection_store
from sample_records import seed


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    store = FSStore(tmp_path / "data")
    store.ensure_layout(COLLECTIONS)
    seed(store)
    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "sessions", {})
    return TestClient(main.app)


def test_record_store_contract(tmp_path: Path):
    s = FSStore(tmp_path / "data")
    records = RecordStore(s, "effects")
    records.add({"Name": "Burning", "Period": 0.5})
    with pytest.raises(IdentityConflictError):
        records.add({"Name": "Burning"})
    records.add({"Name": "Chill", "Period": 1})
    with pytest.raises(IdentityConflictError):
        records.update("Chill", {"Name": "Burning"})
    with pytest.raises(RecordNotFoundError):
        records.update("Missing", {"Name": "Missing"})
    assert records.list_identities() == ["Burning", "Chill"]
    fetched = records.get_by_id("Burning")
    fetched["Period"] = 9
    assert records.get_by_id("Burning")["Period"] == 0.5
    assert records.delete("Chill") is True and records.delete("Chill") is False
    assert [e["event"] for e in records.history()] == ["RECORD_ADD", "RECORD_ADD", "RECORD_DELETE"]


def test_id_fallback_identity(tmp_path: Path):
    records = RecordStore(FSStore(tmp_path / "data"), "misc")
    records.add({"id": 7, "label": "x"})
    assert records.list_identities() == ["7"]
    assert records.get_by_id("7")["label"] == "x"


def test_safe_path_blocks_traversal(tmp_path: Path):
    s = FSStore(tmp_path / "data")
    with pytest.raises(ValueError):
        s.read_yaml("../outside.yaml")


def test_health_and_schema(client):
    assert client.get("/api/health").json() == {"ok": True}
    names = [c["name"] for c in client.get("/api/schema/collections").json()]
    assert names == ["actors", "effects", "attributes"]
    columns = client.get("/api/schema/collections/actors/columns").json()
    assert [c["key"] for c in columns] == ["!Actor", "Name", "Asset", "Lifetime", "actions"]
    assert client.get("/api/schema/collections/nope").status_code == 404
    effect = client.get("/api/schema/collections/effects").json()
    assert "Duration" not in effect["required"]


def test_records_crud(client):
    r = client.get("/api/collections/actors/records", params={"sort": "Lifetime", "direction": "desc"})
    assert [a["Name"] for a in r.json()] == ["Heal Aura", "Sword Strike", "Cone Attack", "Fireball"]
    assert client.get("/api/collections/actors/records/Fireball").json()["Lifetime"] == 2.0
    assert client.get("/api/collections/actors/records/Nope").status_code == 404

    new = {"Name": "Blink", "Asset": "a", "Lifetime": 0.5, "Triggers": []}
    assert client.post("/api/collections/actors/records", json=new).status_code == 200
    assert client.post("/api/collections/actors/records", json=new).status_code == 409
    assert client.put("/api/collections/actors/records/Blink", json={**new, "Lifetime": 1}).json()["Lifetime"] == 1
    assert client.put("/api/collections/actors/records/Ghost", json={**new, "Name": "Ghost"}).status_code == 404
    assert client.delete("/api/collections/actors/records/Blink").json() == {"deleted": True}
    assert client.delete("/api/collections/actors/records/Blink").status_code == 404


def test_text_export_and_import(client):
    text = client.get("/api/collections/effects/records/Burning/text").text
    assert "- !Damage" in text
    renamed = text.replace("Name: Burning", "Name: Scorch")
    r = client.post("/api/collections/effects/records/import", json={"text": renamed})
    assert r.status_code == 200
    assert client.get("/api/collections/effects/records/Scorch").json()["OnTick"] == [{"type": "Damage", "Type": "Fire", "Potency": 25}]
    bad = client.post("/api/collections/effects/records/import", json={"text": "OnTick:\n  - !Heal: 5\n"})
    assert bad.status_code == 422 and bad.json()["detail"]["warnings"]


def test_table_view(client):
    table = client.get("/api/collections/effects/table", params={"sort": "Name"}).json()
    assert [c["key"] for c in table["columns"]][-1] == "actions"
    assert [row["Name"]["text"] for row in table["rows"]][0] == "Burning"


def test_editor_session_flow(client):
    opened = client.post("/api/editor/sessions", json={"collection": "actors", "identity": "Fireball"}).json()
    sid = opened["session_id"]
    assert opened["state"] == "editing" and opened["history_length"] == 1

    rows = client.get(f"/api/editor/sessions/{sid}/rows").json()
    assert [r["path"] for r in rows] == ["!Actor", "Name", "Asset", "Lifetime", "Triggers"]
    client.post(f"/api/editor/sessions/{sid}/expand", json={"path": "Triggers"})
    rows = client.get(f"/api/editor/sessions/{sid}/rows").json()
    assert rows[-1]["path"] == "Triggers[0]" and rows[-1]["depth"] == 2

    r = client.post(f"/api/editor/sessions/{sid}/items/append", json={"path": "Triggers[0].Actions", "variant": "ConeQuery"}).json()
    assert r["changed"] and r["draft"]["Triggers"][0]["Actions"][-1]["type"] == "ConeQuery"
    r = client.post(f"/api/editor/sessions/{sid}/variant", json={"path": "Triggers[0].Actions[1]", "type": "CircleQuery"}).json()
    assert "Angle" not in r["draft"]["Triggers"][0]["Actions"][1]
    assert client.post(f"/api/editor/sessions/{sid}/variant", json={"path": "Triggers[0].Actions[1]", "type": "Bogus"}).status_code == 422
    assert client.post(f"/api/editor/sessions/{sid}/undo").json()["history_index"] == 1
    assert client.post(f"/api/editor/sessions/{sid}/redo").json()["history_index"] == 2

    r = client.post(f"/api/editor/sessions/{sid}/view", json={"view": "text"}).json()
    assert r["text"].startswith('"!Actor": true\nName: Fireball\n')
    r = client.post(f"/api/editor/sessions/{sid}/text", json={"text": "Name: Fireball\n  broken\n"}).json()
    assert r["changed"] is False and r["warnings"] and r["draft"]["Lifetime"] == 2.0

    client.post(f"/api/editor/sessions/{sid}/value", json={"path": "Lifetime", "value": 6})
    committed = client.post(f"/api/editor/sessions/{sid}/commit").json()
    assert committed["action"] == "update"
    assert client.get(f"/api/editor/sessions/{sid}").status_code == 404
    assert client.get("/api/collections/actors/records/Fireball").json()["Lifetime"] == 6


def test_editor_create_and_conflict(client):
    sid = client.post("/api/editor/sessions", json={"collection": "attributes"}).json()["session_id"]
    r = client.post(f"/api/editor/sessions/{sid}/value", json={"path": "Max", "value": "$Nope + 1"}).json()
    assert r["field_errors"] == {"Max": "Unknown variable(s): Nope"}
    client.post(f"/api/editor/sessions/{sid}/value", json={"path": "Name", "value": "Strength"})
    client.post(f"/api/editor/sessions/{sid}/value", json={"path": "Max", "value": "250"})
    committed = client.post(f"/api/editor/sessions/{sid}/commit").json()
    assert committed["action"] == "update"
    assert client.get("/api/collections/attributes/records/Strength").json()["Max"] == "250"

    sid = client.post("/api/editor/sessions", json={"collection": "attributes", "identity": "Dexterity"}).json()["session_id"]
    client.post(f"/api/editor/sessions/{sid}/value", json={"path": "Name", "value": "Strength"})
    assert client.post(f"/api/editor/sessions/{sid}/commit").status_code == 409
    assert client.post("/api/editor/sessions", json={"collection": "nope"}).status_code == 404


def test_formula_endpoints(client):
    assert client.post("/api/formula/validate", json={"formula": "CLAMP($Strength + $Dexterity, 50, 200)"}).json()["ok"]
    bad = client.post("/api/formula/validate", json={"formula": "FOO(1)", "known": []}).json()
    assert bad == {"ok": False, "reason": "Unknown function(s): FOO", "position": 0}
    out = client.post("/api/formula/suggest", json={"formula": "$Wis", "cursor": 4}).json()
    assert [s["value"] for s in out] == ["Wisdom"]
    applied = client.post("/api/formula/apply", json={"formula": "PO", "cursor": 2, "suggestion": {"value": "POW", "type": "function"}}).json()
    assert applied == {"formula": "POW()", "cursor": 4}
    assert client.post("/api/formula/format", json={"formula": "1+2"}).json() == {"formula": "1 + 2"}
    assert len(client.get("/api/formula/functions").json()) == 10
