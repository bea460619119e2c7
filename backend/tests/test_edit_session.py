from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from schemas.game_schemas import ACTOR_SCHEMA, ATTRIBUTE_SCHEMA, COLLECTIONS, REGISTRY
from services.editing_service import CLOSED, EDITING, VIEWING, EditSession
from services.errors import IdentityConflictError, SessionStateError
from storage.fs_store import FSStore
from storage.record_store import collection_store
from sample_records import seed


def make_store(tmp_path: Path) -> FSStore:
    store = FSStore(tmp_path / "data")
    store.ensure_layout(COLLECTIONS)
    seed(store)
    return store


def actor_session(store: FSStore, **kw) -> EditSession:
    return EditSession(ACTOR_SCHEMA, collection_store(store, "actors"), registry=REGISTRY, title="Actor", **kw)


def test_select_seeds_independent_draft(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "actors")
    record = records.get_by_id("Fireball")
    session = actor_session(s)
    session.select(record)
    assert session.state == EDITING and session.history_index == 0 and len(session.history) == 1
    session.set_value("Triggers[0].Actions[0].Radius", 9)
    assert record["Triggers"][0]["Actions"][0]["Radius"] == 1.5
    assert records.get_by_id("Fireball")["Triggers"][0]["Actions"][0]["Radius"] == 1.5


def test_view_only_selection(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "x"}, edit=False)
    assert session.state == VIEWING
    with pytest.raises(SessionStateError):
        session.set_value("Name", "y")
    session.edit()
    assert session.state == EDITING


def test_undo_history_is_bounded(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "a", "Asset": "", "Lifetime": 0, "Triggers": []})
    for i in range(1, 61):
        session.set_value("Lifetime", i)
    assert len(session.history) == 50
    assert session.draft["Lifetime"] == 60
    for _ in range(50):
        session.undo()
    assert session.history_index == 0
    assert session.draft["Lifetime"] == 11
    assert session.undo() is False


def test_redo_and_truncation(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "a", "Lifetime": 1})
    session.set_value("Lifetime", 2)
    session.set_value("Lifetime", 3)
    session.undo()
    assert session.draft["Lifetime"] == 2 and session.can_redo
    session.redo()
    assert session.draft["Lifetime"] == 3
    session.undo()
    session.set_value("Lifetime", 7)
    assert not session.can_redo
    assert [h["Lifetime"] for h in session.history] == [1, 2, 7]
    assert session.set_value("Lifetime", 7) is False


def test_structural_edits(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "a", "Asset": "", "Lifetime": 1, "Triggers": []})
    session.append_item("Triggers")
    session.append_item("Triggers[0].Actions", "ConeQuery")
    session.append_item("Triggers[0].Actions[0].OnHit")
    session.append_item("Triggers[0].Actions[0].OnHit", "Effect")
    on_hit = session.draft["Triggers"][0]["Actions"][0]["OnHit"]
    assert [h["type"] for h in on_hit] == ["Damage", "Effect"]
    session.move_item("Triggers[0].Actions[0].OnHit", 1, 0)
    assert [h["type"] for h in session.draft["Triggers"][0]["Actions"][0]["OnHit"]] == ["Effect", "Damage"]
    session.switch_variant("Triggers[0].Actions[0]", "CircleQuery")
    action = session.draft["Triggers"][0]["Actions"][0]
    assert action["type"] == "CircleQuery" and "Angle" not in action and len(action["OnHit"]) == 2
    session.remove_item("Triggers[0].Actions[0].OnHit[0]")
    session.clear_array("Triggers[0].Actions")
    assert session.draft["Triggers"] == [{"Time": 0, "Actions": []}]
    with pytest.raises(IndexError):
        session.move_item("Triggers", 0, 3)


def test_removing_a_missing_item_changes_nothing(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "a", "Asset": "", "Lifetime": 1, "Triggers": []})
    assert session.remove_item("Nope[0]") is False
    assert session.remove_item("Triggers[3]") is False
    assert session.draft == {"Name": "a", "Asset": "", "Lifetime": 1, "Triggers": []}
    assert len(session.history) == 1 and session.can_undo is False


def test_text_view_keeps_last_good_draft(tmp_path: Path):
    session = actor_session(make_store(tmp_path))
    session.select({"Name": "a", "Lifetime": 1})
    session.switch_view("text")
    assert session.text == "Name: a\nLifetime: 1\n"
    assert session.edit_text("Name: a\nLifetime: 2\n") is True
    assert session.draft == {"Name": "a", "Lifetime": 2} and session.history_index == 1
    assert session.edit_text("Name: a\n  oops\n") is False
    assert session.warnings
    assert session.draft == {"Name": "a", "Lifetime": 2}
    session.switch_view("structured")
    assert session.active_view == "structured"


def test_formula_errors_do_not_block_other_fields(tmp_path: Path):
    s = make_store(tmp_path)
    session = EditSession(ATTRIBUTE_SCHEMA, collection_store(s, "attributes"), registry=REGISTRY, title="Attribute")
    session.create()
    known = collection_store(s, "attributes").list_identities()
    session.set_value("Max", "$Luck * 2", known)
    assert session.field_errors == {"Max": "Unknown variable(s): Luck"}
    session.set_value("Min", "0", known)
    assert session.draft["Min"] == "0"
    session.set_value("Max", "$Strength * 2", known)
    assert session.field_errors == {}


def test_create_synthesizes_unique_identity(tmp_path: Path):
    s = make_store(tmp_path)
    session = actor_session(s)
    draft = session.create()
    assert draft == {"Name": "New Actor 1"} and session.is_creating
    numeric = EditSession(ACTOR_SCHEMA, collection_store(s, "actors"), identity_field="id")
    assert numeric.create() == {"id": 1}


def test_commit_adds_new_and_updates_renamed(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "actors")
    session = actor_session(s)
    session.create()
    session.set_value("Lifetime", 4)
    result = session.commit()
    assert result["action"] == "add" and session.state == CLOSED
    assert records.get_by_id("New Actor 1")["Lifetime"] == 4

    session.select(records.get_by_id("Fireball"))
    session.set_value("Name", "Greater Fireball")
    assert session.commit()["action"] == "update"
    assert records.get_by_id("Fireball") is None
    assert records.get_by_id("Greater Fireball")["Lifetime"] == 2.0
    events = [e["event"] for e in records.history()]
    assert events[-2:] == ["RECORD_ADD", "RECORD_UPDATE"]


def test_commit_of_new_draft_with_existing_identity_updates(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "actors")
    session = actor_session(s)
    session.create()
    session.set_value("Name", "Fireball")
    session.set_value("Lifetime", 42)
    result = session.commit()
    assert result["action"] == "update" and session.state == CLOSED
    assert records.get_by_id("Fireball")["Lifetime"] == 42
    assert records.list_identities().count("Fireball") == 1


def test_rename_onto_another_record_is_rejected_by_store(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "actors")
    session = actor_session(s)
    session.select(records.get_by_id("Cone Attack"))
    session.set_value("Name", "Fireball")
    with pytest.raises(IdentityConflictError):
        session.commit()
    assert session.state == CLOSED
    assert records.get_by_id("Cone Attack") is not None


def test_discard_and_delete(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "actors")
    session = actor_session(s)
    session.select(records.get_by_id("Cone Attack"))
    session.set_value("Lifetime", 99)
    session.discard()
    assert session.state == CLOSED and session.draft is None
    assert records.get_by_id("Cone Attack")["Lifetime"] == 2.5
    session.select(records.get_by_id("Cone Attack"))
    assert session.delete() == "Cone Attack"
    assert session.state == CLOSED
    assert "Cone Attack" not in records.list_identities()


def test_unset_returns_optional_field_to_absent(tmp_path: Path):
    s = make_store(tmp_path)
    records = collection_store(s, "effects")
    session = EditSession(COLLECTIONS["effects"]["schema"], records, registry=REGISTRY, title="Effect")
    session.select(records.get_by_id("Burning"))
    session.unset_value("MaxStacks")
    assert "MaxStacks" not in session.draft
    rows = {r.path: r for r in session.rows()}
    assert rows["MaxStacks"].present is False
    with pytest.raises(ValueError):
        session.unset_value("Period")
