import uuid

from fastapi import APIRouter, Depends, HTTPException

from schemas.game_schemas import COLLECTIONS, REGISTRY
from services.editing_service import EditSession
from services.errors import IdentityConflictError, RecordNotFoundError, SessionStateError
from storage.fs_store import FSStore
from storage.record_store import collection_store, reference_lists


def get_store() -> FSStore:
    from main import store

    return store


def get_sessions() -> dict[str, EditSession]:
    from main import sessions

    return sessions


def get_history_limit() -> int:
    from main import HISTORY_LIMIT

    return HISTORY_LIMIT


router = APIRouter(prefix='/api/editor/sessions')


def _session(sid: str, sessions: dict[str, EditSession]) -> EditSession:
    session = sessions.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail='session not found')
    return session


def _state(sid: str, session: EditSession) -> dict:
    return {"session_id": sid, **session.snapshot()}


def _run(sid: str, session: EditSession, fn, *args) -> dict:
    try:
        changed = fn(*args)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {**_state(sid, session), "changed": changed}


@router.post('')
def open_session(
    body: dict,
    s: FSStore = Depends(get_store),
    sessions: dict[str, EditSession] = Depends(get_sessions),
    history_limit: int = Depends(get_history_limit),
):
    collection = body.get('collection')
    if collection not in COLLECTIONS:
        raise HTTPException(status_code=404, detail='Unknown collection')
    config = COLLECTIONS[collection]
    records = collection_store(s, collection)
    session = EditSession(
        config['schema'], records, registry=REGISTRY, identity_field=config['identity_field'],
        title=config["title"].rstrip("s"), collection=collection, history_limit=history_limit,
    )
    identity = body.get('identity')
    if identity is None:
        session.create()
    else:
        record = records.get_by_id(str(identity))
        if record is None:
            raise HTTPException(status_code=404, detail='record not found')
        session.select(record, edit=body.get('edit', True))
    sid = uuid.uuid4().hex[:12]
    sessions[sid] = session
    return _state(sid, session)


@router.get('/{sid}')
def get_session(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    return _state(sid, _session(sid, sessions))


@router.get('/{sid}/rows')
def get_rows(sid: str, s: FSStore = Depends(get_store), sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    try:
        rows = session.rows(reference_lists(s))
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return [r.to_dict() for r in rows]


@router.post('/{sid}/edit')
def start_editing(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.edit)


@router.post('/{sid}/expand')
def toggle_expand(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.toggle_expand, body.get('path', ''))


@router.post('/{sid}/value')
def set_value(sid: str, body: dict, s: FSStore = Depends(get_store), sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    attributes = collection_store(s, 'attributes').list_identities()
    return _run(sid, session, session.set_value, body.get('path', ''), body.get('value'), attributes)


@router.post('/{sid}/unset')
def unset_value(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.unset_value, body.get('path', ''))


@router.post('/{sid}/items/append')
def append_item(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.append_item, body.get('path', ''), body.get('variant'))


@router.post('/{sid}/items/remove')
def remove_item(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.remove_item, body.get('path', ''))


@router.post('/{sid}/items/move')
def move_item(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.move_item, body.get('path', ''), int(body.get('old_index', 0)), int(body.get('new_index', 0)))


@router.post('/{sid}/items/clear')
def clear_items(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.clear_array, body.get('path', ''))


@router.post('/{sid}/variant')
def switch_variant(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.switch_variant, body.get('path', ''), body.get('type'))


@router.post('/{sid}/undo')
def undo(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.undo)


@router.post('/{sid}/redo')
def redo(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.redo)


@router.post('/{sid}/view')
def switch_view(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.switch_view, body.get("view", "structured"))


@router.post('/{sid}/text')
def edit_text(sid: str, body: dict, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    return _run(sid, session, session.edit_text, body.get('text', ''))


@router.post('/{sid}/commit')
def commit(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    try:
        result = session.commit()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except IdentityConflictError as e:
        sessions.pop(sid, None)
        raise HTTPException(status_code=409, detail=str(e))
    except RecordNotFoundError as e:
        sessions.pop(sid, None)
        raise HTTPException(status_code=404, detail=str(e))
    sessions.pop(sid, None)
    return result


@router.post('/{sid}/discard')
def discard(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    session.discard()
    sessions.pop(sid, None)
    return {"ok": True}


@router.post('/{sid}/delete')
def delete(sid: str, sessions: dict[str, EditSession] = Depends(get_sessions)):
    session = _session(sid, sessions)
    if session.is_creating:
        raise HTTPException(status_code=409, detail='record has not been created yet')
    try:
        identity = session.delete()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    sessions.pop(sid, None)
    return {"deleted": True, "identity": identity}
