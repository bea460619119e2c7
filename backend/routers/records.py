from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from schemas.game_schemas import COLLECTIONS, REGISTRY
from services import tagged_text
from services.errors import DecodeError, IdentityConflictError, RecordNotFoundError
from services.table_view import sort_records, table
from storage.fs_store import FSStore
from storage.record_store import RecordStore, collection_store


def get_store() -> FSStore:
    from main import store

    return store


router = APIRouter(prefix="/api/collections/{collection}")


def _records(collection: str, s: FSStore) -> RecordStore:
    if collection not in COLLECTIONS:
        raise HTTPException(status_code=404, detail="Unknown collection")
    return collection_store(s, collection)


def _write(fn, *args):
    try:
        return fn(*args)
    except IdentityConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get('/records')
def list_records(collection: str, sort: str | None = None, direction: str = "asc", s: FSStore = Depends(get_store)):
    if direction not in ("asc", "desc"):
        raise HTTPException(status_code=422, detail="direction must be asc or desc")
    return sort_records(_records(collection, s).list_records(), sort, direction)


@router.get('/table')
def records_table(collection: str, sort: str | None = None, direction: str = "asc", s: FSStore = Depends(get_store)):
    if direction not in ("asc", "desc"):
        raise HTTPException(status_code=422, detail="direction must be asc or desc")
    records = _records(collection, s).list_records()
    return table(COLLECTIONS[collection]["schema"], records, registry=REGISTRY, sort=sort, direction=direction)


@router.get('/identities')
def list_identities(collection: str, s: FSStore = Depends(get_store)):
    return _records(collection, s).list_identities()


@router.post('/records')
def create_record(collection: str, record: dict, s: FSStore = Depends(get_store)):
    return _write(_records(collection, s).add, record)


@router.post('/records/import')
def import_record(collection: str, body: dict, s: FSStore = Depends(get_store)):
    try:
        record = tagged_text.decode(body.get("text", ""))
    except DecodeError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "warnings": e.warnings})
    if not isinstance(record, dict):
        raise HTTPException(status_code=422, detail="text must describe a single record")
    return _write(_records(collection, s).add, record)


@router.get('/records/{identity}')
def get_record(collection: str, identity: str, s: FSStore = Depends(get_store)):
    r = _records(collection, s).get_by_id(identity)
    if r is None:
        raise HTTPException(status_code=404, detail='Not found')
    return r


@router.get('/records/{identity}/text', response_class=PlainTextResponse)
def export_record(collection: str, identity: str, s: FSStore = Depends(get_store)):
    r = _records(collection, s).get_by_id(identity)
    if r is None:
        raise HTTPException(status_code=404, detail='Not found')
    return tagged_text.encode(r)


@router.put('/records/{identity}')
def update_record(collection: str, identity: str, record: dict, s: FSStore = Depends(get_store)):
    return _write(_records(collection, s).update, identity, record)


@router.delete('/records/{identity}')
def delete_record(collection: str, identity: str, s: FSStore = Depends(get_store)):
    if not _records(collection, s).delete(identity):
        raise HTTPException(status_code=404, detail='Not found')
    return {"deleted": True}


@router.get('/journal')
def journal(collection: str, s: FSStore = Depends(get_store)):
    return _records(collection, s).history()
