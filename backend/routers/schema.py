from fastapi import APIRouter, HTTPException

from schemas.game_schemas import COLLECTIONS, REGISTRY
from services.schema_resolver import to_json_schema, visible_columns

router = APIRouter(prefix="/api/schema")


def _config(name: str) -> dict:
    if name not in COLLECTIONS:
        raise HTTPException(status_code=404, detail="Unknown collection")
    return COLLECTIONS[name]


@router.get('/collections')
def list_collections():
    return [
        {"name": name, "title": c["title"], "create_button_text": c["create_button_text"], "identity_field": c["identity_field"]}
        for name, c in COLLECTIONS.items()
    ]


@router.get('/collections/{name}')
def collection_schema(name: str):
    return to_json_schema(_config(name)["schema"], REGISTRY)


@router.get('/collections/{name}/columns')
def collection_columns(name: str):
    return visible_columns(_config(name)["schema"], REGISTRY)
