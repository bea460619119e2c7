from fastapi import APIRouter, Depends

from services.formula_service import (
    BUILTIN_FUNCTIONS,
    Suggestion,
    apply_suggestion,
    format_formula,
    suggest,
    validate_formula,
)
from storage.fs_store import FSStore
from storage.record_store import collection_store


def get_store() -> FSStore:
    from main import store

    return store


router = APIRouter(prefix='/api/formula')


def _attributes(body: dict, s: FSStore) -> list[str]:
    known = body.get('known')
    if known is not None:
        return [str(k) for k in known]
    return collection_store(s, 'attributes').list_identities()


@router.get('/functions')
def list_functions():
    return [{"name": f.name, "description": f.description, "syntax": f.syntax, "examples": list(f.examples)} for f in BUILTIN_FUNCTIONS]


@router.post('/validate')
def validate(body: dict, s: FSStore = Depends(get_store)):
    return validate_formula(body.get('formula', ''), _attributes(body, s)).to_dict()


@router.post('/suggest')
def suggestions(body: dict, s: FSStore = Depends(get_store)):
    formula = body.get('formula', '')
    cursor = int(body.get('cursor', len(formula)))
    return [x.to_dict() for x in suggest(formula, cursor, _attributes(body, s))]


@router.post('/apply')
def apply(body: dict):
    formula = body.get('formula', '')
    cursor = int(body.get('cursor', len(formula)))
    picked = body.get('suggestion') or {}
    suggestion = Suggestion(str(picked.get('value', '')), picked.get('type', 'variable'), picked.get('description', ''))
    text, new_cursor = apply_suggestion(formula, cursor, suggestion)
    return {"formula": text, "cursor": new_cursor}


@router.post('/format')
def format_(body: dict):
    return {"formula": format_formula(body.get('formula', ''))}
