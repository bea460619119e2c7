import logging
import os
from pathlib import Path
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

BACKEND_DIR = Path(__file__).resolve().parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from routers import editor, formula, health, records, schema
from schemas.game_schemas import COLLECTIONS
from services.editing_service import EditSession
from storage.fs_store import FSStore

LOG_LEVEL = os.getenv('GAMEDATA_LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

DATA_DIR = Path(os.getenv('GAMEDATA_DATA_DIR', str(BACKEND_DIR.parents[0] / 'data')))
HISTORY_LIMIT = int(os.getenv('GAMEDATA_HISTORY_LIMIT', '50'))

store = FSStore(DATA_DIR)
store.ensure_layout(COLLECTIONS)

# Open edit sessions by id; one client owns each session.
sessions: dict[str, EditSession] = {}

frontend_port = os.getenv('GAMEDATA_FRONTEND_PORT', '5173')
allowed_origins = [
    f'http://127.0.0.1:{frontend_port}',
    f'http://localhost:{frontend_port}',
    'http://127.0.0.1:5173',
    'http://localhost:5173',
]

app = FastAPI(title='Game Data Editor API')
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(health.router)
app.include_router(schema.router)
app.include_router(records.router)
app.include_router(editor.router)
app.include_router(formula.router)
