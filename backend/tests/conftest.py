import os
from pathlib import Path
import sys
import tempfile

sys.path.append(str(Path(__file__).resolve().parents[1]))

# main.py builds its store at import time; keep that out of the working tree.
os.environ.setdefault("GAMEDATA_DATA_DIR", tempfile.mkdtemp(prefix="gamedata-tests-"))
os.environ.setdefault("GAMEDATA_LOG_LEVEL", "WARNING")
