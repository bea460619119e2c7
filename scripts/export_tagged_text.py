#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT_DIR / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schemas.game_schemas import COLLECTIONS
from services.tagged_text import encode
from storage.fs_store import FSStore
from storage.record_store import collection_store

logger = logging.getLogger("export_tagged_text")

_UNSAFE = re.compile(r"[^A-Za-z0-9._ -]+")


def file_name(identity: str) -> str:
    return (_UNSAFE.sub("_", identity).strip() or "record") + ".txt"


def export(fs: FSStore, collection: str, out_dir: Path) -> list[Path]:
    records = collection_store(fs, collection)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for record in records.list_records():
        identity = records.identity_of(record) or "record"
        path = out_dir / file_name(identity)
        path.write_text(encode(record), encoding="utf-8")
        written.append(path)
        logger.debug("wrote %s", path)
    return written


def main() -> int:
    parser = argparse.ArgumentParser(description="Export records as tagged text files")
    parser.add_argument("collections", nargs="*", help=f"Collections to export (default: all of {', '.join(COLLECTIONS)})")
    parser.add_argument("--data-dir", default=str(ROOT_DIR / "data"))
    parser.add_argument("--out", default=None, help="Output directory (default: <data-dir>/exports)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(message)s")

    unknown = [c for c in args.collections if c not in COLLECTIONS]
    if unknown:
        parser.error(f"unknown collection(s): {', '.join(unknown)}")
    fs = FSStore(Path(args.data_dir))
    out_root = Path(args.out) if args.out else fs.data_dir / "exports"
    for collection in args.collections or list(COLLECTIONS):
        paths = export(fs, collection, out_root / collection)
        logger.info("%s: exported %d record(s) to %s", collection, len(paths), out_root / collection)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
