from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

import yaml
from filelock import FileLock

DATA_SUBDIRS = ["collections", "journal", "exports"]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, allow_unicode=True, sort_keys=False)


def _load_yaml(text: str) -> Any:
    if not text.strip():
        return {}
    return yaml.safe_load(text) or {}


@dataclass
class FSStore:
    data_dir: Path

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _safe_path(self, *parts: str) -> Path:
        base = self.data_dir.resolve()
        target = base.joinpath(*parts).resolve()
        if target != base and base not in target.parents:
            raise ValueError("Path traversal blocked")
        return target

    def ensure_layout(self, collections: Iterable[str] = ()) -> None:
        for s in DATA_SUBDIRS:
            (self.data_dir / s).mkdir(exist_ok=True)
        for name in collections:
            path = self._safe_path("collections", f"{name}.yaml")
            if not path.exists():
                self.write_yaml(f"collections/{name}.yaml", {"collection": name, "records": []})

    def lock(self, rel: str) -> FileLock:
        path = self._safe_path(rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(str(path) + ".lock")

    def read_yaml(self, rel: str) -> dict[str, Any]:
        path = self._safe_path(rel)
        if not path.exists():
            return {}
        return _load_yaml(path.read_text(encoding="utf-8"))

    def write_yaml(self, rel: str, data: dict[str, Any]) -> None:
        path = self._safe_path(rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_dump_yaml(data), encoding="utf-8")

    def read_jsonl(self, rel: str) -> list[dict[str, Any]]:
        path = self._safe_path(rel)
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text(encoding='utf-8').splitlines() if line.strip()]

    def append_jsonl(self, rel: str, item: dict[str, Any]) -> None:
        path = self._safe_path(rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(path) + ".lock"):
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps({**item, "ts": item.get("ts", now_iso())}, ensure_ascii=False) + "\n")
