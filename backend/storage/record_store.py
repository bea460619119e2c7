from __future__ import annotations

import copy
import logging
from typing import Any

from schemas.game_schemas import COLLECTIONS, collection_config
from services.errors import IdentityConflictError, RecordNotFoundError
from storage.fs_store import FSStore

logger = logging.getLogger(__name__)

ID_FIELD = "id"


def record_identity(record: dict[str, Any] | None, field: str = "Name") -> str | None:
    """Name-like identity first, numeric `id` as fallback."""
    if not isinstance(record, dict):
        return None
    value = record.get(field)
    if value not in (None, ""):
        return str(value)
    value = record.get(ID_FIELD)
    if value not in (None, ""):
        return str(value)
    return None


class RecordStore:
    """One collection of records kept in `collections/<name>.yaml`.

    Every read-modify-write runs under a file lock; mutations are journaled to
    `journal/<name>.jsonl`.
    """

    def __init__(self, fs: FSStore, collection: str, identity_field: str = "Name") -> None:
        self.fs = fs
        self.collection = collection
        self.identity_field = identity_field

    @property
    def _rel(self) -> str:
        return f"collections/{self.collection}.yaml"

    @property
    def _journal(self) -> str:
        return f"journal/{self.collection}.jsonl"

    def _load(self) -> list[dict[str, Any]]:
        doc = self.fs.read_yaml(self._rel)
        records = doc.get("records") or []
        return [r for r in records if isinstance(r, dict)]

    def _save(self, records: list[dict[str, Any]]) -> None:
        self.fs.write_yaml(self._rel, {"collection": self.collection, "records": records})

    def _index(self, records: list[dict[str, Any]], identity: str) -> int | None:
        for i, r in enumerate(records):
            if record_identity(r, self.identity_field) == str(identity):
                return i
        return None

    def identity_of(self, record: dict[str, Any]) -> str | None:
        return record_identity(record, self.identity_field)

    def list_records(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._load())

    def list_identities(self) -> list[str]:
        return [i for i in (self.identity_of(r) for r in self._load()) if i is not None]

    def get_by_id(self, identity: str) -> dict[str, Any] | None:
        records = self._load()
        idx = self._index(records, identity)
        return copy.deepcopy(records[idx]) if idx is not None else None

    def add(self, record: dict[str, Any]) -> dict[str, Any]:
        identity = self.identity_of(record)
        if identity is None:
            raise ValueError(f"{self.collection}: record has no {self.identity_field!r} or {ID_FIELD!r}")
        with self.fs.lock(self._rel):
            records = self._load()
            if self._index(records, identity) is not None:
                raise IdentityConflictError(self.collection, identity)
            records.append(copy.deepcopy(record))
            self._save(records)
        self.fs.append_jsonl(self._journal, {"event": "RECORD_ADD", "data": {"identity": identity}})
        logger.info("%s: added %s", self.collection, identity)
        return record

    def update(self, identity: str, record: dict[str, Any]) -> dict[str, Any]:
        new_identity = self.identity_of(record)
        if new_identity is None:
            raise ValueError(f"{self.collection}: record has no {self.identity_field!r} or {ID_FIELD!r}")
        with self.fs.lock(self._rel):
            records = self._load()
            idx = self._index(records, identity)
            if idx is None:
                raise RecordNotFoundError(self.collection, str(identity))
            other = self._index(records, new_identity)
            if other is not None and other != idx:
                raise IdentityConflictError(self.collection, new_identity)
            records[idx] = copy.deepcopy(record)
            self._save(records)
        data = {"identity": new_identity}
        if new_identity != str(identity):
            data["renamed_from"] = str(identity)
        self.fs.append_jsonl(self._journal, {"event": "RECORD_UPDATE", "data": data})
        logger.info("%s: updated %s", self.collection, new_identity)
        return record

    def delete(self, identity: str) -> bool:
        with self.fs.lock(self._rel):
            records = self._load()
            idx = self._index(records, identity)
            if idx is None:
                return False
            del records[idx]
            self._save(records)
        self.fs.append_jsonl(self._journal, {"event": "RECORD_DELETE", "data": {"identity": str(identity)}})
        logger.info("%s: deleted %s", self.collection, identity)
        return True

    def history(self) -> list[dict[str, Any]]:
        return self.fs.read_jsonl(self._journal)


def collection_store(fs: FSStore, collection: str) -> RecordStore:
    config = collection_config(collection)
    return RecordStore(fs, collection, config["identity_field"])


def reference_lists(fs: FSStore) -> dict[str, list[str]]:
    """Known identities of every collection, for reference pickers and formulas."""
    return {name: collection_store(fs, name).list_identities() for name in COLLECTIONS}
