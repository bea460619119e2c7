from __future__ import annotations

import copy
import logging
from typing import Any, Protocol

from schemas.nodes import Node, SchemaRegistry
from services import record_paths, row_builder, tagged_text
from services.errors import SessionStateError
from services.formula_service import validate_formula
from services.row_builder import Row
from services.schema_resolver import field_meta, resolve

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
VIEWS = ("structured", "text")

CLOSED = "closed"
VIEWING = "viewing"
EDITING = "editing"


class RecordCollaborator(Protocol):
    def add(self, record: dict[str, Any]) -> Any: ...
    def update(self, identity: str, record: dict[str, Any]) -> Any: ...
    def delete(self, identity: str) -> Any: ...
    def get_by_id(self, identity: str) -> dict[str, Any] | None: ...
    def list_identities(self) -> list[str]: ...


class EditSession:
    """Draft, undo history and view state for one record of one collection.

    `history[history_index]` is always the current draft. The store is only
    touched by `commit()` and `delete()`.
    """

    def __init__(
        self,
        schema: Node,
        store: RecordCollaborator,
        *,
        registry: SchemaRegistry | None = None,
        identity_field: str = "Name",
        title: str = "Item",
        collection: str = "",
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.schema = schema
        self.store = store
        self.registry = registry
        self.identity_field = identity_field
        self.title = title
        self.collection = collection
        self.history_limit = max(1, int(history_limit))
        self._reset()

    def _reset(self) -> None:
        self.state = CLOSED
        self.selected: dict[str, Any] | None = None
        self.draft: dict[str, Any] | None = None
        self.history: list[dict[str, Any]] = []
        self.history_index = -1
        self.is_creating = False
        self.active_view = "structured"
        self.text = ""
        self.expanded: set[str] = set()
        self.warnings: list[str] = []
        self.field_errors: dict[str, str] = {}

    # -- identity ----------------------------------------------------------

    def identity_of(self, record: dict[str, Any] | None) -> str | None:
        if not isinstance(record, dict):
            return None
        for key in (self.identity_field, "id"):
            value = record.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    def _new_identity(self) -> dict[str, Any]:
        existing = list(self.store.list_identities())
        if self.identity_field == "id":
            numbers = [int(i) for i in existing if str(i).lstrip("-").isdigit()]
            return {"id": max([0, *numbers]) + 1}
        taken = set(existing)
        n = 1
        while f"New {self.title} {n}" in taken:
            n += 1
        return {self.identity_field: f"New {self.title} {n}"}

    # -- lifecycle ---------------------------------------------------------

    def select(self, record: dict[str, Any], edit: bool = True) -> None:
        self._reset()
        self.selected = copy.deepcopy(record)
        self.state = VIEWING
        if edit:
            self._start(copy.deepcopy(record), creating=False)
        logger.debug("session selected %s (state=%s)", self.identity_of(record), self.state)

    def edit(self) -> bool:
        if self.state != VIEWING or self.selected is None:
            raise SessionStateError(f"cannot start editing from state {self.state}")
        self._start(copy.deepcopy(self.selected), creating=False)
        return True

    def create(self) -> dict[str, Any]:
        draft = self._new_identity()
        self._reset()
        self.selected = copy.deepcopy(draft)
        self._start(draft, creating=True)
        logger.debug("session creating %s", self.identity_of(draft))
        return self.draft

    def _start(self, draft: dict[str, Any], creating: bool) -> None:
        self.state = EDITING
        self.draft = draft
        self.history = [copy.deepcopy(draft)]
        self.history_index = 0
        self.is_creating = creating
        self.active_view = "structured"
        self.text = tagged_text.encode(draft)
        self.warnings = []
        self.field_errors = {}

    def _require_editing(self) -> dict[str, Any]:
        if self.state != EDITING or self.draft is None:
            raise SessionStateError(f"no draft to edit (state={self.state})")
        return self.draft

    # -- history -----------------------------------------------------------

    def apply(self, new_draft: dict[str, Any]) -> bool:
        """Record `new_draft` as the next history entry; False when nothing changed."""
        current = self._require_editing()
        if new_draft == current:
            return False
        del self.history[self.history_index + 1:]
        self.history.append(copy.deepcopy(new_draft))
        if len(self.history) > self.history_limit:
            del self.history[: len(self.history) - self.history_limit]
        self.history_index = len(self.history) - 1
        self.draft = new_draft
        if self.active_view == "text":
            self.text = tagged_text.encode(new_draft)
        return True

    @property
    def can_undo(self) -> bool:
        return self.state == EDITING and self.history_index > 0

    @property
    def can_redo(self) -> bool:
        return self.state == EDITING and self.history_index < len(self.history) - 1

    def _restore(self, index: int) -> None:
        self.history_index = index
        self.draft = copy.deepcopy(self.history[index])
        self.text = tagged_text.encode(self.draft)
        self.warnings = []

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self._restore(self.history_index - 1)
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self._restore(self.history_index + 1)
        return True

    # -- views -------------------------------------------------------------

    def switch_view(self, view: str) -> bool:
        if view not in VIEWS:
            raise ValueError(f"unknown view {view!r}; expected one of {VIEWS}")
        draft = self._require_editing()
        changed = view != self.active_view
        self.active_view = view
        if view == "text":
            self.text = tagged_text.encode(draft)
            self.warnings = []
        return changed

    def edit_text(self, text: str) -> bool:
        """Decode text into the draft; on any warning the draft is left as it was."""
        self._require_editing()
        self.text = text
        result = tagged_text.decode_report(text)
        warnings = list(result.warnings)
        if not warnings and not isinstance(result.value, dict):
            warnings.append("top-level value must be a set of key: value lines")
        self.warnings = warnings
        if warnings:
            logger.info("text edit kept last good draft: %s", warnings[0])
            return False
        self.apply(result.value)
        # apply() re-encodes in text view; keep what the user typed.
        self.text = text
        return True

    def toggle_expand(self, path: str) -> bool:
        if path in self.expanded:
            self.expanded.discard(path)
            return False
        self.expanded.add(path)
        return True

    def rows(self, references: dict[str, list[str]] | None = None) -> list[Row]:
        draft = self._require_editing()
        return row_builder.build_rows(
            self.schema, draft, expanded=frozenset(self.expanded), registry=self.registry, references=references,
        )

    # -- edits -------------------------------------------------------------

    def set_value(self, path: str, value: Any, known_attributes: list[str] | None = None) -> bool:
        draft = self._require_editing()
        node = row_builder.schema_at(self.schema, draft, path, self.registry)
        if node is not None and known_attributes is not None:
            _, name = record_paths.split_last(path)
            if field_meta(str(name), node).ui_hint == "formula":
                check = validate_formula(value if isinstance(value, str) else "", known_attributes)
                if check.ok:
                    self.field_errors.pop(path, None)
                else:
                    self.field_errors[path] = check.reason
        return self.apply(record_paths.set_by_path(draft, path, value))

    def unset_value(self, path: str) -> bool:
        """Remove an optional field so it is absent again."""
        draft = self._require_editing()
        node = row_builder.schema_at(self.schema, draft, path, self.registry)
        if node is None or not resolve(node, self.registry).optional:
            raise ValueError(f"field is not optional: {path}")
        self.field_errors.pop(path, None)
        return self.apply(record_paths.delete_by_path(draft, path))

    def append_item(self, array_path: str, variant: Any = None) -> bool:
        draft = self._require_editing()
        return self.apply(row_builder.append_item(self.schema, draft, array_path, self.registry, variant))

    def remove_item(self, item_path: str) -> bool:
        draft = self._require_editing()
        return self.apply(record_paths.delete_by_path(draft, item_path))

    def move_item(self, array_path: str, old_index: int, new_index: int) -> bool:
        draft = self._require_editing()
        return self.apply(record_paths.move_item(draft, array_path, old_index, new_index))

    def clear_array(self, array_path: str) -> bool:
        draft = self._require_editing()
        return self.apply(record_paths.clear_array(draft, array_path))

    def switch_variant(self, item_path: str, tag: Any) -> bool:
        draft = self._require_editing()
        return self.apply(row_builder.switch_variant(self.schema, draft, item_path, tag, self.registry))

    # -- dispatch ----------------------------------------------------------

    def commit(self) -> dict[str, Any]:
        """Close the editor, then add or update the draft in the store.

        The draft updates the originally selected record when that still exists
        (so renames work), otherwise any record already holding its identity;
        only a draft whose identity is unknown to the store is added.
        """
        draft = copy.deepcopy(self._require_editing())
        original = None if self.is_creating else self.identity_of(self.selected)
        self._reset()
        identity = self.identity_of(draft)
        if original is not None and self.store.get_by_id(original) is not None:
            self.store.update(original, draft)
            action = "update"
        elif identity is not None and self.store.get_by_id(identity) is not None:
            self.store.update(identity, draft)
            action = "update"
        else:
            self.store.add(draft)
            action = "add"
        logger.info("committed %s (%s)", identity, action)
        return {"action": action, "identity": identity, "record": draft}

    def discard(self) -> None:
        self._reset()

    def delete(self, record: dict[str, Any] | None = None) -> str:
        target = record if record is not None else self.selected
        identity = self.identity_of(target)
        if identity is None:
            raise ValueError("record has no identity to delete")
        self._reset()
        self.store.delete(identity)
        logger.info("deleted %s", identity)
        return identity

    def snapshot(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "state": self.state,
            "selected": self.selected,
            "draft": self.draft,
            "is_creating": self.is_creating,
            "active_view": self.active_view,
            "text": self.text if self.active_view == "text" else None,
            "history_length": len(self.history),
            "history_index": self.history_index,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "expanded": sorted(self.expanded),
            "warnings": list(self.warnings),
            "field_errors": dict(self.field_errors),
        }
