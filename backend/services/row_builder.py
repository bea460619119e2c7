from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from schemas.nodes import Node, ObjectNode, SchemaRegistry, TaggedUnion
from services.formula_service import validate_formula
from services.record_paths import (
    get_by_path,
    index_path,
    join_path,
    parse_path,
    set_by_path,
    update_by_path,
)
from services.schema_resolver import (
    MAX_DEPTH,
    FieldMeta,
    Resolved,
    classify,
    object_shape,
    resolve,
    variant_shape,
    visible_fields,
)


@dataclass
class Row:
    path: str
    depth: int
    kind: str
    label: str
    schema: Node | None = None
    expanded: bool = False
    description: str = ""
    editor: str | None = None
    value: Any = None
    present: bool = True
    editable: bool = True
    options: list[Any] = field(default_factory=list)
    collection: str | None = None
    count: int | None = None
    index: int | None = None
    variant: Any = None
    variant_options: list[Any] = field(default_factory=list)
    variant_matched: bool = True
    actions: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "depth": self.depth,
            "kind": self.kind,
            "label": self.label,
            "expanded": self.expanded,
            "description": self.description,
            "editor": self.editor,
            "value": self.value,
            "present": self.present,
            "editable": self.editable,
            "options": list(self.options),
            "collection": self.collection,
            "count": self.count,
            "index": self.index,
            "variant": self.variant,
            "variant_options": list(self.variant_options),
            "variant_matched": self.variant_matched,
            "actions": list(self.actions),
            "error": self.error,
        }


def _terminal(path: str, depth: int, schema: Node | None) -> Row:
    return Row(path=path, depth=min(depth, MAX_DEPTH), kind="terminal", label="Max depth reached", schema=schema, editable=False)


def build_rows(
    schema: Node,
    data: Any,
    path: str = "",
    depth: int = 0,
    expanded: Iterable[str] = frozenset(),
    *,
    registry: SchemaRegistry | None = None,
    references: dict[str, list[str]] | None = None,
) -> list[Row]:
    """Flatten `data` into editor rows following `schema`.

    Pure: the same arguments always give the same rows. `references` maps a
    collection name to its known identities; `attributes` also feeds formula checks.
    """
    if depth >= MAX_DEPTH:
        return [_terminal(path, depth, schema)]
    expanded = expanded if isinstance(expanded, (set, frozenset)) else frozenset(expanded)
    references = references or {}
    shape = object_shape(resolve(schema, registry), data)
    if shape is None:
        return []
    values = data if isinstance(data, dict) else {}
    rows: list[Row] = []
    for name, field_node, fm in visible_fields(shape):
        rows.extend(_field_rows(
            field_node, fm, values.get(name), name in values, join_path(path, name), depth,
            expanded, registry, references,
        ))
    return rows


def _field_rows(
    node: Node,
    fm: FieldMeta,
    value: Any,
    present: bool,
    path: str,
    depth: int,
    expanded: set[str] | frozenset[str],
    registry: SchemaRegistry | None,
    references: dict[str, list[str]],
) -> list[Row]:
    r = resolve(node, registry)
    kind = classify(r, registry)
    is_open = path in expanded
    base = dict(path=path, depth=depth, label=fm.label, schema=node, expanded=is_open, description=fm.description, present=present)

    if kind == "object":
        shape = object_shape(r, value)
        row = Row(kind="object", count=len(visible_fields(shape)) if shape else 0, **base)
        if r.shape == "union":
            row.variant_options = r.node.tags()
            row.variant, row.variant_matched = _variant_of(r.node, value)
        rows = [row]
        if is_open:
            rows += build_rows(node, value if isinstance(value, dict) else {}, path, depth + 1, expanded, registry=registry, references=references)
        return rows

    if kind == "array":
        items = value if isinstance(value, list) else []
        element = r.node.element
        el = resolve(element, registry)
        row = Row(kind="array", count=len(items), actions=("add", "clear"), **base)
        if el.shape == "union":
            row.variant_options = el.node.tags()
        rows = [row]
        if is_open:
            item_depth = depth + 2
            if item_depth >= MAX_DEPTH:
                return rows + [_terminal(path, item_depth, element)]
            for i, item in enumerate(items):
                rows += _item_rows(element, el, item, index_path(path, i), i, item_depth, expanded, registry, references)
        return rows

    return [_leaf_row(r, fm, value, references, base)]


def _variant_of(union: TaggedUnion, item: Any) -> tuple[Any, bool]:
    tag = item.get(union.discriminator) if isinstance(item, dict) else None
    return tag, variant_shape(union, item)[1]


def _item_rows(
    element: Node,
    el: Resolved,
    item: Any,
    path: str,
    index: int,
    depth: int,
    expanded: set[str] | frozenset[str],
    registry: SchemaRegistry | None,
    references: dict[str, list[str]],
) -> list[Row]:
    is_open = path in expanded
    row = Row(
        path=path, depth=depth, kind="arrayItem", label=f"Item {index + 1}", schema=element,
        expanded=is_open, index=index, actions=("delete", "move"),
    )
    if el.shape == "union":
        row.variant_options = el.node.tags()
        row.variant, row.variant_matched = _variant_of(el.node, item)
    rows = [row]
    if is_open and object_shape(el, item) is not None:
        rows += build_rows(element, item if isinstance(item, dict) else {}, path, depth, expanded, registry=registry, references=references)
    return rows


def _leaf_row(r: Resolved, fm: FieldMeta, value: Any, references: dict[str, list[str]], base: dict[str, Any]) -> Row:
    row = Row(kind="leaf", value=value, **base)
    node = r.node
    if r.shape == "unknown":
        row.editor, row.editable, row.error = "unknown", False, r.error
    elif r.shape == "literal":
        row.editor, row.editable, row.value = "literal", False, node.value if value is None else value
    elif r.shape == "array":
        row.editor = "list"
        if row.value is None:
            row.value = []
    elif node.kind == "enum":
        row.editor, row.options = "enum", list(node.options)
    elif node.kind == "string" and fm.ui_hint == "formula":
        row.editor = "formula"
        if "attributes" in references:
            check = validate_formula(value if isinstance(value, str) else "", references["attributes"])
            row.error = check.reason
    elif node.kind == "string" and fm.ui_hint == "entityReference":
        row.editor, row.collection = "entityReference", fm.collection
        row.options = list(references.get(fm.collection or "", []))
    elif node.kind == "number":
        row.editor = "number"
    elif node.kind == "boolean":
        row.editor = "boolean"
    else:
        row.editor = "text"
    return row


def zero_value(node: Node, registry: SchemaRegistry | None = None, depth: int = 0) -> Any:
    r = resolve(node, registry)
    if r.shape == "primitive":
        kind = r.node.kind
        if kind == "number":
            return 0
        if kind == "boolean":
            return False
        if kind == "enum":
            return r.node.options[0] if r.node.options else ""
        return ""
    if r.shape == "literal":
        return r.node.value
    if r.shape == "array":
        return []
    if r.shape == "object":
        return synthesize_object(r.node, registry, depth=depth + 1)
    if r.shape == "union" and r.node.tags():
        return synthesize_variant(r.node, r.node.tags()[0], registry=registry, depth=depth + 1)
    return None


def synthesize_object(
    node: ObjectNode,
    registry: SchemaRegistry | None = None,
    existing: dict[str, Any] | None = None,
    depth: int = 0,
) -> dict[str, Any]:
    """Defaults for every required field; same-named values in `existing` are kept."""
    out: dict[str, Any] = {}
    if depth >= MAX_DEPTH:
        return out
    for name, field_node in node.fields.items():
        if existing is not None and name in existing:
            out[name] = existing[name]
            continue
        if resolve(field_node, registry).optional:
            continue
        out[name] = zero_value(field_node, registry, depth)
    return out


def synthesize_variant(
    union: TaggedUnion,
    tag: Any,
    existing: dict[str, Any] | None = None,
    registry: SchemaRegistry | None = None,
    depth: int = 0,
) -> dict[str, Any]:
    variant = union.variant_for(tag)
    if variant is None:
        raise ValueError(f"unknown variant {tag!r}; expected one of {union.tags()}")
    carried = {k: v for k, v in (existing or {}).items() if k != union.discriminator}
    body = synthesize_object(variant, registry, carried, depth)
    body.pop(union.discriminator, None)
    return {union.discriminator: tag, **body}


def new_item(element: Node, registry: SchemaRegistry | None = None, variant: Any = None) -> Any:
    el = resolve(element, registry)
    if el.shape == "union":
        tags = el.node.tags()
        if not tags:
            return {}
        return synthesize_variant(el.node, tags[0] if variant is None else variant, registry=registry)
    if el.shape == "object":
        return synthesize_object(el.node, registry)
    return zero_value(element, registry)


def schema_at(schema: Node, data: Any, path: str, registry: SchemaRegistry | None = None) -> Node | None:
    """Declared schema node for `path`, picking union variants from the data."""
    node: Node | None = schema
    cur = data
    for part in parse_path(path):
        if node is None:
            return None
        r = resolve(node, registry)
        if isinstance(part, int):
            if r.shape != "array":
                return None
            node = r.node.element
            cur = cur[part] if isinstance(cur, list) and part < len(cur) else None
        else:
            shape = object_shape(r, cur)
            node = shape.fields.get(part) if shape is not None else None
            cur = cur.get(part) if isinstance(cur, dict) else None
    return node


def append_item(schema: Node, data: Any, array_path: str, registry: SchemaRegistry | None = None, variant: Any = None) -> Any:
    node = schema_at(schema, data, array_path, registry)
    r = resolve(node, registry) if node is not None else None
    if r is None or r.shape != "array":
        raise ValueError(f"not an array field: {array_path}")
    item = new_item(r.node.element, registry, variant)
    return update_by_path(data, array_path, lambda items: [*(items if isinstance(items, list) else []), item])


def switch_variant(schema: Node, data: Any, item_path: str, tag: Any, registry: SchemaRegistry | None = None) -> Any:
    node = schema_at(schema, data, item_path, registry)
    r = resolve(node, registry) if node is not None else None
    if r is None or r.shape != "union":
        raise ValueError(f"not a tagged union: {item_path}")
    item = get_by_path(data, item_path)
    current = item if isinstance(item, dict) else {}
    if current.get(r.node.discriminator) == tag:
        return data
    return set_by_path(data, item_path, synthesize_variant(r.node, tag, current, registry))

