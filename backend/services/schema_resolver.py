from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from schemas.nodes import (
    ArrayNode,
    Literal,
    Node,
    ObjectNode,
    OptionalNode,
    Primitive,
    SchemaRegistry,
    SelfReference,
    TaggedUnion,
)
from services.errors import SchemaResolutionError

logger = logging.getLogger(__name__)

MAX_DEPTH = 10

_SELECT_HINT = re.compile(r"^([a-z][A-Za-z0-9]*)Select$")


@dataclass(frozen=True)
class FieldMeta:
    label: str
    description: str
    ui_hint: str | None = None
    collection: str | None = None

    @property
    def hidden(self) -> bool:
        return self.ui_hint == "hidden"


@dataclass(frozen=True)
class Resolved:
    """Canonical view of a schema node.

    `node` is the unwrapped node that picks the editor; `declared` is the node as
    written, kept so presence/absence round-trips.
    """

    shape: str
    node: Node
    declared: Node
    optional: bool = False
    nullable: bool = False
    reference: str | None = None
    error: str | None = None


def _hint_from_special_type(special: str, data: dict[str, Any]) -> tuple[str | None, str | None]:
    if special == "hidden":
        return "hidden", None
    if special == "formula":
        return "formula", None
    if special in ("enum", "enumSelect"):
        return "enumSelect", None
    if special == "entityReference":
        return "entityReference", data.get("collection")
    m = _SELECT_HINT.match(special)
    if m:
        return "entityReference", data.get("collection") or f"{m.group(1)}s"
    return None, None


def _raw_description(node: Node) -> str | None:
    while node.description is None and isinstance(node, OptionalNode):
        node = node.inner
    return node.description


def field_meta(name: str, node: Node) -> FieldMeta:
    raw = _raw_description(node)
    if not raw:
        return FieldMeta(label=name, description=name)
    try:
        data = json.loads(raw)
    except ValueError:
        return FieldMeta(label=name, description=raw)
    if not isinstance(data, dict):
        return FieldMeta(label=name, description=raw)
    hint, collection = _hint_from_special_type(str(data.get("specialType") or ""), data)
    return FieldMeta(
        label=str(data.get("label") or name),
        description=str(data.get("description") or name),
        ui_hint=hint,
        collection=collection,
    )


def _deref(ref: SelfReference, registry: SchemaRegistry | None, seen: set[str]) -> Node:
    if registry is None:
        raise SchemaResolutionError(f"no registry to resolve reference {ref.target!r}")
    if ref.target in seen:
        raise SchemaResolutionError(f"reference cycle through {ref.target!r}")
    seen.add(ref.target)
    target = registry.get(ref.target)
    if target is None:
        raise SchemaResolutionError(f"unknown schema reference {ref.target!r}")
    return target


def resolve(node: Node, registry: SchemaRegistry | None = None) -> Resolved:
    """Unwrap optional wrappers and one level of self reference.

    Only the outer shape is resolved; fields of a referenced object stay unresolved
    until the row builder visits them.
    """
    declared = node
    optional = nullable = False
    reference: str | None = None
    seen: set[str] = set()
    try:
        while True:
            if isinstance(node, OptionalNode):
                optional = True
                nullable = nullable or node.nullable
                node = node.inner
            elif isinstance(node, SelfReference):
                reference = reference or node.target
                node = _deref(node, registry, seen)
            else:
                break
    except SchemaResolutionError as e:
        logger.debug("schema resolution failed: %s", e)
        return Resolved("unknown", node, declared, optional, nullable, reference, str(e))

    if isinstance(node, Primitive):
        shape = "primitive"
    elif isinstance(node, Literal):
        shape = "literal"
    elif isinstance(node, ObjectNode):
        shape = "object"
    elif isinstance(node, ArrayNode):
        shape = "array"
    elif isinstance(node, TaggedUnion):
        shape = "union"
    else:
        return Resolved("unknown", node, declared, optional, nullable, reference, f"unsupported schema node {type(node).__name__}")
    return Resolved(shape, node, declared, optional, nullable, reference)


def classify(resolved: Resolved, registry: SchemaRegistry | None = None) -> str:
    """'object', 'array' (array of structured elements) or 'leaf'."""
    if resolved.shape in ("object", "union"):
        return "object"
    if resolved.shape == "array":
        element = resolve(resolved.node.element, registry)
        if element.shape in ("object", "union"):
            return "array"
    return "leaf"


def visible_fields(node: ObjectNode) -> list[tuple[str, Node, FieldMeta]]:
    out = []
    for name, field_node in node.fields.items():
        fm = field_meta(name, field_node)
        if fm.hidden:
            continue
        out.append((name, field_node, fm))
    return out


def variant_shape(union: TaggedUnion, item: Any) -> tuple[ObjectNode | None, bool]:
    """Variant matching the item's discriminator; first variant when nothing matches."""
    tag = item.get(union.discriminator) if isinstance(item, dict) else None
    match = union.variant_for(tag) if tag is not None else None
    if match is not None:
        return match, True
    return (union.variants[0] if union.variants else None), False


def object_shape(resolved: Resolved, data: Any) -> ObjectNode | None:
    if resolved.shape == "object":
        return resolved.node
    if resolved.shape == "union":
        return variant_shape(resolved.node, data)[0]
    return None


def visible_columns(schema: Node, registry: SchemaRegistry | None = None) -> list[dict[str, Any]]:
    """Top-level scalar fields for tabular summaries, plus the actions column."""
    root = resolve(schema, registry)
    if root.shape != "object":
        return []
    columns = []
    for name, field_node, fm in visible_fields(root.node):
        r = resolve(field_node, registry)
        if r.shape in ("object", "array", "union") or r.reference:
            continue
        columns.append({"key": name, "label": fm.description, "sortable": True})
    columns.append({"key": "actions", "label": "Actions", "sortable": False})
    return columns


def to_json_schema(node: Node, registry: SchemaRegistry | None = None) -> dict[str, Any]:
    defs: dict[str, Any] = {}
    out = _json_schema(node, registry, defs)
    if defs:
        out["$defs"] = defs
    return out


def _json_schema(node: Node, registry: SchemaRegistry | None, defs: dict[str, Any]) -> dict[str, Any]:
    if isinstance(node, OptionalNode):
        inner = _json_schema(node.inner, registry, defs)
        out = {"anyOf": [inner, {"type": "null"}]} if node.nullable else inner
    elif isinstance(node, SelfReference):
        if node.target not in defs and registry is not None and registry.get(node.target) is not None:
            defs[node.target] = {}
            defs[node.target] = _json_schema(registry.get(node.target), registry, defs)
        out = {"$ref": f"#/$defs/{node.target}"}
    elif isinstance(node, Primitive):
        if node.kind == "enum":
            out = {"type": "string", "enum": list(node.options)}
        else:
            out = {"type": node.kind}
    elif isinstance(node, Literal):
        out = {"const": node.value}
    elif isinstance(node, ObjectNode):
        out = {
            "type": "object",
            "required": [k for k, v in node.fields.items() if not isinstance(v, OptionalNode)],
            "properties": {k: _json_schema(v, registry, defs) for k, v in node.fields.items()},
        }
    elif isinstance(node, ArrayNode):
        out = {"type": "array", "items": _json_schema(node.element, registry, defs)}
    elif isinstance(node, TaggedUnion):
        out = {
            "oneOf": [_json_schema(v, registry, defs) for v in node.variants],
            "discriminator": {"propertyName": node.discriminator},
        }
    else:
        out = {}
    if node.description:
        out = {**out, "description": node.description}
    return out
