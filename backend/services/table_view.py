from __future__ import annotations

from functools import cmp_to_key
from typing import Any

from schemas.nodes import Node, SchemaRegistry
from services.schema_resolver import resolve, visible_columns

SORT_DIRECTIONS = ("asc", "desc")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _compare(a: Any, b: Any) -> int:
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    sa, sb = str(a), str(b)
    return (sa > sb) - (sa < sb)


def sort_records(records: list[dict[str, Any]], column: str | None, direction: str = "asc") -> list[dict[str, Any]]:
    """Numbers compare numerically, everything else by string form."""
    if direction not in SORT_DIRECTIONS:
        raise ValueError(f"sort direction must be one of {SORT_DIRECTIONS}")
    if not column:
        return list(records)
    sign = 1 if direction == "asc" else -1
    return sorted(records, key=cmp_to_key(lambda x, y: sign * _compare(x.get(column), y.get(column))))


def render_cell(value: Any, node: Node | None = None, registry: SchemaRegistry | None = None) -> dict[str, Any]:
    if isinstance(value, (dict, list)):
        return {"kind": "text", "text": "[Object]"}
    if node is not None:
        r = resolve(node, registry)
        if r.shape == "primitive" and r.node.kind == "enum":
            return {"kind": "badge", "text": "" if value is None else str(value)}
    if value is None:
        return {"kind": "text", "text": ""}
    if isinstance(value, bool):
        return {"kind": "text", "text": "true" if value else "false"}
    return {"kind": "text", "text": str(value)}


def table(
    schema: Node,
    records: list[dict[str, Any]],
    *,
    registry: SchemaRegistry | None = None,
    sort: str | None = None,
    direction: str = "asc",
) -> dict[str, Any]:
    columns = visible_columns(schema, registry)
    root = resolve(schema, registry)
    fields = root.node.fields if root.shape == "object" else {}
    rows = []
    for record in sort_records(records, sort, direction):
        rows.append({
            c["key"]: render_cell(record.get(c["key"]), fields.get(c["key"]), registry)
            for c in columns if c["key"] != "actions"
        })
    return {"columns": columns, "rows": rows, "sort": sort, "direction": direction}
