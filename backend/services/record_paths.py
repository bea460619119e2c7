from __future__ import annotations

import re
from typing import Any, Callable

# `Triggers[0].Actions[1].Radius`: members with dots, indices in brackets.
_SEGMENT = re.compile(r"\[(\d+)\]|(?:^|\.)([^.\[\]]+)")


def parse_path(path: str) -> list[str | int]:
    parts: list[str | int] = []
    pos = 0
    while pos < len(path):
        m = _SEGMENT.match(path, pos)
        if not m or m.end() == pos:
            raise ValueError(f"invalid path: {path!r}")
        parts.append(int(m.group(1)) if m.group(1) is not None else m.group(2))
        pos = m.end()
    return parts


def join_path(base: str, key: str) -> str:
    return f"{base}.{key}" if base else key


def index_path(base: str, index: int) -> str:
    return f"{base}[{index}]"


def split_last(path: str) -> tuple[str, str | int]:
    parts = parse_path(path)
    if not parts:
        raise ValueError("path is empty")
    last = parts[-1]
    if isinstance(last, int):
        return path[: path.rindex("[")], last
    cut = path.rfind(".")
    return (path[:cut] if cut >= 0 else ""), last


def get_by_path(data: Any, path: str, default: Any = None) -> Any:
    cur = data
    for part in parse_path(path):
        if isinstance(part, int):
            if not isinstance(cur, list) or part >= len(cur):
                return default
            cur = cur[part]
        else:
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
    return cur


def _update(node: Any, parts: list[str | int], fn: Callable[[Any], Any]) -> Any:
    if not parts:
        return fn(node)
    head, rest = parts[0], parts[1:]
    if isinstance(head, int):
        items = list(node) if isinstance(node, list) else []
        if head > len(items):
            raise IndexError(f"index {head} out of range")
        child = items[head] if head < len(items) else None
        new_child = _update(child, rest, fn)
        if head < len(items):
            items[head] = new_child
        else:
            items.append(new_child)
        return items
    obj = dict(node) if isinstance(node, dict) else {}
    obj[head] = _update(obj.get(head), rest, fn)
    return obj


def update_by_path(data: Any, path: str, fn: Callable[[Any], Any]) -> Any:
    """New root with `fn` applied at `path`; only containers along the path are copied."""
    return _update(data, parse_path(path), fn)


def set_by_path(data: Any, path: str, value: Any) -> Any:
    return update_by_path(data, path, lambda _old: value)


def delete_by_path(data: Any, path: str) -> Any:
    """New root without the member or item at `path`; `data` itself when nothing is there."""
    parent, last = split_last(path)
    container = get_by_path(data, parent) if parent else data
    if isinstance(last, int):
        if not isinstance(container, list) or last >= len(container):
            return data
    elif not isinstance(container, dict) or last not in container:
        return data

    def drop(container: Any) -> Any:
        if isinstance(last, int):
            items = list(container)
            del items[last]
            return items
        obj = dict(container)
        obj.pop(last)
        return obj

    if not parent:
        return drop(data)
    return update_by_path(data, parent, drop)


def move_item(data: Any, array_path: str, old_index: int, new_index: int) -> Any:
    def move(items: Any) -> Any:
        items = list(items) if isinstance(items, list) else []
        if not (0 <= old_index < len(items)) or not (0 <= new_index < len(items)):
            raise IndexError(f"move {old_index} -> {new_index} out of range for {len(items)} items")
        item = items.pop(old_index)
        items.insert(new_index, item)
        return items

    return update_by_path(data, array_path, move)


def clear_array(data: Any, array_path: str) -> Any:
    return set_by_path(data, array_path, [])
