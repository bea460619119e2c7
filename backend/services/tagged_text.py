"""Indented, type-tagged text notation for records.

    Name: Fireball
    Triggers:
      - Time: 0.1
        Actions:
          - !CircleQuery
              Radius: 1.5
              OnHit:
                - !Damage
                    Potency: "$Intelligence * 4 + 50"

A dict with a bare-word string ``type`` is written as ``!Type`` followed by its
other fields one level deeper. ``decode(encode(x)) == x`` for every value made of
dicts, lists, strings, numbers, booleans and None. Infinite floats are written as
``.inf`` / ``-.inf`` and NaN as ``.nan``; NaN reads back as NaN, which never
compares equal.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from services.errors import DecodeError

logger = logging.getLogger(__name__)

INDENT = "  "
TAG_SIGIL = "!"
TYPE_FIELD = "type"

_TAG_WORD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?$")
_STRUCTURAL = ("\n", "\r", "\t", ":", "-", "#", '"', "\\")
# every character str.splitlines() breaks on beyond the ASCII controls
_LINE_BREAKS = ("\x85", "\u2028", "\u2029")
_NON_FINITE = {".inf": float("inf"), "-.inf": float("-inf"), ".nan": float("nan")}
_LITERALS = ("true", "false", "null", "[]", "{}", *_NON_FINITE)


# -- encoding ---------------------------------------------------------------

def _unsafe_char(text: str) -> bool:
    return any(ord(ch) < 32 or ch in _LINE_BREAKS for ch in text)


def _quote(text: str) -> str:
    out = json.dumps(text, ensure_ascii=False)
    for ch in _LINE_BREAKS:
        out = out.replace(ch, f"\\u{ord(ch):04x}")
    return out


def _needs_quotes(text: str) -> bool:
    if not text or text != text.strip():
        return True
    if any(ch in text for ch in _STRUCTURAL):
        return True
    if text[0] in "!'[{" or text in _LITERALS:
        return True
    if _FLOAT.match(text):
        return True
    return _unsafe_char(text)


def _float(value: float) -> str:
    if math.isnan(value):
        return ".nan"
    if math.isinf(value):
        return ".inf" if value > 0 else "-.inf"
    return repr(value)


def _scalar(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _float(value)
    text = str(value)
    return _quote(text) if _needs_quotes(text) else text


def _key(key: Any) -> str:
    text = str(key)
    if not text or text != text.strip() or text[0] in "!-[{'\"" or any(ch in text for ch in ':#"\\') or _unsafe_char(text):
        return _quote(text)
    return text


def _tag_of(value: Any) -> str | None:
    if isinstance(value, dict):
        tag = value.get(TYPE_FIELD)
        if isinstance(tag, str) and _TAG_WORD.match(tag):
            return tag
    return None


def _is_block(value: Any) -> bool:
    return isinstance(value, (dict, list)) and len(value) > 0


def _emit(value: Any, level: int) -> list[str]:
    pad = INDENT * level
    tag = _tag_of(value)
    if tag is not None:
        body = {k: v for k, v in value.items() if k != TYPE_FIELD}
        lines = [f"{pad}{TAG_SIGIL}{tag}"]
        if body:
            lines += _emit(body, level + 1)
        return lines
    if isinstance(value, dict):
        if not value:
            return [f"{pad}{{}}"]
        lines = []
        for k, v in value.items():
            if _is_block(v) or _tag_of(v) is not None:
                lines.append(f"{pad}{_key(k)}:")
                lines += _emit(v, level + 1)
            else:
                lines.append(f"{pad}{_key(k)}: {_inline(v)}")
        return lines
    if isinstance(value, list):
        if not value:
            return [f"{pad}[]"]
        lines = []
        for item in value:
            if _is_block(item) or _tag_of(item) is not None:
                nested = _emit(item, level + 1)
                lines.append(f"{pad}- {nested[0].lstrip()}")
                lines += nested[1:]
            else:
                lines.append(f"{pad}- {_inline(item)}")
        return lines
    return [f"{pad}{_scalar(value)}"]


def _inline(value: Any) -> str:
    if isinstance(value, dict):
        return "{}"
    if isinstance(value, list):
        return "[]"
    return _scalar(value)


def encode(data: Any) -> str:
    return "\n".join(_emit(data, 0)) + "\n"


# -- decoding ---------------------------------------------------------------

@dataclass
class _Line:
    number: int
    indent: int
    text: str


@dataclass
class DecodeResult:
    value: Any
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def parse_scalar(text: str) -> Any:
    """Boolean, null, number, quoted string, then bare string."""
    text = text.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    if text == "[]":
        return []
    if text == "{}":
        return {}
    if _INT.match(text):
        return int(text)
    if _FLOAT.match(text):
        return float(text)
    if text in _NON_FINITE:
        return _NON_FINITE[text]
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        try:
            return json.loads(text)
        except ValueError:
            return text[1:-1]
    return text


def _split_key(text: str) -> tuple[str, str] | None:
    """`key: value` -> (key, value); None when the text is not a key line."""
    if text.startswith('"'):
        try:
            key, end = json.JSONDecoder().raw_decode(text)
        except ValueError:
            return None
        rest = text[end:]
        if not isinstance(key, str) or not rest.startswith(":"):
            return None
        return key, rest[1:].strip()
    if text.startswith(TAG_SIGIL) or ":" not in text:
        return None
    key, _, rest = text.partition(":")
    if rest and not rest.startswith(" "):
        return None
    return key.strip(), rest.strip()


def _is_dash(text: str) -> bool:
    return text == "-" or text.startswith("- ")


def _tokenize(text: str, warnings: list[str]) -> list[_Line]:
    lines: list[_Line] = []
    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lead = raw[: len(raw) - len(raw.lstrip())]
        if "\t" in lead:
            warnings.append(f"line {number}: tab indentation is not supported")
            lead = lead.replace("\t", INDENT)
        indent = len(lead)
        # `- rest` becomes a dash marker plus `rest` two columns deeper.
        while _is_dash(stripped):
            lines.append(_Line(number, indent, "-"))
            stripped = stripped[1:].lstrip()
            indent += 2
            if not stripped:
                break
        if stripped:
            lines.append(_Line(number, indent, stripped.rstrip()))
    return lines


class _Parser:
    def __init__(self, lines: list[_Line], warnings: list[str]) -> None:
        self.lines = lines
        self.pos = 0
        self.warnings = warnings

    def warn(self, line: _Line, message: str) -> None:
        self.warnings.append(f"line {line.number}: {message}")

    def peek(self) -> _Line | None:
        return self.lines[self.pos] if self.pos < len(self.lines) else None

    def child_block(self, parent_indent: int) -> Any:
        nxt = self.peek()
        if nxt is None or nxt.indent <= parent_indent:
            return None
        return self.block(nxt.indent)

    def block(self, indent: int) -> Any:
        first = self.peek()
        if first.text == "-":
            return self.sequence(indent)
        if first.text.startswith(TAG_SIGIL) and _split_key(first.text) is None:
            return self.tagged(indent)
        if _split_key(first.text) is not None:
            return self.mapping(indent)
        self.pos += 1
        value = parse_scalar(first.text)
        self.skip_stray(indent, "unexpected content after a scalar value")
        return value

    def skip_stray(self, indent: int, message: str) -> None:
        while (line := self.peek()) is not None and line.indent >= indent:
            self.warn(line, message)
            self.pos += 1

    def sequence(self, indent: int) -> list[Any]:
        items: list[Any] = []
        while (line := self.peek()) is not None and line.indent == indent and line.text == "-":
            self.pos += 1
            items.append(self.child_block(indent))
        return items

    def tagged(self, indent: int) -> dict[str, Any]:
        line = self.peek()
        self.pos += 1
        tag_text = line.text[len(TAG_SIGIL):]
        tag, sep, rest = tag_text.partition(":")
        tag = tag.strip()
        if sep and rest.strip():
            self.warn(line, f"inline value on tag !{tag} is not supported; tags must introduce an indented body")
        if not _TAG_WORD.match(tag):
            self.warn(line, f"invalid tag {line.text!r}")
        out: dict[str, Any] = {TYPE_FIELD: tag}
        body = self.child_block(indent)
        if isinstance(body, dict):
            body.pop(TYPE_FIELD, None)
            out.update(body)
        elif body is not None:
            self.warn(line, f"body of !{tag} must be key: value lines")
        return out

    def mapping(self, indent: int) -> dict[str, Any]:
        out: dict[str, Any] = {}
        while (line := self.peek()) is not None and line.indent == indent:
            split = _split_key(line.text)
            if split is None:
                self.warn(line, f"expected 'key: value', got {line.text!r}")
                self.pos += 1
                self.skip_stray(indent + 1, "unexpected indented content")
                continue
            key, rest = split
            self.pos += 1
            if key in out:
                self.warn(line, f"duplicate key {key!r}")
            if rest:
                out[key] = parse_scalar(rest)
                self.skip_stray(indent + 1, f"unexpected indented content under {key!r}")
                continue
            nxt = self.peek()
            if nxt is not None and nxt.indent == indent and nxt.text == "-":
                out[key] = self.sequence(indent)
            else:
                child = self.child_block(indent)
                out[key] = {} if child is None else child
        return out


def decode_report(text: str) -> DecodeResult:
    """Best-effort decode that never raises; problems land in `warnings`."""
    warnings: list[str] = []
    lines = _tokenize(text or "", warnings)
    if not lines:
        return DecodeResult({}, warnings)
    parser = _Parser(lines, warnings)
    root_indent = lines[0].indent
    value = parser.block(root_indent)
    while (line := parser.peek()) is not None:
        if line.indent < root_indent:
            parser.warn(line, "line is indented less than the first line")
            root_indent = line.indent
        extra = parser.block(line.indent)
        if isinstance(value, dict) and isinstance(extra, dict):
            parser.warn(line, "content after dedent merged into the top-level object")
            value.update(extra)
        else:
            parser.warn(line, "unexpected content after the top-level value")
    if warnings:
        logger.debug("tagged text decoded with %d warning(s)", len(warnings))
    return DecodeResult(value, warnings)


def decode(text: str) -> Any:
    result = decode_report(text)
    if result.warnings:
        raise DecodeError(result.warnings[0], result.warnings)
    return result.value
