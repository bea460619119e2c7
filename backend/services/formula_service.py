from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from services.errors import ValidationError


@dataclass(frozen=True)
class FunctionDef:
    name: str
    description: str
    syntax: str
    examples: tuple[str, ...] = ()


BUILTIN_FUNCTIONS: tuple[FunctionDef, ...] = (
    FunctionDef("MIN", "Returns the minimum of two or more values", "MIN(a, b, ...)", ("MIN(10, 5)", "MIN($Level, 100)")),
    FunctionDef("MAX", "Returns the maximum of two or more values", "MAX(a, b, ...)", ("MAX(0, $Damage)", "MAX($Strength, $Dexterity)")),
    FunctionDef("FLOOR", "Rounds down to the nearest integer", "FLOOR(value)", ("FLOOR(10.7)", "FLOOR($Damage / 2)")),
    FunctionDef("CEIL", "Rounds up to the nearest integer", "CEIL(value)", ("CEIL(10.3)", "CEIL($Health / 10)")),
    FunctionDef("ROUND", "Rounds to the nearest integer", "ROUND(value)", ("ROUND(10.5)", "ROUND($Damage * 1.5)")),
    FunctionDef("ABS", "Returns the absolute value", "ABS(value)", ("ABS(-10)", "ABS($Damage - $Armor)")),
    FunctionDef("SQRT", "Returns the square root", "SQRT(value)", ("SQRT(16)", "SQRT($Strength * 2)")),
    FunctionDef("POW", "Raises a number to a power", "POW(base, exponent)", ("POW(2, 3)", "POW($Level, 1.5)")),
    FunctionDef("CLAMP", "Clamps a value between min and max", "CLAMP(value, min, max)", ("CLAMP($Damage, 0, 100)", "CLAMP($Level, 1, 50)")),
    FunctionDef("LERP", "Linear interpolation between two values", "LERP(a, b, t)", ("LERP(0, 100, 0.5)", "LERP($MinDamage, $MaxDamage, 0.5)")),
)
FUNCTION_NAMES = frozenset(f.name for f in BUILTIN_FUNCTIONS)

# `$` marks an attribute reference and is only allowed right before an identifier.
_ALLOWED = re.compile(r"[A-Za-z0-9\s+\-*/()=,._]")
_IDENT_START = re.compile(r"[A-Za-z_]")
_TOKEN = re.compile(r"(?P<num>\d+(?:\.\d*)?|\.\d+)|(?P<ref>\$?)(?P<ident>[A-Za-z_][A-Za-z0-9_]*)")
_PARTIAL = re.compile(r"[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class FormulaCheck:
    ok: bool
    reason: str | None = None
    position: int | None = None

    def to_dict(self) -> dict:
        return {"ok": self.ok, "reason": self.reason, "position": self.position}


@dataclass(frozen=True)
class Suggestion:
    value: str
    kind: str
    description: str
    syntax: str | None = None
    label: str = field(default="")

    def to_dict(self) -> dict:
        return {"value": self.value, "label": self.label or self.value, "type": self.kind, "description": self.description, "syntax": self.syntax}


def _check_parentheses(formula: str) -> None:
    depth = 0
    in_string = False
    last = ""
    for i, ch in enumerate(formula):
        if ch == '"' and last != "\\":
            in_string = not in_string
        if not in_string:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth < 0:
                    raise ValidationError("Unmatched closing parenthesis", i)
        last = ch
    if depth > 0:
        raise ValidationError("Unmatched opening parenthesis", len(formula))


def _check_characters(formula: str) -> None:
    for i, ch in enumerate(formula):
        if ch == "$":
            if i + 1 < len(formula) and _IDENT_START.match(formula[i + 1]):
                continue
            raise ValidationError("Invalid characters in formula", i)
        if not _ALLOWED.match(ch):
            raise ValidationError("Invalid characters in formula", i)


def _identifiers(formula: str) -> list[tuple[str, bool, int]]:
    """(name, is_call, position) for every identifier token."""
    out = []
    for m in _TOKEN.finditer(formula):
        if m.group("num") is not None:
            continue
        name = m.group("ident")
        rest = formula[m.end():].lstrip()
        out.append((name, rest.startswith("("), m.start()))
    return out


def check_formula(formula: str, known_identifiers: Iterable[str]) -> None:
    """Raise ValidationError for the first failing check."""
    known = set(known_identifiers)
    _check_parentheses(formula)
    _check_characters(formula)
    idents = _identifiers(formula)

    unknown_functions = [(n, p) for n, is_call, p in idents if is_call and n[0].isupper() and n not in FUNCTION_NAMES]
    if unknown_functions:
        names = ", ".join(dict.fromkeys(n for n, _ in unknown_functions))
        raise ValidationError(f"Unknown function(s): {names}", unknown_functions[0][1])

    unknown_variables = [(n, p) for n, is_call, p in idents if not is_call and n not in known and n not in FUNCTION_NAMES]
    if unknown_variables:
        names = ", ".join(dict.fromkeys(n for n, _ in unknown_variables))
        raise ValidationError(f"Unknown variable(s): {names}", unknown_variables[0][1])


def validate_formula(formula: str, known_identifiers: Iterable[str]) -> FormulaCheck:
    try:
        check_formula(formula or "", known_identifiers)
    except ValidationError as e:
        return FormulaCheck(False, e.reason, e.position)
    return FormulaCheck(True)


def partial_word(formula: str, cursor: int) -> str:
    m = _PARTIAL.search(formula[: max(0, cursor)])
    return m.group(0) if m else ""


def suggest(formula: str, cursor: int, attributes: Iterable[str]) -> list[Suggestion]:
    partial = partial_word(formula, cursor)
    if not partial:
        return []
    prefix = partial.lower()
    candidates = [Suggestion(a, "variable", f"Reference to {a} attribute") for a in attributes]
    candidates += [Suggestion(f.name, "function", f.description, f.syntax) for f in BUILTIN_FUNCTIONS]
    matches = [s for s in candidates if s.value.lower().startswith(prefix)]
    if len(matches) == 1 and matches[0].value.lower() == prefix:
        return []
    return matches


def apply_suggestion(formula: str, cursor: int, suggestion: Suggestion) -> tuple[str, int]:
    """Replace the partial word before the cursor; functions get `()` with the cursor inside."""
    cursor = max(0, min(cursor, len(formula)))
    start = cursor - len(partial_word(formula, cursor))
    insert = suggestion.value
    new_cursor = start + len(insert)
    if suggestion.kind == "function":
        insert += "()"
        new_cursor += 1
    return formula[:start] + insert + formula[cursor:], new_cursor


def format_formula(formula: str) -> str:
    out = re.sub(r"([+\-*/=(),])", r" \1 ", formula)
    out = re.sub(r"\s+", " ", out)
    out = out.replace("( ", "(").replace(" )", ")")
    out = out.replace(" ,", ",")
    # function calls keep the parenthesis attached
    out = re.sub(r"\b([A-Za-z_][A-Za-z0-9_]*)\s+\(", r"\1(", out)
    return out.strip()
