from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any

PRIMITIVE_KINDS = ("string", "number", "boolean", "enum")


@dataclass(frozen=True)
class Node:
    description: str | None = field(default=None, kw_only=True)

    def describe(self, text: str) -> "Node":
        return replace(self, description=text)


@dataclass(frozen=True)
class Primitive(Node):
    kind: str = "string"
    options: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in PRIMITIVE_KINDS:
            raise ValueError(f"unknown primitive kind: {self.kind}")


@dataclass(frozen=True)
class Literal(Node):
    value: Any = None


@dataclass(frozen=True)
class ObjectNode(Node):
    fields: dict[str, Node] = field(default_factory=dict)


@dataclass(frozen=True)
class ArrayNode(Node):
    element: Node = field(default_factory=Primitive)


@dataclass(frozen=True)
class OptionalNode(Node):
    inner: Node = field(default_factory=Primitive)
    nullable: bool = False


@dataclass(frozen=True)
class TaggedUnion(Node):
    discriminator: str = "type"
    variants: tuple[ObjectNode, ...] = ()

    def tags(self) -> list[Any]:
        out = []
        for v in self.variants:
            lit = v.fields.get(self.discriminator)
            if isinstance(lit, OptionalNode):
                lit = lit.inner
            if isinstance(lit, Literal):
                out.append(lit.value)
        return out

    def variant_for(self, tag: Any) -> ObjectNode | None:
        for v in self.variants:
            lit = v.fields.get(self.discriminator)
            if isinstance(lit, OptionalNode):
                lit = lit.inner
            if isinstance(lit, Literal) and lit.value == tag:
                return v
        return None


@dataclass(frozen=True)
class SelfReference(Node):
    target: str = ""


class SchemaRegistry:
    """Named schema nodes, so recursive types point at a name instead of a cycle."""

    def __init__(self, nodes: dict[str, Node] | None = None) -> None:
        self._nodes: dict[str, Node] = dict(nodes or {})

    def get(self, name: str) -> Node | None:
        return self._nodes.get(name)


def meta(description: str, special_type: str | None = None, **extra: Any) -> str:
    data: dict[str, Any] = {"description": description}
    if special_type:
        data["specialType"] = special_type
    data.update(extra)
    return json.dumps(data, ensure_ascii=False)


def string() -> Primitive:
    return Primitive(kind="string")


def number() -> Primitive:
    return Primitive(kind="number")


def boolean() -> Primitive:
    return Primitive(kind="boolean")


def enum(*options: str) -> Primitive:
    return Primitive(kind="enum", options=tuple(options))


def literal(value: Any) -> Literal:
    return Literal(value=value)


def obj(fields: dict[str, Node]) -> ObjectNode:
    return ObjectNode(fields=dict(fields))


def array(element: Node) -> ArrayNode:
    return ArrayNode(element=element)


def optional(inner: Node) -> OptionalNode:
    return OptionalNode(inner=inner)


def nullable(inner: Node) -> OptionalNode:
    return OptionalNode(inner=inner, nullable=True)


def union(discriminator: str, variants: list[ObjectNode]) -> TaggedUnion:
    return TaggedUnion(discriminator=discriminator, variants=tuple(variants))


def ref(target: str) -> SelfReference:
    return SelfReference(target=target)
