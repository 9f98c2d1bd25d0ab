"""Document model: the immutable node tree produced by the reader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

Scalar = Union[str, int, float, bool, None]


@dataclass(frozen=True, slots=True)
class Span:
    """Character range into the source text."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def __str__(self) -> str:
        return f"{self.offset}..{self.end}"


@dataclass(frozen=True, slots=True)
class Value:
    """A positional or named scalar, with the place it came from."""

    value: Scalar
    span: Span | None = None
    type_annotation: str | None = None

    @property
    def kind(self) -> str:
        return scalar_kind(self.value)


@dataclass(frozen=True, slots=True)
class Property:
    name: str
    value: Value
    span: Span | None = None


@dataclass(frozen=True, slots=True)
class Node:
    """One node: name, arguments, properties and children.

    ``properties`` keeps document order and duplicates; the decoder rejects
    duplicate keys before binding any field.
    """

    name: str
    arguments: tuple[Value, ...] = ()
    properties: tuple[Property, ...] = ()
    children: tuple[Node, ...] = ()
    type_annotation: str | None = None
    span: Span | None = None

    def get_property(self, name: str) -> Property | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None


@dataclass(frozen=True, slots=True)
class Document:
    """Top-level node list of one source text."""

    nodes: tuple[Node, ...] = field(default_factory=tuple)
    span: Span | None = None

    def as_node(self) -> Node:
        """Synthetic root node whose children are the top-level nodes."""
        return Node(name="", children=self.nodes, span=self.span)


def scalar_kind(value: Scalar) -> str:
    """Name of a scalar's kind, as used in type mismatch errors."""
    # bool before int: bool subclasses int
    if isinstance(value, bool):
        return "boolean"
    if value is None:
        return "null"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    return type(value).__name__
