"""BindingCursor and NodeBuilder: per-node consumption state.

A ``BindingCursor`` tracks what one decode pass has taken from a node: the
next argument index, the consumed property keys and the consumed child
indices.  It is handed, not copied, to flattened fields so they draw from
the same pools as their siblings.  Lookups return ``None`` (or an empty list)
when nothing matches; turning that into an error or a default is the
caller's business.

``NodeBuilder`` is the encode-side counterpart that collects arguments,
properties and children in emission order.
"""

from __future__ import annotations

from typing import Collection

from .document import Node, Property, Span, Value


class BindingCursor:
    def __init__(self, node: Node, argument_index: int = 0) -> None:
        self.node = node
        self.argument_index = argument_index
        self.consumed_properties: set[str] = set()
        self.consumed_children: set[int] = set()

    # -- Arguments --------------------------------------------------------

    def take_argument(self) -> Value | None:
        if self.argument_index >= len(self.node.arguments):
            return None
        value = self.node.arguments[self.argument_index]
        self.argument_index += 1
        return value

    def take_remaining_arguments(self) -> list[Value]:
        values = list(self.node.arguments[self.argument_index:])
        self.argument_index = len(self.node.arguments)
        return values

    def remaining_argument_count(self) -> int:
        return len(self.node.arguments) - self.argument_index

    # -- Properties -------------------------------------------------------

    def take_property(self, key: str) -> Property | None:
        if key in self.consumed_properties:
            return None
        prop = self.node.get_property(key)
        if prop is not None:
            self.consumed_properties.add(key)
        return prop

    def has_property(self, key: str) -> bool:
        return key not in self.consumed_properties and self.node.get_property(key) is not None

    # -- Children ---------------------------------------------------------

    def take_child(self, tags: Collection[str] | None) -> Node | None:
        """First unconsumed child whose name is in *tags* (any name when None)."""
        for idx, child in self._unconsumed_children():
            if tags is None or child.name in tags:
                self.consumed_children.add(idx)
                return child
        return None

    def take_children(self, tags: Collection[str] | None) -> list[Node]:
        taken: list[Node] = []
        for idx, child in self._unconsumed_children():
            if tags is None or child.name in tags:
                self.consumed_children.add(idx)
                taken.append(child)
        return taken

    def has_child(self, tag: str) -> bool:
        return any(child.name == tag for _, child in self._unconsumed_children())

    def _unconsumed_children(self):
        for idx, child in enumerate(self.node.children):
            if idx not in self.consumed_children:
                yield idx, child

    # -- Leftovers --------------------------------------------------------

    def leftover_arguments(self) -> list[Value]:
        return list(self.node.arguments[self.argument_index:])

    def leftover_properties(self) -> list[Property]:
        return [p for p in self.node.properties if p.name not in self.consumed_properties]

    def leftover_children(self) -> list[Node]:
        return [child for _, child in self._unconsumed_children()]

    def __repr__(self) -> str:
        return (
            f"BindingCursor(node={self.node.name!r}, argument_index={self.argument_index}, "
            f"properties={sorted(self.consumed_properties)}, "
            f"children={sorted(self.consumed_children)})"
        )


class NodeBuilder:
    """Collects one node's entries in the order the encoder emits them."""

    def __init__(self) -> None:
        self.name: str | None = None
        self.type_annotation: str | None = None
        self.arguments: list[Value] = []
        self.properties: list[Property] = []
        self.children: list[Node] = []

    def push_argument(self, value: Value) -> None:
        self.arguments.append(value)

    def push_property(self, name: str, value: Value) -> None:
        self.properties.append(Property(name=name, value=value))

    def push_child(self, node: Node) -> None:
        self.children.append(node)

    def build(self, name: str, span: Span | None = None) -> Node:
        """Freeze into a Node; a name set through ``node_name`` wins over *name*."""
        return Node(
            name=self.name if self.name is not None else name,
            arguments=tuple(self.arguments),
            properties=tuple(self.properties),
            children=tuple(self.children),
            type_annotation=self.type_annotation,
            span=span,
        )
