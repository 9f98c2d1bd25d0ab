"""Printer: canonical KDL text for a Document.

Output is deterministic: nodes, arguments and properties are written in the
order they are stored, string values are always quoted, and names are bare
only when they are valid identifiers.
"""

from __future__ import annotations

import math
import re

from .document import Document, Node, Scalar, Value

_BARE_RE = re.compile(r"^(?![+-]?\.?[0-9])[^\s\\/(){};\[\]=\"#]+$")
_RESERVED_BARE = frozenset({"true", "false", "null", "inf", "-inf", "nan"})

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


def print_document(document: Document, indent: int = 4) -> str:
    """Render *document* as KDL text (empty string for an empty document)."""
    lines: list[str] = []
    for node in document.nodes:
        _print_node(node, 0, indent, lines)
    return "".join(line + "\n" for line in lines)


def _print_node(node: Node, level: int, indent: int, lines: list[str]) -> None:
    parts: list[str] = []
    head = format_name(node.name)
    if node.type_annotation is not None:
        head = f"({format_name(node.type_annotation)}){head}"
    parts.append(head)
    for arg in node.arguments:
        parts.append(format_value(arg))
    for prop in node.properties:
        parts.append(f"{format_name(prop.name)}={format_value(prop.value)}")

    pad = " " * (indent * level)
    if not node.children:
        lines.append(pad + " ".join(parts))
        return
    lines.append(pad + " ".join(parts) + " {")
    for child in node.children:
        _print_node(child, level + 1, indent, lines)
    lines.append(pad + "}")


def format_name(name: str) -> str:
    """Bare identifier when possible, quoted string otherwise."""
    if _BARE_RE.match(name) and name not in _RESERVED_BARE:
        return name
    return quote(name)


def format_value(value: Value) -> str:
    text = format_scalar(value.value)
    if value.type_annotation is not None:
        return f"({format_name(value.type_annotation)}){text}"
    return text


def format_scalar(value: Scalar) -> str:
    # bool before int: bool subclasses int
    if isinstance(value, bool):
        return "#true" if value else "#false"
    if value is None:
        return "#null"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "#nan"
        if math.isinf(value):
            return "#inf" if value > 0 else "#-inf"
        return repr(value)
    if isinstance(value, str):
        return quote(value)
    raise TypeError(f"Unsupported scalar type: {type(value)!r}")


def quote(text: str) -> str:
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'
