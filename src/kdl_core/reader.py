"""Reader layer: converts KDL text to the immutable Document model.

Parsing is done by a lark LALR parser built from ``kdl.lark``; the parse tree
is then folded bottom-up into ``Node``/``Value`` objects with spans taken from
token positions.
"""

from __future__ import annotations

import re
from pathlib import Path

from lark import Lark, Token, v_args
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)
from lark.visitors import Transformer_NonRecursive

from .document import Document, Node, Property, Span, Value
from .errors import ParseError

_GRAMMAR_PATH = Path(__file__).with_name("kdl.lark")

_parser: Lark | None = None


def _get_parser() -> Lark:
    global _parser
    if _parser is None:
        _parser = Lark(
            _GRAMMAR_PATH.read_text(encoding="utf-8"),
            parser="lalr",
            propagate_positions=True,
        )
    return _parser


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def parse(text: str) -> Document:
    """Parse KDL *text* into a Document.

    Raises ``ParseError`` with the span of the offending input.
    """
    try:
        tree = _get_parser().parse(text)
    except UnexpectedInput as exc:
        raise _parse_error(exc, text) from exc

    try:
        document = _DocumentBuilder().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, ParseError):
            raise exc.orig_exc from None
        raise
    return Document(nodes=document.nodes, span=Span(0, len(text)))


def _parse_error(exc: UnexpectedInput, text: str) -> ParseError:
    pos = getattr(exc, "pos_in_stream", None)
    if pos is None or pos < 0:
        pos = len(text)
    if isinstance(exc, UnexpectedCharacters):
        message = f"unexpected character {text[pos:pos + 1]!r}"
    elif isinstance(exc, UnexpectedEOF):
        message = "unexpected end of input"
    elif isinstance(exc, UnexpectedToken) and exc.token.type == "$END":
        message = "unexpected end of input"
    elif isinstance(exc, UnexpectedToken):
        message = f"unexpected {exc.token.value!r}"
    else:
        message = "invalid document"
    line = getattr(exc, "line", -1)
    if line and line > 0:
        message = f"{message} (line {line}, column {exc.column})"
    return ParseError(message, span=Span(pos, 1 if pos < len(text) else 0))


# ---------------------------------------------------------------------------
# Parse tree → Document
# ---------------------------------------------------------------------------

class _Dropped:
    """Marker for slashdash-commented items."""

    def __repr__(self) -> str:
        return "Dropped"


_DROPPED = _Dropped()


class _Annotation:
    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name


class _Block:
    __slots__ = ("nodes",)

    def __init__(self, nodes: tuple[Node, ...]) -> None:
        self.nodes = nodes


def _span_of(meta) -> Span | None:
    if getattr(meta, "empty", True):
        return None
    return Span(meta.start_pos, meta.end_pos - meta.start_pos)


def _token_span(tok: Token) -> Span:
    return Span(tok.start_pos, tok.end_pos - tok.start_pos)


class _DocumentBuilder(Transformer_NonRecursive):
    """Folds the lark tree; runs without recursion so depth is unbounded here."""

    def start(self, children: list) -> Document:
        return Document(nodes=tuple(c for c in children if isinstance(c, Node)))

    def sd_node(self, children: list) -> _Dropped:
        return _DROPPED

    def sd_part(self, children: list) -> _Dropped:
        return _DROPPED

    def block(self, children: list) -> _Block:
        return _Block(tuple(c for c in children if isinstance(c, Node)))

    @v_args(meta=True)
    def node(self, meta, children: list) -> Node:
        i = 0
        annotation = None
        if isinstance(children[0], _Annotation):
            annotation = children[0].name
            i = 1
        name: Value = children[i]

        arguments: list[Value] = []
        properties: list[Property] = []
        block: _Block | None = None
        for part in children[i + 1:]:
            if part is _DROPPED:
                continue
            if block is not None:
                raise ParseError(
                    "nothing may follow the children block of a node",
                    span=_span_of(meta),
                    node=name.value,
                )
            if isinstance(part, _Block):
                block = part
            elif isinstance(part, Property):
                properties.append(part)
            else:
                arguments.append(part)

        return Node(
            name=name.value,
            arguments=tuple(arguments),
            properties=tuple(properties),
            children=block.nodes if block is not None else (),
            type_annotation=annotation,
            span=_span_of(meta),
        )

    @v_args(meta=True)
    def prop(self, meta, children: list) -> Property:
        key, value = children
        return Property(name=key.value, value=value, span=_span_of(meta))

    def value(self, children: list) -> Value:
        annotation = None
        if isinstance(children[0], _Annotation):
            annotation = children[0].name
        item = children[-1]
        if isinstance(item, Value):
            return Value(item.value, item.span, annotation)
        if item.type == "NUMBER":
            return Value(_number(item.value), _token_span(item), annotation)
        return Value(_KEYWORDS[item.value], _token_span(item), annotation)

    def type_annotation(self, children: list) -> _Annotation:
        return _Annotation(children[0].value)

    def string(self, children: list) -> Value:
        tok: Token = children[0]
        span = _token_span(tok)
        raw = tok.value
        if tok.type == "IDENT":
            text = raw
        elif tok.type == "QUOTED":
            text = unescape(raw[1:-1], span)
        elif tok.type == "MULTILINE":
            text = unescape(dedent_multiline(raw[3:-3], span), span)
        elif tok.type == "RAW":
            text = raw[2:-2]
        else:
            text = dedent_multiline(raw[4:-4], span)
        return Value(text, span)


# ---------------------------------------------------------------------------
# Literal handling
# ---------------------------------------------------------------------------

_KEYWORDS: dict[str, object] = {
    "#true": True,
    "#false": False,
    "#null": None,
    "#inf": float("inf"),
    "#-inf": float("-inf"),
    "#nan": float("nan"),
}

_RADIX = {"x": 16, "o": 8, "b": 2}


def _number(text: str) -> int | float:
    clean = text.replace("_", "")
    body = clean.lstrip("+-")
    sign = -1 if clean.startswith("-") else 1
    if body[:1] == "0" and body[1:2] in _RADIX:
        return sign * int(body[2:], _RADIX[body[1]])
    if "." in body or "e" in body or "E" in body:
        return float(clean)
    return int(clean)


_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]{1,6}\}|\s+|.)", re.DOTALL)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "b": "\b",
    "f": "\f",
    "s": " ",
}


def unescape(body: str, span: Span | None = None) -> str:
    """Resolve KDL escapes in a quoted string body.

    ``\\`` followed by whitespace (newlines included) drops that whitespace.
    """

    def _sub(m: re.Match) -> str:
        esc = m.group(1)
        if esc.startswith("u{"):
            return chr(int(esc[2:-1], 16))
        if esc.isspace():
            return ""
        if esc in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[esc]
        raise ParseError(f"invalid escape '\\{esc}'", span=span)

    return _ESCAPE_RE.sub(_sub, body)


def dedent_multiline(body: str, span: Span | None = None) -> str:
    """Strip the closing line's indentation from every line of a multi-line string.

    Example::

        \"\"\"
            hello
              world
            \"\"\"
        → "hello\\n  world"
    """
    lines = body.replace("\r\n", "\n").split("\n")
    if len(lines) < 2 or lines[0].strip():
        raise ParseError("multi-line string must start with a newline", span=span)
    prefix = lines[-1]
    if prefix.strip():
        raise ParseError(
            "closing quotes of a multi-line string must be on their own line",
            span=span,
        )
    out: list[str] = []
    for line in lines[1:-1]:
        if not line.strip():
            out.append("")
        elif line.startswith(prefix):
            out.append(line[len(prefix):])
        else:
            raise ParseError("inconsistent indentation in multi-line string", span=span)
    return "\n".join(out)
