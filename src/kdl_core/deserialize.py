"""Decoder: Document → typed value, driven by TypeDef field bindings."""

from __future__ import annotations

import logging
from typing import Any, get_args, get_origin

from .config import DecodeConfig
from .cursor import BindingCursor
from .document import Document, Node, Value
from .errors import (
    DuplicateKeyError,
    MissingArgumentError,
    MissingChildError,
    MissingPropertyError,
    RecursionDepthExceededError,
    SchemaError,
    UnexpectedExtraFieldError,
)
from .printer import format_value
from .schema import (
    describe,
    describe_variants,
    is_enum,
    is_struct,
    root_violation,
    walk_fields,
)
from .solver import select
from .typedef import Binding, FieldDef, MapKey, TypeDef
from .values import (
    Spanned,
    coerce_scalar,
    is_scalar_type,
    is_spanned,
    spanned_inner,
    split_optional,
)

logger = logging.getLogger(__name__)

_SEQUENCES = (list, tuple)
_SETS = (set, frozenset)


class Decoder:
    """Recursive-descent decoder.

    Usage::

        decoder = Decoder(DecodeConfig(max_depth=32))
        config = decoder.decode_document(reader.parse(text), Config)

    Errors are raised on the first problem found; nothing is returned
    partially.
    """

    def __init__(self, config: DecodeConfig | None = None) -> None:
        self.config = config or DecodeConfig()

    # -- Entry points ---------------------------------------------------

    def decode_document(self, document: Document, tp: type) -> Any:
        """Decode a whole document; *tp* binds the top-level nodes as children."""
        if not is_struct(tp):
            raise SchemaError(f"top-level type must be a dataclass, got {tp!r}")
        td = describe(tp)
        bad = root_violation(td)
        if bad is not None:
            raise SchemaError(
                f"top-level type {td.name} may only bind child nodes, "
                f"field {bad.name!r} is a {bad.binding.kind.name} binding",
                field=bad.name,
            )
        logger.debug("decoding document into %s", td.name)
        return self._decode_struct(document.as_node(), td, 0)

    def decode_node(self, node: Node, tp: Any) -> Any:
        """Decode a single node as a value of *tp* (struct, enum or scalar)."""
        return self._decode_value(node, tp, 1, match_name=True)

    # -- Node-level decoding --------------------------------------------

    def _decode_value(
        self,
        node: Node,
        tp: Any,
        depth: int,
        *,
        match_name: bool,
        argument_index: int = 0,
        field: str | None = None,
    ) -> Any:
        inner, nullable = split_optional(tp)
        if nullable and _is_null_node(node, argument_index):
            return None
        if is_spanned(inner):
            value = self._decode_value(
                node,
                spanned_inner(inner),
                depth,
                match_name=match_name,
                argument_index=argument_index,
                field=field,
            )
            return Spanned(value, node.span)
        if is_struct(inner):
            return self._decode_struct(node, describe(inner), depth, argument_index)
        if is_enum(inner):
            self._check_depth(node, depth)
            _check_duplicate_properties(node)
            ed = describe_variants(inner)
            cursor = BindingCursor(node, argument_index)
            variant = select(
                node,
                ed.variants,
                cursor,
                match_name=match_name,
                enum_name=ed.name,
            )
            return self._decode_struct(node, variant.typedef, depth, argument_index)
        if is_scalar_type(inner):
            return self._decode_scalar_node(node, tp, depth, argument_index, field)
        raise SchemaError(f"cannot decode a node as {tp!r}", span=node.span, node=node.name, field=field)

    def _decode_struct(
        self,
        node: Node,
        td: TypeDef,
        depth: int,
        argument_index: int = 0,
    ) -> Any:
        self._check_depth(node, depth)
        _check_duplicate_properties(node)
        cursor = BindingCursor(node, argument_index)
        kwargs = self._bind_fields(cursor, td, depth)
        if not (td.allow_extras or self.config.allow_extras):
            _check_leftovers(cursor)
        return td.cls(**kwargs)

    def _decode_scalar_node(
        self,
        node: Node,
        tp: Any,
        depth: int,
        argument_index: int,
        field: str | None,
    ) -> Any:
        """A scalar written as a node: ``timeout 30``."""
        self._check_depth(node, depth)
        _check_duplicate_properties(node)
        cursor = BindingCursor(node, argument_index)
        value = cursor.take_argument()
        if value is None:
            raise MissingArgumentError(
                f"node {node.name!r} needs a value argument",
                span=node.span,
                node=node.name,
                field=field,
            )
        result = self._decode_leaf(value, tp, node, field)
        if not self.config.allow_extras:
            _check_leftovers(cursor)
        return result

    def _check_depth(self, node: Node, depth: int) -> None:
        if depth > self.config.max_depth:
            raise RecursionDepthExceededError(
                self.config.max_depth, span=node.span, node=node.name
            )

    # -- Field binding --------------------------------------------------

    def _bind_fields(self, cursor: BindingCursor, td: TypeDef, depth: int) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for f in td.fields:
            kwargs[f.name] = self._bind_field(cursor, f, depth)
        return kwargs

    def _bind_field(self, cursor: BindingCursor, f: FieldDef, depth: int) -> Any:
        node = cursor.node
        kind = f.binding.kind

        if kind is Binding.NodeName:
            return self._decode_leaf(Value(node.name, node.span), f.type, node, f.name)

        if kind is Binding.Argument:
            value = cursor.take_argument()
            if value is None:
                if f.required:
                    raise MissingArgumentError(
                        f"missing argument {f.name!r}",
                        span=node.span,
                        node=node.name,
                        field=f.name,
                    )
                return f.make_default()
            return self._decode_leaf(value, f.type, node, f.name)

        if kind is Binding.Arguments:
            values = cursor.take_remaining_arguments()
            return self._decode_arguments(values, f, node)

        if kind is Binding.Property:
            prop = cursor.take_property(f.key)
            if prop is None:
                if f.required:
                    raise MissingPropertyError(
                        f"missing property {f.key!r}",
                        span=node.span,
                        node=node.name,
                        field=f.name,
                    )
                return f.make_default()
            return self._decode_leaf(prop.value, f.type, node, f.name)

        if kind is Binding.Child:
            inner, nullable = split_optional(f.type)
            by_variant = f.binding.name is None and is_enum(inner)
            tags = _child_tags(f)
            found = cursor.take_child(tags)
            if found is None and by_variant and nullable:
                # a None enum value is written as `<field> #null`
                found = cursor.take_child({f.key})
            if found is None:
                if f.required:
                    raise MissingChildError(
                        f"missing child node {' or '.join(sorted(tags))!r}",
                        span=node.span,
                        node=node.name,
                        field=f.name,
                    )
                return f.make_default()
            return self._decode_value(
                found, f.type, depth + 1, match_name=by_variant, field=f.name
            )

        if kind is Binding.Children:
            tags = {f.binding.name} if f.binding.name is not None else None
            found = cursor.take_children(tags)
            if not found and not f.required:
                return f.make_default()
            return self._collect_children(found, f, depth + 1)

        if kind is Binding.Flatten:
            return self._decode_flattened(cursor, f, depth)

        raise SchemaError(f"unknown binding {kind!r}", field=f.name)

    def _decode_flattened(self, cursor: BindingCursor, f: FieldDef, depth: int) -> Any:
        """Bind a flattened type over the parent's cursor.

        An optional flattened field is only read when the node still carries
        at least one entry the nested type could take; otherwise it falls
        back to its default and consumes nothing.
        """
        inner, _ = split_optional(f.type)
        if not f.required:
            if is_struct(inner):
                typedefs = [describe(inner)]
            elif is_enum(inner):
                typedefs = [v.typedef for v in describe_variants(inner).variants]
            else:
                typedefs = []
            if typedefs and not any(_mentions(cursor, td) for td in typedefs):
                logger.debug("flattened field %r absent, using its default", f.name)
                return f.make_default()
        if is_struct(inner):
            td = describe(inner)
            return td.cls(**self._bind_fields(cursor, td, depth))
        if is_enum(inner):
            ed = describe_variants(inner)
            variant = select(cursor.node, ed.variants, cursor, enum_name=ed.name)
            td = variant.typedef
            return td.cls(**self._bind_fields(cursor, td, depth))
        raise SchemaError(
            f"flatten() field {f.name!r} must be a dataclass or a union of dataclasses",
            field=f.name,
        )

    # -- Leaves ---------------------------------------------------------

    def _decode_leaf(self, value: Value, tp: Any, node: Node, field: str | None) -> Any:
        inner, nullable = split_optional(tp)
        if nullable and value.value is None:
            return None
        if is_spanned(inner):
            result = self._decode_leaf(value, spanned_inner(inner), node, field)
            return Spanned(result, value.span)
        return coerce_scalar(value, inner, node=node.name, field=field)

    def _decode_arguments(self, values: list[Value], f: FieldDef, node: Node) -> Any:
        ctype, _ = split_optional(f.type)
        origin = get_origin(ctype) or ctype
        if origin not in _SEQUENCES:
            raise SchemaError(
                f"arguments() field {f.name!r} must be a list or tuple",
                node=node.name,
                field=f.name,
            )
        args = get_args(ctype)
        elem = args[0] if args else Any
        items = [self._decode_leaf(v, elem, node, f.name) for v in values]
        return tuple(items) if origin is tuple else items

    # -- Collections ----------------------------------------------------

    def _collect_children(self, nodes: list[Node], f: FieldDef, depth: int) -> Any:
        ctype, _ = split_optional(f.type)
        origin = get_origin(ctype) or ctype
        args = get_args(ctype)

        if origin in _SEQUENCES:
            elem = args[0] if args else Any
            items = [
                self._decode_value(n, elem, depth, match_name=True, field=f.name)
                for n in nodes
            ]
            return tuple(items) if origin is tuple else items

        if origin in _SETS:
            elem = args[0] if args else Any
            seen: list[Any] = []
            members: set[Any] = set()
            for n in nodes:
                item = self._decode_value(n, elem, depth, match_name=True, field=f.name)
                if item in members:
                    raise DuplicateKeyError(
                        f"duplicate element {item!r} in {f.name!r}",
                        key=item,
                        span=n.span,
                        node=n.name,
                        field=f.name,
                    )
                members.add(item)
                seen.append(item)
            return origin(seen)

        if origin is dict:
            key_tp, val_tp = args if args else (str, Any)
            return self._collect_map(nodes, f, key_tp, val_tp, depth)

        raise SchemaError(
            f"children() field {f.name!r} must be a list, tuple, set, frozenset or dict",
            field=f.name,
        )

    def _collect_map(
        self,
        nodes: list[Node],
        f: FieldDef,
        key_tp: Any,
        val_tp: Any,
        depth: int,
    ) -> dict[Any, Any]:
        result: dict[Any, Any] = {}
        for n in nodes:
            if f.binding.map_key is MapKey.Argument:
                if not n.arguments:
                    raise MissingArgumentError(
                        f"node {n.name!r} needs a key argument",
                        span=n.span,
                        node=n.name,
                        field=f.name,
                    )
                key_value = n.arguments[0]
                start = 1
            else:
                key_value = Value(n.name, n.span)
                start = 0
            key = self._decode_leaf(key_value, key_tp, n, f.name)
            if key in result:
                raise DuplicateKeyError(
                    f"duplicate key {key!r} in {f.name!r}",
                    key=key,
                    span=key_value.span,
                    node=n.name,
                    field=f.name,
                )
            result[key] = self._decode_value(
                n, val_tp, depth, match_name=False, argument_index=start, field=f.name
            )
        return result


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def _is_null_node(node: Node, argument_index: int) -> bool:
    """``name #null``: how an absent optional child is written."""
    rest = node.arguments[argument_index:]
    return (
        len(rest) == 1
        and rest[0].value is None
        and not node.properties
        and not node.children
    )


def _child_tags(f: FieldDef) -> set[str]:
    """Child names a ``child()`` field matches: its tag, or its variant names."""
    inner, _ = split_optional(f.type)
    if f.binding.name is None and is_enum(inner):
        return {v.name for v in describe_variants(inner).variants}
    return {f.key}


def _mentions(cursor: BindingCursor, td: TypeDef) -> bool:
    """Whether anything still on the cursor could bind to a field of *td*."""
    for f in walk_fields(td):
        kind = f.binding.kind
        if kind in (Binding.Argument, Binding.Arguments):
            if cursor.remaining_argument_count():
                return True
        elif kind is Binding.Property:
            if cursor.has_property(f.key):
                return True
        elif kind is Binding.Child:
            if any(cursor.has_child(tag) for tag in _child_tags(f)):
                return True
        elif kind is Binding.Children:
            if f.binding.name is None:
                if cursor.leftover_children():
                    return True
            elif cursor.has_child(f.binding.name):
                return True
        elif kind is Binding.Flatten:
            inner, _ = split_optional(f.type)
            if is_enum(inner) and any(
                _mentions(cursor, v.typedef) for v in describe_variants(inner).variants
            ):
                return True
    return False


def _check_duplicate_properties(node: Node) -> None:
    seen: set[str] = set()
    for prop in node.properties:
        if prop.name in seen:
            raise DuplicateKeyError(
                f"duplicate property {prop.name!r}",
                key=prop.name,
                span=prop.span,
                node=node.name,
            )
        seen.add(prop.name)


def _check_leftovers(cursor: BindingCursor) -> None:
    node = cursor.node
    for value in cursor.leftover_arguments():
        raise UnexpectedExtraFieldError(
            f"unexpected argument {format_value(value)}",
            span=value.span,
            node=node.name,
        )
    for prop in cursor.leftover_properties():
        raise UnexpectedExtraFieldError(
            f"unexpected property {prop.name!r}",
            span=prop.span,
            node=node.name,
            field=prop.name,
        )
    for child in cursor.leftover_children():
        raise UnexpectedExtraFieldError(
            f"unexpected child node {child.name!r}",
            span=child.span,
            node=node.name,
        )
