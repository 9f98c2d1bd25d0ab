"""Encoder: typed value → Document, the mirror image of the decoder.

Field order drives emission order, and sets are written sorted, so encoding
the same value twice yields identical documents.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, get_args, get_origin

from .config import EncodeConfig
from .cursor import NodeBuilder
from .document import Document, Node, Value
from .errors import RecursionDepthExceededError, UnsupportedShapeError
from .schema import describe, describe_variants, is_enum, is_struct, root_violation
from .typedef import Binding, FieldDef, MapKey, TypeDef
from .values import (
    Spanned,
    encode_scalar,
    is_scalar_type,
    is_spanned,
    spanned_inner,
    split_optional,
)

logger = logging.getLogger(__name__)

_COLLECTIONS = (list, tuple, set, frozenset, dict)


class Encoder:
    def __init__(self, config: EncodeConfig | None = None) -> None:
        self.config = config or EncodeConfig()

    # -- Entry points ---------------------------------------------------

    def encode_document(self, value: Any, tp: Any = None) -> Document:
        """Encode *value*; its child-bound fields become the top-level nodes."""
        tp = tp if tp is not None else type(value)
        if not is_struct(tp):
            raise UnsupportedShapeError(f"top-level value must be a dataclass, got {tp!r}")
        td = describe(tp)
        bad = root_violation(td)
        if bad is not None:
            raise UnsupportedShapeError(
                f"top-level type {td.name} may only bind child nodes, "
                f"field {bad.name!r} is a {bad.binding.kind.name} binding",
                field=bad.name,
            )
        logger.debug("encoding %s as a document", td.name)
        builder = NodeBuilder()
        self._write_fields(builder, value, td, 0)
        return Document(nodes=tuple(builder.children))

    def encode_node(self, value: Any, tp: Any = None, name: str | None = None) -> Node:
        """Encode *value* as one node called *name* (default: its type's name)."""
        tp = tp if tp is not None else type(value)
        return self._encode_value(value, tp, 1, name=name, fallback="-")

    # -- Values ---------------------------------------------------------

    def _encode_value(
        self,
        obj: Any,
        tp: Any,
        depth: int,
        *,
        name: str | None,
        fallback: str,
        key: Value | None = None,
    ) -> Node:
        if depth > self.config.max_depth:
            raise RecursionDepthExceededError(self.config.max_depth, node=name or fallback)

        inner, _ = split_optional(tp)
        if is_spanned(inner):
            inner = spanned_inner(inner)
        if isinstance(obj, Spanned):
            obj = obj.value

        builder = NodeBuilder()
        if key is not None:
            builder.push_argument(key)

        if obj is None:
            builder.push_argument(Value(None))
            return builder.build(name or fallback)

        if is_enum(inner):
            ed = describe_variants(inner)
            variant = ed.variant_for(obj)
            if variant is None:
                raise UnsupportedShapeError(
                    f"{type(obj).__name__} is not a variant of {ed.name}",
                    node=name,
                )
            if name is not None and name != variant.name:
                # the node name is taken; keep the variant recoverable
                builder.type_annotation = variant.name
            self._write_fields(builder, obj, variant.typedef, depth)
            return builder.build(name or variant.name)

        if is_struct(inner):
            if not isinstance(obj, inner):
                raise UnsupportedShapeError(
                    f"expected {inner.__name__}, got {type(obj).__name__}",
                    node=name,
                )
            td = describe(inner)
            self._write_fields(builder, obj, td, depth)
            return builder.build(name or td.name)

        if is_scalar_type(inner):
            builder.push_argument(Value(encode_scalar(obj, node=name)))
            return builder.build(name or fallback)

        raise UnsupportedShapeError(f"cannot write {type(obj).__name__} as a node", node=name)

    # -- Fields ---------------------------------------------------------

    def _write_fields(self, builder: NodeBuilder, obj: Any, td: TypeDef, depth: int) -> None:
        for f in td.fields:
            self._write_field(builder, f, getattr(obj, f.name), depth)

    def _write_field(self, builder: NodeBuilder, f: FieldDef, value: Any, depth: int) -> None:
        kind = f.binding.kind
        omit = value is None and not f.required

        if kind is Binding.NodeName:
            builder.name = str(encode_scalar(value, field=f.name))

        elif kind is Binding.Argument:
            if not omit:
                builder.push_argument(Value(encode_scalar(value, field=f.name)))

        elif kind is Binding.Arguments:
            for item in value or ():
                builder.push_argument(Value(encode_scalar(item, field=f.name)))

        elif kind is Binding.Property:
            if isinstance(value, _COLLECTIONS):
                raise UnsupportedShapeError(
                    f"property {f.key!r} cannot hold a {type(value).__name__}",
                    field=f.name,
                )
            if not omit:
                builder.push_property(f.key, Value(encode_scalar(value, field=f.name)))

        elif kind is Binding.Child:
            if omit:
                return
            inner, _ = split_optional(f.type)
            by_variant = f.binding.name is None and is_enum(inner)
            name = None if by_variant else f.key
            builder.push_child(
                self._encode_value(value, f.type, depth + 1, name=name, fallback=f.name)
            )

        elif kind is Binding.Children:
            if omit:
                return
            for node in self._encode_collection(value, f, depth + 1):
                builder.push_child(node)

        elif kind is Binding.Flatten:
            if omit:
                return
            self._write_flattened(builder, f, value, depth)

    def _write_flattened(self, builder: NodeBuilder, f: FieldDef, value: Any, depth: int) -> None:
        inner, _ = split_optional(f.type)
        if is_enum(inner):
            ed = describe_variants(inner)
            variant = ed.variant_for(value)
            if variant is None:
                raise UnsupportedShapeError(
                    f"{type(value).__name__} is not a variant of {ed.name}",
                    field=f.name,
                )
            self._write_fields(builder, value, variant.typedef, depth)
        elif is_struct(inner):
            self._write_fields(builder, value, describe(inner), depth)
        else:
            raise UnsupportedShapeError(
                f"flatten() field {f.name!r} must be a dataclass or a union of dataclasses",
                field=f.name,
            )

    def _encode_collection(self, value: Any, f: FieldDef, depth: int) -> list[Node]:
        ctype, _ = split_optional(f.type)
        args = get_args(ctype)
        tag = f.binding.name

        if isinstance(value, Mapping):
            val_tp = args[1] if len(args) == 2 else Any
            nodes = []
            for k, item in value.items():
                key = encode_scalar(k, field=f.name)
                if f.binding.map_key is MapKey.Argument:
                    nodes.append(
                        self._encode_value(
                            item, val_tp, depth, name=tag, fallback=f.name, key=Value(key)
                        )
                    )
                else:
                    nodes.append(
                        self._encode_value(item, val_tp, depth, name=str(key), fallback=f.name)
                    )
            return nodes

        elem = args[0] if args else Any
        if isinstance(value, (set, frozenset)):
            items = _sorted_members(value)
        elif isinstance(value, (list, tuple)):
            items = list(value)
        else:
            raise UnsupportedShapeError(
                f"children() field {f.name!r} holds a {type(value).__name__}",
                field=f.name,
            )
        return [
            self._encode_value(item, elem, depth, name=tag, fallback=f.name)
            for item in items
        ]


def _sorted_members(members: set | frozenset) -> list:
    try:
        return sorted(members)
    except TypeError:
        # mixed or unorderable elements
        return sorted(members, key=repr)
