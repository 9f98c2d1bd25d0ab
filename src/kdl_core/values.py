"""Value helpers for KDL Core: spanned leaves, integer ranges and scalar coercion."""

from __future__ import annotations

import enum
import types
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Annotated, Any, Generic, Literal, TypeVar, Union, get_args, get_origin

from .document import Scalar, Span, Value, scalar_kind
from .errors import SchemaError, TypeMismatchError, UnsupportedShapeError

T = TypeVar("T")

NoneType = type(None)


@dataclass(frozen=True)
class Spanned(Generic[T]):
    """A decoded leaf together with its source span.

    Equality and hashing look at ``value`` only, so a round-tripped value
    compares equal to the original even though its span differs.
    """

    value: T
    span: Span | None = field(default=None, compare=False)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class IntRange:
    """Inclusive bounds for an ``Annotated[int, IntRange(lo, hi)]`` field."""

    min: int
    max: int

    def __contains__(self, n: int) -> bool:
        return self.min <= n <= self.max


u8 = Annotated[int, IntRange(0, 2**8 - 1)]
u16 = Annotated[int, IntRange(0, 2**16 - 1)]
u32 = Annotated[int, IntRange(0, 2**32 - 1)]
u64 = Annotated[int, IntRange(0, 2**64 - 1)]
i8 = Annotated[int, IntRange(-(2**7), 2**7 - 1)]
i16 = Annotated[int, IntRange(-(2**15), 2**15 - 1)]
i32 = Annotated[int, IntRange(-(2**31), 2**31 - 1)]
i64 = Annotated[int, IntRange(-(2**63), 2**63 - 1)]


# ---------------------------------------------------------------------------
# Annotation inspection
# ---------------------------------------------------------------------------

def is_union(tp: Any) -> bool:
    return get_origin(tp) in (Union, types.UnionType)


def split_optional(tp: Any) -> tuple[Any, bool]:
    """Return ``(inner, nullable)`` for ``X | None``; other types pass through."""
    if not is_union(tp):
        return tp, False
    args = [a for a in get_args(tp) if a is not NoneType]
    if len(args) == len(get_args(tp)):
        return tp, False
    if len(args) == 1:
        return args[0], True
    return Union[tuple(args)], True


def is_spanned(tp: Any) -> bool:
    return tp is Spanned or get_origin(tp) is Spanned


def spanned_inner(tp: Any) -> Any:
    args = get_args(tp)
    return args[0] if args else Any


def type_label(tp: Any) -> str:
    """Human name of an expected type, as used in mismatch errors."""
    if tp is Any or tp is object:
        return "any value"
    if get_origin(tp) is Annotated:
        base, *meta = get_args(tp)
        for m in meta:
            if isinstance(m, IntRange):
                return f"integer in {m.min}..{m.max}"
        return type_label(base)
    if is_union(tp):
        return " or ".join(type_label(a) for a in get_args(tp))
    if get_origin(tp) is Literal:
        return "one of " + ", ".join(repr(a) for a in get_args(tp))
    if is_spanned(tp):
        return type_label(spanned_inner(tp))
    if isinstance(tp, type):
        if issubclass(tp, enum.Enum):
            return "one of " + ", ".join(repr(m.value) for m in tp)
        if issubclass(tp, PurePath):
            return "path string"
    return _LABELS.get(tp, getattr(tp, "__name__", repr(tp)))


_LABELS: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "float",
    bool: "boolean",
    NoneType: "null",
}


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

class _Rejected(Exception):
    pass


def coerce_scalar(
    value: Value,
    tp: Any,
    *,
    node: str | None = None,
    field: str | None = None,
) -> Any:
    """Convert a document Value to the Python type *tp*.

    Nothing is coerced across kinds except integers into float fields.
    Raises ``TypeMismatchError`` carrying the value's span.
    """
    try:
        return _coerce(value.value, tp)
    except _Rejected:
        raise TypeMismatchError(
            type_label(tp),
            _found_label(value.value),
            span=value.span,
            node=node,
            field=field,
        ) from None
    except SchemaError as exc:
        raise SchemaError(exc.message, span=value.span, node=node, field=field) from None


def _found_label(raw: Scalar) -> str:
    kind = scalar_kind(raw)
    if kind == "null":
        return "null"
    return f"{kind} {raw!r}"


def _coerce(raw: Scalar, tp: Any) -> Any:
    if tp is Any or tp is object:
        return raw

    if is_spanned(tp):
        raise SchemaError("Spanned is only supported as the outermost field type")

    origin = get_origin(tp)
    if origin is Annotated:
        base, *meta = get_args(tp)
        result = _coerce(raw, base)
        for m in meta:
            if isinstance(m, IntRange) and result not in m:
                raise _Rejected
        return result

    if is_union(tp):
        if raw is None and NoneType in get_args(tp):
            return None
        for option in get_args(tp):
            if option is NoneType:
                continue
            try:
                return _coerce(raw, option)
            except _Rejected:
                continue
        raise _Rejected

    if origin is Literal:
        for option in get_args(tp):
            if raw == option and type(raw) is type(option):
                return option
        raise _Rejected

    if tp is NoneType:
        if raw is None:
            return None
        raise _Rejected

    # CRITICAL: bool checked before int, bool subclasses int
    if tp is bool:
        if isinstance(raw, bool):
            return raw
        raise _Rejected
    if isinstance(raw, bool):
        raise _Rejected

    if tp is int:
        if isinstance(raw, int):
            return raw
        raise _Rejected
    if tp is float:
        if isinstance(raw, (int, float)):
            return float(raw)
        raise _Rejected
    if tp is str:
        if isinstance(raw, str):
            return raw
        raise _Rejected

    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        try:
            return tp(raw)
        except ValueError:
            raise _Rejected from None
    if isinstance(tp, type) and issubclass(tp, PurePath):
        if isinstance(raw, str):
            return tp(raw)
        raise _Rejected

    raise SchemaError(f"unsupported scalar type {tp!r}")


def encode_scalar(obj: Any, *, node: str | None = None, field: str | None = None) -> Scalar:
    """Convert a Python leaf to a document scalar."""
    if isinstance(obj, Spanned):
        obj = obj.value
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, enum.Enum):
        return encode_scalar(obj.value, node=node, field=field)
    if isinstance(obj, PurePath):
        return obj.as_posix()
    raise UnsupportedShapeError(
        f"cannot write {type(obj).__name__} as a scalar value",
        node=node,
        field=field,
    )


def is_scalar_type(tp: Any) -> bool:
    """True when *tp* decodes from a single document value."""
    tp, _ = split_optional(tp)
    if is_spanned(tp):
        return is_scalar_type(spanned_inner(tp))
    if tp is Any or tp is object:
        return True
    origin = get_origin(tp)
    if origin is Annotated:
        return is_scalar_type(get_args(tp)[0])
    if origin is Literal:
        return True
    if is_union(tp):
        return all(is_scalar_type(a) for a in get_args(tp))
    if tp in _LABELS:
        return True
    return isinstance(tp, type) and issubclass(tp, (enum.Enum, PurePath))
