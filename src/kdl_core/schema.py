"""Schema provider: derives TypeDef / VariantDef descriptors from dataclasses.

Fields declare how they map onto a node with the helpers below, used in place
of ``dataclasses.field``::

    @dataclass
    class Server:
        host: str = argument()
        port: u16 = prop()
        tls: Tls | None = child(default=None)

Enums are unions of dataclasses; member order is the variant priority::

    Source = HttpSource | GitSource
"""

from __future__ import annotations

import dataclasses
import logging
import typing
from dataclasses import MISSING, dataclass
from typing import Any, Callable, get_args, get_origin

from .errors import SchemaError
from .typedef import (
    Binding,
    EnumDef,
    FieldBinding,
    FieldDef,
    MapKey,
    Shape,
    TypeDef,
    VariantDef,
)
from .values import is_spanned, is_union, spanned_inner, split_optional

logger = logging.getLogger(__name__)

_METADATA_KEY = "kdl_core"
_OPTIONS_ATTR = "__kdl_options__"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _field(binding: FieldBinding, default: Any, default_factory: Any) -> Any:
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={_METADATA_KEY: binding},
    )


def node_name(*, default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    """Bind the field to the node's own name."""
    return _field(FieldBinding(Binding.NodeName), default, default_factory)


def argument(*, default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    """Bind the field to the next positional value."""
    return _field(FieldBinding(Binding.Argument), default, default_factory)


def arguments(*, default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    """Bind a list/tuple field to every remaining positional value."""
    return _field(FieldBinding(Binding.Arguments), default, default_factory)


def prop(
    name: str | None = None,
    *,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Bind the field to property *name* (defaults to the field name)."""
    return _field(FieldBinding(Binding.Property, name), default, default_factory)


def child(
    name: str | None = None,
    *,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Bind the field to the first child node called *name*."""
    return _field(FieldBinding(Binding.Child, name), default, default_factory)


def children(
    name: str | None = None,
    *,
    key: str = "name",
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Bind a collection field to all child nodes called *name* (all when None).

    For dict fields, *key* selects the map key: ``"name"`` (the child's node
    name) or ``"argument"`` (its first argument).
    """
    try:
        map_key = {"name": MapKey.Name, "argument": MapKey.Argument}[key]
    except KeyError:
        raise SchemaError(f"children key must be 'name' or 'argument', got {key!r}") from None
    return _field(FieldBinding(Binding.Children, name, map_key), default, default_factory)


def flatten(*, default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    """Merge a nested dataclass (or enum) into the enclosing node."""
    return _field(FieldBinding(Binding.Flatten), default, default_factory)


# ---------------------------------------------------------------------------
# Type options
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Options:
    name: str | None = None
    allow_extras: bool = False
    rename_all: str | None = None


def options(
    name: str | None = None,
    *,
    allow_extras: bool = False,
    rename_all: str | None = None,
) -> Callable[[type], type]:
    """Class decorator setting type-level options.

    - *name*: node / variant name for the type (default: class name)
    - *allow_extras*: ignore leftover arguments, properties and children
    - *rename_all*: naming rule for default property keys and child tags
    """
    if rename_all is not None and rename_all not in _RENAMERS:
        raise SchemaError(f"unknown rename_all rule {rename_all!r}")

    def decorate(cls: type) -> type:
        setattr(cls, _OPTIONS_ATTR, _Options(name, allow_extras, rename_all))
        _cache.pop(cls, None)
        return cls

    return decorate


def _options_of(cls: type) -> _Options:
    # vars(): options are not inherited by subclasses
    return vars(cls).get(_OPTIONS_ATTR) or _Options()


def _kebab(name: str) -> str:
    return name.replace("_", "-")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _pascal(name: str) -> str:
    return "".join(p[:1].upper() + p[1:] for p in name.split("_"))


_RENAMERS: dict[str, Callable[[str], str]] = {
    "snake_case": lambda n: n,
    "kebab-case": _kebab,
    "camelCase": _camel,
    "PascalCase": _pascal,
    "lowercase": str.lower,
    "UPPERCASE": str.upper,
}


# ---------------------------------------------------------------------------
# describe / describe_variants
# ---------------------------------------------------------------------------

_cache: dict[Any, Any] = {}


def is_struct(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def is_enum(tp: Any) -> bool:
    """True for a union of dataclasses (``None`` excluded)."""
    tp, _ = split_optional(tp)
    if not is_union(tp):
        return False
    return all(is_struct(a) for a in get_args(tp))


def describe(cls: type) -> TypeDef:
    """Build (once) the TypeDef of dataclass *cls*."""
    cached = _cache.get(cls)
    if cached is not None:
        return cached
    if not is_struct(cls):
        raise SchemaError(f"{cls!r} is not a dataclass")

    opts = _options_of(cls)
    rename = _RENAMERS[opts.rename_all] if opts.rename_all else None
    hints = _type_hints(cls)

    fields: list[FieldDef] = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        binding = f.metadata.get(_METADATA_KEY)
        if binding is None:
            raise SchemaError(
                f"field {cls.__name__}.{f.name} has no binding "
                "(use argument(), prop(), child(), ...)",
                field=f.name,
            )
        ftype = hints.get(f.name, f.type)
        if rename is not None and binding.name is None and (
            binding.kind is Binding.Property
            # untagged enum children are matched by variant name
            or (binding.kind is Binding.Child and not is_enum(ftype))
        ):
            binding = FieldBinding(binding.kind, rename(f.name), binding.map_key)
        fields.append(
            FieldDef(
                name=f.name,
                binding=binding,
                type=ftype,
                default=f.default,
                default_factory=None if f.default_factory is MISSING else f.default_factory,
            )
        )

    td = TypeDef(
        name=opts.name or cls.__name__,
        cls=cls,
        fields=fields,
        allow_extras=opts.allow_extras,
    )
    _check_fields(td)
    _cache[cls] = td
    logger.debug("described %s: %d fields", td.name, len(fields))
    return td


def describe_variants(tp: Any) -> EnumDef:
    """Build (once) the EnumDef of a union of dataclasses."""
    inner, _ = split_optional(tp)
    if not is_enum(inner):
        raise SchemaError(f"{tp!r} is not a union of dataclasses")
    # unions compare equal regardless of member order; key on the order
    key = get_args(inner)
    cached = _cache.get(key)
    if cached is not None:
        return cached

    variants: list[VariantDef] = []
    for member in get_args(inner):
        td = describe(member)
        variants.append(VariantDef(name=td.name, typedef=td, shape=shape_of(td)))
    names = [v.name for v in variants]
    if len(set(names)) != len(names):
        raise SchemaError(f"duplicate variant names in {names}")

    ed = EnumDef(name=" | ".join(names), variants=variants)
    _cache[key] = ed
    return ed


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except NameError as exc:
        unresolved = [
            f.name for f in dataclasses.fields(cls) if isinstance(f.type, str)
        ]
        if unresolved:
            raise SchemaError(
                f"cannot resolve annotations of {cls.__name__}: {exc}"
            ) from exc
        return {}


def _check_fields(td: TypeDef) -> None:
    seen_arguments = False
    seen_name = False
    for f in walk_fields(td):
        kind = f.binding.kind
        if kind is Binding.Arguments:
            if seen_arguments:
                raise SchemaError(
                    f"{td.name}: only one arguments() field is allowed", field=f.name
                )
            seen_arguments = True
        elif kind is Binding.Argument and seen_arguments:
            raise SchemaError(
                f"{td.name}: argument() field {f.name!r} follows an arguments() field",
                field=f.name,
            )
        elif kind is Binding.NodeName:
            if seen_name:
                raise SchemaError(
                    f"{td.name}: only one node_name() field is allowed", field=f.name
                )
            seen_name = True
        elif kind is Binding.Children and f.binding.map_key is MapKey.Name:
            _check_name_key(td, f)


def _check_name_key(td: TypeDef, f: FieldDef) -> None:
    """Node names are strings, so a map keyed by name needs string keys."""
    ctype, _ = split_optional(f.type)
    if get_origin(ctype) is not dict:
        return
    key_tp = get_args(ctype)[0]
    if is_spanned(key_tp):
        key_tp = spanned_inner(key_tp)
    if key_tp not in (str, Any):
        raise SchemaError(
            f"{td.name}: map field {f.name!r} is keyed by node name, "
            f"so its keys must be str, not {key_tp!r}; use children(key=\"argument\")",
            field=f.name,
        )


def walk_fields(td: TypeDef):
    """Fields of *td*, with flattened struct fields spliced in place."""
    for f in td.fields:
        if f.binding.kind is Binding.Flatten:
            inner, _ = split_optional(f.type)
            if is_struct(inner):
                yield from walk_fields(describe(inner))
                continue
        yield f


# ---------------------------------------------------------------------------
# Shape signatures
# ---------------------------------------------------------------------------

def shape_of(td: TypeDef) -> Shape:
    """Minimal shape a node needs to be read as *td*."""
    props: set[str] = set()
    kids: set[str] = set()
    state = {"position": 0, "min": 0, "max": 0}
    _collect_shape(td, True, props, kids, state)
    return Shape(
        required_properties=frozenset(props),
        required_children=frozenset(kids),
        min_arguments=state["min"],
        max_arguments=state["max"],
    )


def _collect_shape(
    td: TypeDef,
    required: bool,
    props: set[str],
    kids: set[str],
    state: dict,
) -> None:
    for f in td.fields:
        kind = f.binding.kind
        needed = required and f.required
        if kind is Binding.Argument:
            state["position"] += 1
            if state["max"] is not None:
                state["max"] += 1
            if needed:
                state["min"] = state["position"]
        elif kind is Binding.Arguments:
            state["max"] = None
        elif kind is Binding.Property:
            if needed:
                props.add(f.key)
        elif kind is Binding.Child:
            # enum children without a tag match on variant names, no fixed tag
            if needed and (f.binding.name is not None or not is_enum(f.type)):
                kids.add(f.key)
        elif kind is Binding.Flatten:
            inner, nullable = split_optional(f.type)
            if is_struct(inner):
                _collect_shape(describe(inner), needed and not nullable, props, kids, state)
            else:
                # a flattened enum may take any number of arguments
                state["max"] = None


def root_violation(td: TypeDef) -> FieldDef | None:
    """First field that cannot bind on the document root (it has no node of its own)."""
    for f in walk_fields(td):
        if f.binding.kind not in (Binding.Child, Binding.Children, Binding.Flatten):
            return f
    return None


__all__ = [
    "argument",
    "arguments",
    "child",
    "children",
    "describe",
    "describe_variants",
    "flatten",
    "is_enum",
    "is_struct",
    "node_name",
    "options",
    "prop",
    "root_violation",
    "shape_of",
    "walk_fields",
]

