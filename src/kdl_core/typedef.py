"""TypeDef, FieldDef and VariantDef descriptors for KDL Core."""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field
from enum import Enum, auto
from typing import Any, Callable


class Binding(Enum):
    NodeName = auto()    # the node's own name
    Argument = auto()    # one positional value
    Arguments = auto()   # all remaining positional values
    Property = auto()    # key=value
    Child = auto()       # first matching child node
    Children = auto()    # all matching child nodes
    Flatten = auto()     # nested type's fields on the same node


class MapKey(Enum):
    """Where a map-shaped ``Children`` field takes its keys from."""

    Name = auto()
    Argument = auto()


@dataclass(frozen=True, slots=True)
class FieldBinding:
    kind: Binding
    name: str | None = None  # property key / child tag; None = default or wildcard
    map_key: MapKey = MapKey.Name


@dataclass
class FieldDef:
    name: str                         # attribute name on the Python value
    binding: FieldBinding
    type: Any                         # annotated value type
    default: Any = MISSING
    default_factory: Callable[[], Any] | None = None

    @property
    def required(self) -> bool:
        return self.default is MISSING and self.default_factory is None

    def make_default(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    @property
    def key(self) -> str:
        """Property key or child tag this field is bound to."""
        return self.binding.name or self.name


@dataclass
class TypeDef:
    name: str                          # node name for values of this type
    cls: type
    fields: list[FieldDef]
    allow_extras: bool = False

    def field_named(self, name: str) -> FieldDef | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class Shape:
    """Minimal evidence a node must show to be read as one variant."""

    required_properties: frozenset[str] = frozenset()
    required_children: frozenset[str] = frozenset()
    min_arguments: int = 0
    max_arguments: int | None = 0  # None = unbounded

    def accepts_argument_count(self, count: int) -> bool:
        if count < self.min_arguments:
            return False
        return self.max_arguments is None or count <= self.max_arguments


@dataclass
class VariantDef:
    name: str
    typedef: TypeDef
    shape: Shape = field(default_factory=Shape)

    @property
    def cls(self) -> type:
        return self.typedef.cls


@dataclass
class EnumDef:
    name: str
    variants: list[VariantDef]

    def variant_for(self, value: object) -> VariantDef | None:
        """The variant whose class is exactly ``type(value)``."""
        for v in self.variants:
            if type(value) is v.cls:
                return v
        return None

    def variant_named(self, name: str) -> VariantDef | None:
        for v in self.variants:
            if v.name == name:
                return v
        return None
