"""KDL Core — typed decoding and encoding of KDL documents."""

from .api import from_document, from_str, to_document, to_string
from .config import DecodeConfig, EncodeConfig
from .deserialize import Decoder
from .document import Document, Node, Property, Span, Value
from .errors import (
    DecodeError,
    DuplicateKeyError,
    EncodeError,
    KDLCoreError,
    MissingArgumentError,
    MissingChildError,
    MissingPropertyError,
    NoMatchingVariantError,
    ParseError,
    RecursionDepthExceededError,
    SchemaError,
    TypeMismatchError,
    UnexpectedExtraFieldError,
    UnsupportedShapeError,
)
from .printer import print_document
from .reader import parse
from .schema import (
    argument,
    arguments,
    child,
    children,
    describe,
    describe_variants,
    flatten,
    node_name,
    options,
    prop,
)
from .serialize import Encoder
from .typedef import Binding, FieldDef, TypeDef, VariantDef
from .values import IntRange, Spanned, i8, i16, i32, i64, u8, u16, u32, u64

__all__ = [
    "from_str",
    "from_document",
    "to_string",
    "to_document",
    "parse",
    "print_document",
    "Decoder",
    "Encoder",
    "DecodeConfig",
    "EncodeConfig",
    "Document",
    "Node",
    "Property",
    "Span",
    "Value",
    "argument",
    "arguments",
    "child",
    "children",
    "flatten",
    "node_name",
    "prop",
    "options",
    "describe",
    "describe_variants",
    "Binding",
    "FieldDef",
    "TypeDef",
    "VariantDef",
    "Spanned",
    "IntRange",
    "u8",
    "u16",
    "u32",
    "u64",
    "i8",
    "i16",
    "i32",
    "i64",
    "KDLCoreError",
    "ParseError",
    "SchemaError",
    "DecodeError",
    "EncodeError",
    "MissingArgumentError",
    "MissingPropertyError",
    "MissingChildError",
    "DuplicateKeyError",
    "UnexpectedExtraFieldError",
    "TypeMismatchError",
    "NoMatchingVariantError",
    "RecursionDepthExceededError",
    "UnsupportedShapeError",
]
