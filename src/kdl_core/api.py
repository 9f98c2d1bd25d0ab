"""One-call entry points: text or Document in, typed value out, and back."""

from __future__ import annotations

from typing import Any, TypeVar

from . import reader
from .config import DecodeConfig, EncodeConfig
from .deserialize import Decoder
from .document import Document
from .printer import print_document
from .serialize import Encoder

T = TypeVar("T")


def from_str(text: str, tp: type[T], config: DecodeConfig | None = None) -> T:
    """Parse *text* and decode it as *tp*.

    Usage::

        cfg = from_str('server "localhost" port=8080', Config)
    """
    return from_document(reader.parse(text), tp, config)


def from_document(document: Document, tp: type[T], config: DecodeConfig | None = None) -> T:
    return Decoder(config).decode_document(document, tp)


def to_document(value: Any, tp: Any = None, config: EncodeConfig | None = None) -> Document:
    return Encoder(config).encode_document(value, tp)


def to_string(value: Any, tp: Any = None, config: EncodeConfig | None = None) -> str:
    """Encode *value* and print it as KDL text."""
    config = config or EncodeConfig()
    return print_document(to_document(value, tp, config), indent=config.indent)
