"""Error taxonomy for KDL Core.

Errors are plain data: a message, the span of the offending value or node
(or of the enclosing node when something is absent), and the node and field
names when known. Rendering them against the source text is up to the caller.

Hierarchy::

    KDLCoreError
    ├── ParseError
    ├── SchemaError
    ├── DecodeError
    │   ├── MissingArgumentError
    │   ├── MissingPropertyError
    │   ├── MissingChildError
    │   ├── DuplicateKeyError
    │   ├── UnexpectedExtraFieldError
    │   ├── TypeMismatchError
    │   ├── NoMatchingVariantError
    │   └── RecursionDepthExceededError (also an EncodeError)
    └── EncodeError
        └── UnsupportedShapeError
"""

from __future__ import annotations

from .document import Span


class KDLCoreError(Exception):
    """Base class of every error raised by kdl_core."""

    def __init__(
        self,
        message: str,
        span: Span | None = None,
        node: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.span = span
        self.node = node
        self.field = field

    def __str__(self) -> str:
        where = f" at {self.span}" if self.span is not None else ""
        return f"{self.message}{where}"


class ParseError(KDLCoreError):
    """The text is not a valid document."""


class SchemaError(KDLCoreError):
    """A type cannot be described as a set of field bindings."""


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------

class DecodeError(KDLCoreError):
    """A document does not match the requested type."""


class MissingArgumentError(DecodeError):
    pass


class MissingPropertyError(DecodeError):
    pass


class MissingChildError(DecodeError):
    pass


class DuplicateKeyError(DecodeError):
    """Two properties, map entries or set elements share a key."""

    def __init__(self, message: str, key: object, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.key = key


class UnexpectedExtraFieldError(DecodeError):
    """An argument, property or child was left unconsumed."""


class TypeMismatchError(DecodeError):
    def __init__(self, expected: str, found: str, **kwargs) -> None:
        super().__init__(f"expected {expected}, found {found}", **kwargs)
        self.expected = expected
        self.found = found


class NoMatchingVariantError(DecodeError):
    """No enum variant fits the node.

    ``candidates`` holds ``(variant name, reason)`` pairs in declared order.
    """

    def __init__(self, enum_name: str, candidates: list[tuple[str, str]], **kwargs) -> None:
        reasons = "; ".join(f"{name}: {reason}" for name, reason in candidates)
        super().__init__(f"no variant of {enum_name} matches ({reasons})", **kwargs)
        self.enum_name = enum_name
        self.candidates = candidates


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------

class EncodeError(KDLCoreError):
    """A value cannot be written as a document."""


class UnsupportedShapeError(EncodeError):
    pass


class RecursionDepthExceededError(DecodeError, EncodeError):
    """Raised by both directions when nesting passes the configured limit."""

    def __init__(self, limit: int, **kwargs) -> None:
        super().__init__(f"nesting deeper than {limit} levels", **kwargs)
        self.limit = limit
