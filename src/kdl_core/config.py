"""DecodeConfig and EncodeConfig: immutable engine settings."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_DEPTH = 64


@dataclass(frozen=True, slots=True)
class DecodeConfig:
    """Settings for one or many decode calls.

    Attributes:
        max_depth: Deepest node nesting accepted before
            ``RecursionDepthExceededError`` (>= 1).
        allow_extras: When True, leftover arguments, properties and children
            are ignored for every type, not only types declared with
            ``allow_extras``.  Default False.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    allow_extras: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            msg = f"max_depth must be >= 1, got {self.max_depth}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class EncodeConfig:
    """Settings for encoding and printing.

    Attributes:
        max_depth: Deepest value nesting accepted (>= 1).
        indent: Spaces per nesting level in printed output (>= 0).
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    indent: int = 4

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            msg = f"max_depth must be >= 1, got {self.max_depth}"
            raise ValueError(msg)
        if self.indent < 0:
            msg = f"indent must be >= 0, got {self.indent}"
            raise ValueError(msg)
