"""Variant solver: picks the enum variant a node represents.

Candidates are tried strictly in declared order and the first eligible one
is committed to.  There is no scoring and no backtracking: if the committed
variant later fails to bind, that error is what the caller sees.

Explicit evidence comes first: a type annotation naming a variant
(``(Git)source ...``) selects it, and so does a node name equal to a variant
name when the whole node is the enum value (``match_name=True``).
"""

from __future__ import annotations

import logging
from typing import Sequence

from .cursor import BindingCursor
from .document import Node
from .errors import NoMatchingVariantError
from .typedef import Shape, VariantDef

logger = logging.getLogger(__name__)


def select(
    node: Node,
    variants: Sequence[VariantDef],
    cursor: BindingCursor | None = None,
    *,
    match_name: bool = False,
    enum_name: str = "enum",
) -> VariantDef:
    """Return the variant *node* is read as, or raise ``NoMatchingVariantError``.

    With a *cursor*, only arguments, properties and children it has not yet
    consumed count as evidence (flattened enums share their parent's node).
    """
    if cursor is None:
        cursor = BindingCursor(node)

    if node.type_annotation is not None:
        for variant in variants:
            if variant.name == node.type_annotation:
                logger.debug("variant %s selected by type annotation", variant.name)
                return variant

    if match_name:
        for variant in variants:
            if variant.name == node.name:
                logger.debug("variant %s selected by node name", variant.name)
                return variant

    failures: list[tuple[str, str]] = []
    for variant in variants:
        reason = ineligibility(variant.shape, cursor)
        if reason is None:
            logger.debug("variant %s committed for node %r", variant.name, node.name)
            return variant
        failures.append((variant.name, reason))

    raise NoMatchingVariantError(enum_name, failures, span=node.span, node=node.name)


def ineligibility(shape: Shape, cursor: BindingCursor) -> str | None:
    """Why *shape* cannot apply to the cursor's remaining entries (None if it can)."""
    for key in sorted(shape.required_properties):
        if not cursor.has_property(key):
            return f"missing property {key!r}"
    for tag in sorted(shape.required_children):
        if not cursor.has_child(tag):
            return f"missing child {tag!r}"
    count = cursor.remaining_argument_count()
    if not shape.accepts_argument_count(count):
        return f"expects {_argument_range(shape)}, found {count}"
    return None


def _argument_range(shape: Shape) -> str:
    lo, hi = shape.min_arguments, shape.max_arguments
    if hi is None:
        return f"at least {lo} argument{'s' if lo != 1 else ''}"
    if lo == hi:
        return f"{lo} argument{'s' if lo != 1 else ''}"
    return f"{lo} to {hi} arguments"
