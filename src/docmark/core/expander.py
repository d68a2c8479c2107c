"""
Expansion engine for docmark.

Turns a parsed tree into a fully expanded tree: conditional chains are
resolved, expressions become text, component call sites are replaced by
their bodies, and primitive tags keep only literal attribute values.

The output contains only ``TextRun`` nodes and primitive ``TagNode``s, so
expanding it again yields the same tree.
"""

from __future__ import annotations

import logging
from typing import Any

from .builtins import is_primitive
from .conditionals import resolve_conditionals
from .errors import (
    DocmarkError,
    ExpressionError,
    InvalidSlot,
    RecursionLimitExceeded,
    UnknownComponent,
    at,
)
from .expression_lang import ExpressionContext, FilterRegistry, evaluate_source
from .ir.components import format_value
from .ir.nodes import AttributeValue, ExprNode, Node, SlotMarker, TagNode, TextRun
from .registry import ComponentRegistry
from .structure import validate_structure
from .validator import resolve_value, validate_attributes

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

# Tag nesting ceiling, components and primitives alike. Each level costs a
# few interpreter frames, so this stays well below the recursion limit.
MAX_NESTING_DEPTH = 100


class Expander:
    """
    Expands component references against a registry.

    Handles conditional resolution, slot substitution, and attribute
    validation. Two ceilings apply: ``max_depth`` bounds nested component
    expansion, and ``MAX_NESTING_DEPTH`` bounds the nesting of any tags
    in the expanded tree.
    """

    def __init__(
        self,
        registry: ComponentRegistry,
        filters: FilterRegistry,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """
        Initialize expander.

        Args:
            registry: Components available to call sites
            filters: Filters available to expressions
            max_depth: Maximum component nesting depth, at most
                ``MAX_NESTING_DEPTH``

        Raises:
            ValueError: If ``max_depth`` is out of range.
        """
        if not 1 <= max_depth <= MAX_NESTING_DEPTH:
            raise ValueError(
                f"max_depth must be between 1 and {MAX_NESTING_DEPTH}, got {max_depth}"
            )
        self.registry = registry
        self.filters = filters
        self.max_depth = max_depth

    def expand(self, nodes: list[Node], context: ExpressionContext) -> list[Node]:
        """
        Expand a document tree.

        Args:
            nodes: Parsed nodes
            context: Ambient context for top-level expressions

        Returns:
            A new, fully expanded node list.

        Raises:
            DocmarkError: The first expansion, validation or expression error.
        """
        return self._expand_list(nodes, context, depth=0, nesting=0, slot=None)

    def _expand_list(
        self,
        nodes: list[Node],
        ctx: ExpressionContext,
        depth: int,
        nesting: int,
        slot: list[Node] | None,
    ) -> list[Node]:
        expanded: list[Node] = []
        for node in resolve_conditionals(nodes, ctx, self.filters):
            expanded.extend(self._expand_node(node, ctx, depth, nesting, slot))
        return expanded

    def _expand_node(
        self,
        node: Node,
        ctx: ExpressionContext,
        depth: int,
        nesting: int,
        slot: list[Node] | None,
    ) -> list[Node]:
        if isinstance(node, TextRun):
            return [node]

        if isinstance(node, ExprNode):
            return [self._evaluate_text(node, ctx)]

        if isinstance(node, SlotMarker):
            if slot is None:
                raise InvalidSlot(
                    "`<Slot />` can only be used inside a component",
                    at(node.span, "Slot outside a component"),
                )
            return list(slot)

        if is_primitive(node.name):
            return [self._expand_primitive(node, ctx, depth, nesting, slot)]

        return self._expand_component(node, ctx, depth, nesting, slot)

    def _evaluate_text(self, node: ExprNode, ctx: ExpressionContext) -> TextRun:
        try:
            value = evaluate_source(node.source, ctx, self.filters)
        except ExpressionError as e:
            raise e.anchor(node.source, node.span.start.advance("{")) from None
        return TextRun(value=format_value(value), span=node.span)

    def _expand_primitive(
        self,
        node: TagNode,
        ctx: ExpressionContext,
        depth: int,
        nesting: int,
        slot: list[Node] | None,
    ) -> TagNode:
        _check_nesting(node, nesting)
        attributes: dict[str, AttributeValue] = {}
        for name, supplied in node.attributes.items():
            value: Any = resolve_value(supplied, ctx, self.filters)
            if value is not None:
                attributes[name] = AttributeValue.from_value(value, supplied.span)

        children = self._expand_list(node.children, ctx, depth, nesting + 1, slot)
        expanded = node.model_copy(update={"attributes": attributes, "children": children})
        validate_structure(expanded)
        return expanded

    def _expand_component(
        self,
        node: TagNode,
        ctx: ExpressionContext,
        depth: int,
        nesting: int,
        slot: list[Node] | None,
    ) -> list[Node]:
        definition = self.registry.resolve(node.name)
        if definition is None:
            raise UnknownComponent(
                f"Unknown component `<{node.name}>`",
                at(node.open_span, "Unknown component"),
            )
        if depth >= self.max_depth:
            raise RecursionLimitExceeded(
                f"Maximum component nesting depth of {self.max_depth} exceeded "
                f"while expanding `<{node.name}>`",
                at(node.open_span, "Expanded too deeply"),
            )
        _check_nesting(node, nesting)

        attributes = validate_attributes(node, definition, ctx, self.filters)
        children = self._expand_list(node.children, ctx, depth, nesting + 1, slot)
        logger.debug("Expanding %s at depth %d", definition.name, depth + 1)

        try:
            return self._expand_list(
                definition.body,
                ctx.with_attributes(attributes),
                depth + 1,
                nesting + 1,
                slot=children,
            )
        except DocmarkError as e:
            raise e.with_origin(definition.key) from None


def _check_nesting(node: TagNode, nesting: int) -> None:
    if nesting >= MAX_NESTING_DEPTH:
        raise RecursionLimitExceeded(
            f"Maximum tag nesting depth of {MAX_NESTING_DEPTH} exceeded at `<{node.name}>`",
            at(node.open_span, "Nested too deeply"),
        )
