"""
Conditional chains.

Sibling tags marked ``if``, ``elseif`` and ``else`` form a chain:

    <Box if={@plan == "pro"}>Pro</Box>
    <Box elseif={@plan == "team"}>Team</Box>
    <Box else>Free</Box>

The first member whose condition is truthy survives with its marker
cleared; an ``else`` member always matches. Whitespace-only text between
members belongs to the chain and disappears with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import DanglingConditional, DuplicateElse, InvalidConditional, at
from .expression_lang import ExpressionContext, FilterRegistry, is_truthy
from .ir.nodes import ConditionalOp, Node, SourceSpan, TagNode, TextRun
from .validator import resolve_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConditionalChain:
    """An ``if`` member followed by ``elseif`` members and an optional ``else``."""

    members: tuple[TagNode, ...]

    @property
    def span(self) -> SourceSpan:
        return SourceSpan(start=self.members[0].span.start, end=self.members[-1].span.end)

    @property
    def has_else(self) -> bool:
        last = self.members[-1].conditional
        return last is not None and last.op == ConditionalOp.ELSE


def _check_marker(node: TagNode) -> None:
    cond = node.conditional
    assert cond is not None
    if cond.op == ConditionalOp.ELSE and cond.value is not None:
        raise InvalidConditional(
            f"`else` on `<{node.name}>` does not take a value",
            at(cond.span, "Remove the value"),
        )
    if cond.op != ConditionalOp.ELSE and cond.value is None:
        raise InvalidConditional(
            f"`{cond.op}` on `<{node.name}>` needs a condition, e.g. `{cond.op}={{@flag}}`",
            at(cond.span, "Missing condition"),
        )


def group_conditionals(nodes: list[Node]) -> list[Node | ConditionalChain]:
    """
    Group marked siblings into chains.

    Raises:
        DanglingConditional: ``elseif``/``else`` without a preceding ``if``
        DuplicateElse: A second ``else`` in one chain
        InvalidConditional: Marker with a missing or unexpected value
    """
    grouped: list[Node | ConditionalChain] = []
    chain: list[TagNode] = []
    pending: list[Node] = []

    def close() -> None:
        if chain:
            grouped.append(ConditionalChain(tuple(chain)))
            chain.clear()
        grouped.extend(pending)
        pending.clear()

    for node in nodes:
        if chain and isinstance(node, TextRun) and node.is_whitespace:
            pending.append(node)
            continue

        cond = node.conditional if isinstance(node, TagNode) else None
        if cond is None:
            close()
            grouped.append(node)
            continue

        assert isinstance(node, TagNode)
        _check_marker(node)

        if cond.op == ConditionalOp.IF:
            close()
            chain.append(node)
            continue

        if not chain:
            raise DanglingConditional(
                f"`{cond.op}` on `<{node.name}>` must follow a tag marked `if` or `elseif`",
                at(cond.span, "No preceding `if`"),
            )
        previous = chain[-1].conditional
        assert previous is not None
        if previous.op == ConditionalOp.ELSE:
            if cond.op == ConditionalOp.ELSE:
                raise DuplicateElse(
                    f"Conditional chain already has an `else` on `<{chain[-1].name}>`",
                    [
                        *at(previous.span, "First `else`"),
                        *at(cond.span, "Second `else`"),
                    ],
                )
            raise DanglingConditional(
                f"`elseif` on `<{node.name}>` cannot follow `else`",
                [*at(previous.span, "`else` ends the chain"), *at(cond.span, "Dangling `elseif`")],
            )
        pending.clear()
        chain.append(node)

    close()
    return grouped


def resolve_conditionals(
    nodes: list[Node], context: ExpressionContext, filters: FilterRegistry
) -> list[Node]:
    """
    Replace every chain with its surviving member, if any.

    Unmarked nodes are returned unchanged and in order. Conditions are
    evaluated in ``context`` in chain order and stop at the first match.
    """
    resolved: list[Node] = []
    for item in group_conditionals(nodes):
        if not isinstance(item, ConditionalChain):
            resolved.append(item)
            continue
        chosen = _select(item, context, filters)
        if chosen is not None:
            resolved.append(chosen.model_copy(update={"conditional": None}))
        else:
            logger.debug("Conditional chain at %s produced nothing", item.span.start)
    return resolved


def _select(
    chain: ConditionalChain, context: ExpressionContext, filters: FilterRegistry
) -> TagNode | None:
    for member in chain.members:
        cond = member.conditional
        assert cond is not None
        if cond.op == ConditionalOp.ELSE:
            return member
        assert cond.value is not None
        if is_truthy(resolve_value(cond.value, context, filters)):
            return member
    return None
