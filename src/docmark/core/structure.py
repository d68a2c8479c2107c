"""
Structural validators for container primitives.

``Tabs`` may only contain ``Tab`` children and ``Steps`` only ``Step``
children; whitespace text between them is ignored. Every ``Tab`` and
``Step`` needs a ``title``. Validators run on expanded children, so a
component that expands to a ``Tab`` counts as one.
"""

from __future__ import annotations

from .errors import StructuralViolation, at
from .ir.nodes import Node, SourceSpan, TagNode, TextRun

TITLE_KEY = "title"

CONTAINER_RULES: dict[str, str] = {
    "Tabs": "Tab",
    "Steps": "Step",
}


def _node_span(node: Node) -> SourceSpan:
    return node.open_span if isinstance(node, TagNode) else node.span


def _describe(node: Node) -> str:
    if isinstance(node, TagNode):
        return f"`<{node.name}>`"
    if isinstance(node, TextRun):
        return f"text `{node.value.strip()[:30]}`"
    return "content"


def validate_structure(tag: TagNode) -> None:
    """
    Check a primitive's expanded children.

    Raises:
        StructuralViolation: Wrong child kind, or a missing ``title``.
    """
    child_name = CONTAINER_RULES.get(tag.name)
    if child_name is not None:
        for child in tag.children:
            if isinstance(child, TextRun) and child.is_whitespace:
                continue
            if isinstance(child, TagNode) and child.name == child_name:
                continue
            raise StructuralViolation(
                f"Invalid child {_describe(child)} in `<{tag.name}>`: "
                f"only `<{child_name}>` elements are allowed",
                [
                    *at(_node_span(child), f"Invalid {child_name.lower()} node"),
                    *at(tag.open_span, "Container"),
                ],
            )

    if tag.name in CONTAINER_RULES.values() and TITLE_KEY not in tag.attributes:
        raise StructuralViolation(
            f"`<{tag.name}>` is missing a `{TITLE_KEY}` attribute",
            at(tag.open_span, f"Missing {TITLE_KEY}"),
        )
