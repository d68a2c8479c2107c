"""
Markup tree types for docmark IR.

A document parses into an ordered list of nodes. Sibling order is
significant: it is both the rendering order and the order in which
conditional chains are evaluated.

Node kinds:
- TextRun: literal prose or pass-through markup (``<div>``, ``</p>``)
- TagNode: an uppercase component or control tag with attributes/children
- ExprNode: a ``{...}`` expression whose evaluation is deferred
- SlotMarker: ``<Slot />`` inside a component body
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Source locations
# ---------------------------------------------------------------------------


class Position(BaseModel):
    """A point in source text. Offset is 0-based; line and column are 1-based."""

    offset: int = 0
    line: int = 1
    column: int = 1

    model_config = ConfigDict(frozen=True)

    def advance(self, text: str) -> Position:
        """Return the position reached after consuming ``text`` from here."""
        newlines = text.count("\n")
        if newlines:
            column = len(text) - text.rfind("\n")
        else:
            column = self.column + len(text)
        return Position(offset=self.offset + len(text), line=self.line + newlines, column=column)

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class SourceSpan(BaseModel):
    """Half-open range ``[start, end)`` in source text."""

    start: Position = Field(default_factory=Position)
    end: Position = Field(default_factory=Position)

    model_config = ConfigDict(frozen=True)

    @property
    def length(self) -> int:
        return self.end.offset - self.start.offset

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


# ---------------------------------------------------------------------------
# Attribute values
# ---------------------------------------------------------------------------


class AttributeKind(StrEnum):
    """Closed set of attribute value forms."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    NULL = "null"
    EXPRESSION = "expression"


class AttributeValue(BaseModel):
    """
    A value supplied for a tag attribute.

    Literal kinds carry their typed value. ``EXPRESSION`` carries the raw
    expression text (without braces) in ``value``; it is evaluated before
    validation.
    """

    kind: AttributeKind
    value: str | int | float | bool | None = None
    span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)

    @property
    def is_expression(self) -> bool:
        return self.kind == AttributeKind.EXPRESSION

    @classmethod
    def from_value(
        cls, value: str | int | float | bool | None, span: SourceSpan | None = None
    ) -> AttributeValue:
        """Wrap an already-resolved scalar value as a literal attribute."""
        if value is None:
            kind = AttributeKind.NULL
        elif isinstance(value, bool):
            kind = AttributeKind.BOOLEAN
        elif isinstance(value, int):
            kind = AttributeKind.INTEGER
        elif isinstance(value, float):
            kind = AttributeKind.FLOAT
        else:
            kind = AttributeKind.STRING
        return cls(kind=kind, value=value, span=span or SourceSpan())

    def __str__(self) -> str:
        if self.kind == AttributeKind.EXPRESSION:
            return f"{{{self.value}}}"
        if self.kind == AttributeKind.NULL:
            return "null"
        if self.kind == AttributeKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind == AttributeKind.STRING:
            return f'"{self.value}"'
        return str(self.value)


class ConditionalOp(StrEnum):
    """Conditional marker attributes."""

    IF = "if"
    ELSEIF = "elseif"
    ELSE = "else"


class ConditionalKind(BaseModel):
    """Conditional marker lifted off a tag's ``if``/``elseif``/``else`` attribute."""

    op: ConditionalOp
    value: AttributeValue | None = None
    span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class TextRun(BaseModel):
    """Literal text, including pass-through lowercase markup."""

    kind: Literal["text"] = "text"
    value: str
    span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)

    @property
    def is_whitespace(self) -> bool:
        return not self.value.strip()


class ExprNode(BaseModel):
    """A ``{...}`` expression in prose. ``source`` excludes the braces."""

    kind: Literal["expression"] = "expression"
    source: str
    span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)


class SlotMarker(BaseModel):
    """``<Slot />``: replaced by caller-supplied children at expansion time."""

    kind: Literal["slot"] = "slot"
    span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)


class TagNode(BaseModel):
    """
    An uppercase tag.

    ``open_span`` covers the opening tag; ``close_span`` covers the closing
    tag, or equals ``open_span`` for self-closing tags.
    """

    kind: Literal["tag"] = "tag"
    name: str
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    conditional: ConditionalKind | None = None
    children: list[Node] = Field(default_factory=list)
    open_span: SourceSpan = Field(default_factory=SourceSpan)
    close_span: SourceSpan = Field(default_factory=SourceSpan)

    model_config = ConfigDict(frozen=True)

    @property
    def span(self) -> SourceSpan:
        return SourceSpan(start=self.open_span.start, end=self.close_span.end)

    @property
    def self_closing(self) -> bool:
        return self.open_span == self.close_span


Node = Annotated[TextRun | TagNode | ExprNode | SlotMarker, Field(discriminator="kind")]

TagNode.model_rebuild()


# ---------------------------------------------------------------------------
# Debug output
# ---------------------------------------------------------------------------


def dump_tree(nodes: list[Node], indent: int = 0) -> str:
    """Render a tree as indented pseudo-markup, one node per line."""
    lines: list[str] = []
    _dump(nodes, indent, lines)
    return "\n".join(lines) + ("\n" if lines else "")


def _dump(nodes: list[Node], depth: int, out: list[str]) -> None:
    pad = "    " * depth
    for node in nodes:
        if isinstance(node, TextRun):
            if node.is_whitespace:
                continue
            out.append(f"{pad}{node.value.strip()}")
        elif isinstance(node, ExprNode):
            out.append(f"{pad}{{{node.source}}}")
        elif isinstance(node, SlotMarker):
            out.append(f"{pad}<Slot />")
        else:
            attrs = "".join(f" {key}={value}" for key, value in node.attributes.items())
            if node.conditional is not None:
                cond = node.conditional
                attrs += f" {cond.op}" + (f"={cond.value}" if cond.value is not None else "")
            out.append(f"{pad}<{node.name}{attrs}>")
            _dump(node.children, depth + 1, out)
            out.append(f"{pad}</{node.name}>")
