"""
Error types for docmark parsing, loading, validation, and expansion.

Every error carries a kind, a human-readable message, and the source spans
needed to draw a caret-style pointer diagnostic.
"""

from __future__ import annotations

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .ir.nodes import Position, SourceSpan


class ErrorKind(StrEnum):
    """Closed taxonomy of diagnostics."""

    # Parsing
    UNMATCHED_TAG = "UnmatchedTag"
    UNBALANCED_EXPRESSION_DELIMITER = "UnbalancedExpressionDelimiter"
    MALFORMED_TAG = "MalformedTag"
    # Registry
    SCHEMA_ERROR = "SchemaError"
    NAME_COLLISION = "NameCollision"
    # Expansion
    UNKNOWN_COMPONENT = "UnknownComponent"
    RECURSION_LIMIT_EXCEEDED = "RecursionLimitExceeded"
    STRUCTURAL_VIOLATION = "StructuralViolation"
    INVALID_SLOT = "InvalidSlot"
    # Attributes
    MISSING_REQUIRED_ATTRIBUTE = "MissingRequiredAttribute"
    INVALID_ATTRIBUTE_TYPE = "InvalidAttributeType"
    INVALID_ATTRIBUTE_VALUE = "InvalidAttributeValue"
    UNDECLARED_ATTRIBUTE = "UndeclaredAttribute"
    # Expressions
    EXPRESSION_SYNTAX_ERROR = "ExpressionSyntaxError"
    ARITY_ERROR = "ArityError"
    FILTER_TYPE_ERROR = "FilterTypeError"
    UNKNOWN_FILTER = "UnknownFilter"
    UNSUPPORTED_TYPE = "UnsupportedType"
    INVALID_OPERATION = "InvalidOperation"
    # Conditionals
    DANGLING_CONDITIONAL = "DanglingConditional"
    DUPLICATE_ELSE = "DuplicateElse"
    INVALID_CONDITIONAL = "InvalidConditional"


class LabeledSpan(BaseModel):
    """A span plus the short label drawn under its caret."""

    span: SourceSpan
    label: str | None = None

    model_config = ConfigDict(frozen=True)


class Diagnostic(BaseModel):
    """Serializable form of an error, handed back to callers."""

    kind: ErrorKind
    message: str
    spans: list[LabeledSpan] = Field(default_factory=list)
    origin: str | None = Field(default=None, description="Document path or component key")

    model_config = ConfigDict(frozen=True)

    @property
    def primary_span(self) -> SourceSpan | None:
        return self.spans[0].span if self.spans else None

    def location(self) -> str:
        """Format as ``origin:line:col``."""
        parts = [self.origin or "<input>"]
        if self.spans:
            parts.append(str(self.spans[0].span.start))
        return ":".join(parts)


class DocmarkError(Exception):
    """Base exception for all docmark errors."""

    kind: ClassVar[ErrorKind]

    def __init__(
        self,
        message: str,
        spans: list[LabeledSpan] | None = None,
        origin: str | None = None,
    ):
        self.message = message
        self.spans = list(spans or [])
        self.origin = origin
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with location if available."""
        if self.spans:
            return f"{self.origin or '<input>'}:{self.spans[0].span.start}: {self.message}"
        return self.message

    def with_origin(self, origin: str | None) -> DocmarkError:
        """Attach an origin unless one is already set."""
        if self.origin is None and origin is not None:
            self.origin = origin
            self.args = (self._format_message(),)
        return self

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            kind=self.kind, message=self.message, spans=self.spans, origin=self.origin
        )


def at(span: SourceSpan, label: str | None = None) -> list[LabeledSpan]:
    """Shorthand for a single labeled span."""
    return [LabeledSpan(span=span, label=label)]


# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------


class ParseError(DocmarkError):
    """
    Raised when markup cannot be parsed.

    Examples:
    - Closing tag does not match the innermost open tag
    - Unbalanced ``{`` / ``}``
    - Unclosed opening tag, duplicate attribute
    """


class UnmatchedTag(ParseError):
    kind = ErrorKind.UNMATCHED_TAG


class UnbalancedExpressionDelimiter(ParseError):
    kind = ErrorKind.UNBALANCED_EXPRESSION_DELIMITER


class MalformedTag(ParseError):
    kind = ErrorKind.MALFORMED_TAG


# ---------------------------------------------------------------------------
# Registry errors
# ---------------------------------------------------------------------------


class SchemaError(DocmarkError):
    """
    Raised when a component source cannot be loaded.

    Examples:
    - Attribute without a title, or a title that is not an identifier
    - Default value not matching ``is_a`` or ``is_one_of``
    - Invalid registration key, more than one Slot in the body
    """

    kind = ErrorKind.SCHEMA_ERROR


class NameCollision(DocmarkError):
    """Two registration keys derive the same component name (strict mode)."""

    kind = ErrorKind.NAME_COLLISION


# ---------------------------------------------------------------------------
# Expansion errors
# ---------------------------------------------------------------------------


class ExpansionError(DocmarkError):
    """
    Raised when a parsed tree cannot be expanded.

    Examples:
    - Reference to a component missing from the registry
    - Self-referential components exceeding the depth ceiling
    - Container tags with children of the wrong kind
    """


class UnknownComponent(ExpansionError):
    kind = ErrorKind.UNKNOWN_COMPONENT


class RecursionLimitExceeded(ExpansionError):
    kind = ErrorKind.RECURSION_LIMIT_EXCEEDED


class StructuralViolation(ExpansionError):
    kind = ErrorKind.STRUCTURAL_VIOLATION


class InvalidSlot(ExpansionError):
    kind = ErrorKind.INVALID_SLOT


# ---------------------------------------------------------------------------
# Attribute validation errors
# ---------------------------------------------------------------------------


class AttributeValidationError(DocmarkError):
    """Raised when supplied attributes do not satisfy a component schema."""


class MissingRequiredAttribute(AttributeValidationError):
    kind = ErrorKind.MISSING_REQUIRED_ATTRIBUTE

    def __init__(
        self,
        title: str,
        message: str,
        spans: list[LabeledSpan] | None = None,
        origin: str | None = None,
    ):
        self.title = title
        super().__init__(message, spans, origin)


class InvalidAttributeType(AttributeValidationError):
    kind = ErrorKind.INVALID_ATTRIBUTE_TYPE


class InvalidAttributeValue(AttributeValidationError):
    kind = ErrorKind.INVALID_ATTRIBUTE_VALUE


class UndeclaredAttribute(AttributeValidationError):
    kind = ErrorKind.UNDECLARED_ATTRIBUTE


# ---------------------------------------------------------------------------
# Expression errors
# ---------------------------------------------------------------------------


class ExpressionError(DocmarkError):
    """
    Raised while parsing or evaluating an expression.

    ``start``/``end`` are offsets into the expression source. Callers that
    know where the expression sits in a document call :meth:`anchor` to
    turn them into document spans.
    """

    def __init__(self, message: str, start: int = 0, end: int = 0):
        self.start = start
        self.end = max(end, start)
        super().__init__(message)

    def anchor(self, source: str, base: Position, origin: str | None = None) -> ExpressionError:
        """Map expression offsets onto the document, given where ``source`` begins."""
        start = base.advance(source[: self.start])
        end = start.advance(source[self.start : self.end])
        self.spans = at(SourceSpan(start=start, end=end))
        self.origin = origin if self.origin is None else self.origin
        self.args = (self._format_message(),)
        return self


class ExpressionSyntaxError(ExpressionError):
    kind = ErrorKind.EXPRESSION_SYNTAX_ERROR


class ArityError(ExpressionError):
    kind = ErrorKind.ARITY_ERROR


class FilterTypeError(ExpressionError):
    """``argument`` is the index of the offending filter argument, when known."""

    kind = ErrorKind.FILTER_TYPE_ERROR

    def __init__(self, message: str, start: int = 0, end: int = 0, argument: int | None = None):
        self.argument = argument
        super().__init__(message, start, end)


class UnknownFilter(ExpressionError):
    kind = ErrorKind.UNKNOWN_FILTER


class UnsupportedType(ExpressionError):
    kind = ErrorKind.UNSUPPORTED_TYPE


class InvalidOperation(ExpressionError):
    kind = ErrorKind.INVALID_OPERATION


# ---------------------------------------------------------------------------
# Conditional errors
# ---------------------------------------------------------------------------


class ConditionalError(DocmarkError):
    """Raised when sibling ``if``/``elseif``/``else`` tags do not form a valid chain."""


class DanglingConditional(ConditionalError):
    kind = ErrorKind.DANGLING_CONDITIONAL


class DuplicateElse(ConditionalError):
    kind = ErrorKind.DUPLICATE_ELSE


class InvalidConditional(ConditionalError):
    kind = ErrorKind.INVALID_CONDITIONAL


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_diagnostic(diagnostic: Diagnostic, source: str | None = None) -> str:
    """
    Format a diagnostic as a human-readable block.

    With ``source`` available, each highlighted line is shown with its line
    number and a caret marker under the span, e.g.::

        error[UnmatchedTag]: Unexpected closing tag `</B>`, expected closing tag for `<A>`
          --> page.md:1:1
           1 | <A>text</B>
             | ^^^ Opening tag
             |        ^^^^ Expected close tag
    """
    header = f"error[{diagnostic.kind}]: {diagnostic.message}"
    lines = [header, f"  --> {diagnostic.location()}"]
    if source is None or not diagnostic.spans:
        return "\n".join(lines)

    source_lines = source.split("\n")
    shown: set[int] = set()
    for labeled in sorted(diagnostic.spans, key=lambda s: s.span.start.offset):
        show_line = labeled.span.start.line not in shown
        lines.extend(_format_snippet(source_lines, labeled, show_line=show_line))
        shown.add(labeled.span.start.line)
    return "\n".join(lines)


def _format_snippet(source_lines: list[str], labeled: LabeledSpan, show_line: bool) -> list[str]:
    """Format one highlighted line with an error marker under the span."""
    span = labeled.span
    line_no = span.start.line
    if not 1 <= line_no <= len(source_lines):
        return []

    text = source_lines[line_no - 1]
    gutter = " " * 5
    out: list[str] = []
    if show_line:
        out.append(f"{line_no:5d} | {text}")

    if span.end.line == span.start.line:
        width = max(1, span.end.column - span.start.column)
    else:
        width = max(1, len(text) - span.start.column + 1)
    marker = " " * (span.start.column - 1) + "^" * width
    if labeled.label:
        marker += f" {labeled.label}"
    out.append(f"{gutter} | {marker}")
    return out
