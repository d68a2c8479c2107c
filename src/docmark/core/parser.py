"""
Markup parser for docmark documents and component bodies.

Converts raw text into an ordered node tree in a single left-to-right
pass. Only tags whose name starts with an uppercase letter are parsed;
anything else after ``<`` (``<div>``, ``</p>``, ``<!-- -->``, ``a < b``)
stays in the surrounding text verbatim.

Recognised syntax:
    <Card title="Hi" size={@size} count=3 open>...</Card>
    <Box if={@show} />
    {@title | capitalize}
    <Slot />
    \\{  \\}  \\<      (escaped literal characters)

The first error stops parsing; the result then carries no nodes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from .errors import (
    Diagnostic,
    LabeledSpan,
    MalformedTag,
    ParseError,
    UnbalancedExpressionDelimiter,
    UnmatchedTag,
    at,
)
from .ir.nodes import (
    AttributeKind,
    AttributeValue,
    ConditionalKind,
    ConditionalOp,
    ExprNode,
    Node,
    Position,
    SlotMarker,
    SourceSpan,
    TagNode,
    TextRun,
)

logger = logging.getLogger(__name__)

SLOT_TAG = "Slot"

_TAG_NAME_RE = re.compile(r"[A-Z][A-Za-z0-9_.]*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?\d+\.\d+")
_ESCAPABLE = ("{", "}", "<")
_CONDITIONAL_OPS = {op.value: op for op in ConditionalOp}


@dataclass
class ParseResult:
    """Parsed nodes, or the diagnostics that stopped parsing."""

    nodes: list[Node] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


@dataclass
class _Frame:
    """An open tag waiting for its closing tag."""

    name: str
    attributes: dict[str, AttributeValue]
    conditional: ConditionalKind | None
    open_span: SourceSpan
    children: list[Node] = field(default_factory=list)


class MarkupParser:
    """
    Single-pass parser for docmark markup.

    Tracks offset, line and column while scanning so every node carries an
    exact source span.
    """

    def __init__(self, text: str, origin: str | None = None, start: int = 0):
        """
        Initialize parser.

        Args:
            text: Markup source
            origin: Document path or component key (for error reporting)
            start: Offset to begin parsing at; earlier text only counts
                towards line and column numbers
        """
        begin = Position().advance(text[:start])
        self.text = text
        self.origin = origin
        self.pos = begin.offset
        self.line = begin.line
        self.column = begin.column
        self.stack: list[_Frame] = []
        self.root: list[Node] = []
        self._text_buf: list[str] = []
        self._text_start: Position | None = None

    # -- Cursor ---------------------------------------------------------------

    def current_char(self) -> str | None:
        """Get current character or None if at end."""
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def peek_char(self, offset: int = 1) -> str | None:
        """Peek ahead at character."""
        pos = self.pos + offset
        if pos >= len(self.text):
            return None
        return self.text[pos]

    def advance(self, count: int = 1) -> None:
        """Move forward, updating line/column."""
        for _ in range(count):
            if self.pos >= len(self.text):
                return
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def position(self) -> Position:
        return Position(offset=self.pos, line=self.line, column=self.column)

    def span_from(self, start: Position) -> SourceSpan:
        return SourceSpan(start=start, end=self.position())

    def skip_whitespace(self) -> None:
        while (c := self.current_char()) is not None and c.isspace():
            self.advance()

    def read_match(self, pattern: re.Pattern[str]) -> str | None:
        m = pattern.match(self.text, self.pos)
        if m is None:
            return None
        self.advance(m.end() - m.start())
        return m.group(0)

    # -- Tree building --------------------------------------------------------

    @property
    def siblings(self) -> list[Node]:
        return self.stack[-1].children if self.stack else self.root

    def _push_text(self, chars: str, start: Position) -> None:
        if self._text_start is None:
            self._text_start = start
        self._text_buf.append(chars)

    def _flush_text(self) -> None:
        if self._text_start is None:
            return
        self.siblings.append(
            TextRun(value="".join(self._text_buf), span=self.span_from(self._text_start))
        )
        self._text_buf = []
        self._text_start = None

    # -- Entry point ----------------------------------------------------------

    def parse(self) -> list[Node]:
        """
        Parse the whole input.

        Raises:
            ParseError: On the first malformed construct.
        """
        while (c := self.current_char()) is not None:
            if c == "\\" and self.peek_char() in _ESCAPABLE:
                start = self.position()
                escaped = self.peek_char()
                self.advance(2)
                self._push_text(escaped or "", start)
            elif c == "{":
                self._flush_text()
                self.siblings.append(self._parse_expression_node())
            elif c == "}":
                start = self.position()
                self.advance()
                raise UnbalancedExpressionDelimiter(
                    "Unexpected `}` without a matching `{`",
                    at(self.span_from(start), "Unmatched brace"),
                    self.origin,
                )
            elif c == "<" and self._at_close_tag():
                self._flush_text()
                self._parse_close_tag()
            elif c == "<" and self._at_open_tag():
                self._flush_text()
                self._parse_open_tag()
            else:
                self._push_text(c, self.position())
                self.advance()

        self._flush_text()
        if self.stack:
            frame = self.stack[-1]
            raise UnmatchedTag(
                f"Unclosed tag `<{frame.name}>`, expected closing tag `</{frame.name}>`",
                at(frame.open_span, "Opening tag"),
                self.origin,
            )
        return self.root

    def _at_open_tag(self) -> bool:
        nxt = self.peek_char()
        return nxt is not None and "A" <= nxt <= "Z"

    def _at_close_tag(self) -> bool:
        nxt = self.peek_char(2)
        return self.peek_char() == "/" and nxt is not None and "A" <= nxt <= "Z"

    # -- Expressions ----------------------------------------------------------

    def _read_braced(self) -> tuple[str, SourceSpan]:
        """Read ``{...}`` honoring nesting and quoted strings. Cursor is on ``{``."""
        start = self.position()
        self.advance()
        inner_start = self.pos
        depth = 1
        quote: str | None = None
        while (c := self.current_char()) is not None:
            if quote is not None:
                if c == "\\":
                    self.advance()
                elif c == quote:
                    quote = None
            elif c in ("'", '"'):
                quote = c
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    inner = self.text[inner_start : self.pos]
                    self.advance()
                    return inner, self.span_from(start)
            self.advance()

        open_span = SourceSpan(start=start, end=start.advance("{"))
        raise UnbalancedExpressionDelimiter(
            "Unclosed expression, expected a closing `}`",
            at(open_span, "Expression starts here"),
            self.origin,
        )

    def _parse_expression_node(self) -> ExprNode:
        source, span = self._read_braced()
        return ExprNode(source=source, span=span)

    # -- Tags -----------------------------------------------------------------

    def _parse_open_tag(self) -> None:
        start = self.position()
        self.advance()  # <
        name = self.read_match(_TAG_NAME_RE) or ""
        attributes: dict[str, AttributeValue] = {}
        conditional: ConditionalKind | None = None

        while True:
            self.skip_whitespace()
            c = self.current_char()
            if c is None:
                raise MalformedTag(
                    f"Unclosed tag `<{name}`, expected `>` or `/>`",
                    at(self.span_from(start), "Tag starts here"),
                    self.origin,
                )
            if c == ">":
                self.advance()
                self_closing = False
                break
            if c == "/" and self.peek_char() == ">":
                self.advance(2)
                self_closing = True
                break

            attr_start = self.position()
            attr_name = self.read_match(_ATTR_NAME_RE)
            if attr_name is None:
                self.advance()
                raise MalformedTag(
                    f"Unexpected character `{c}` in tag `<{name}>`",
                    at(self.span_from(attr_start)),
                    self.origin,
                )
            value = self._parse_attribute_value(name)
            attr_span = self.span_from(attr_start)

            if attr_name in _CONDITIONAL_OPS:
                if conditional is not None:
                    raise MalformedTag(
                        f"Tag `<{name}>` has more than one of `if`, `elseif` and `else`",
                        at(attr_span),
                        self.origin,
                    )
                conditional = ConditionalKind(
                    op=_CONDITIONAL_OPS[attr_name], value=value, span=attr_span
                )
                continue

            if attr_name in attributes:
                raise MalformedTag(
                    f"Duplicate attribute `{attr_name}` on `<{name}>`",
                    at(attr_span, "Duplicate attribute"),
                    self.origin,
                )
            attributes[attr_name] = value or AttributeValue(
                kind=AttributeKind.BOOLEAN, value=True, span=attr_span
            )

        open_span = self.span_from(start)
        if name == SLOT_TAG and (attributes or conditional is not None):
            raise MalformedTag(
                "`<Slot>` does not accept attributes", at(open_span), self.origin
            )

        frame = _Frame(name, attributes, conditional, open_span)
        if self_closing:
            self.siblings.append(self._finish(frame, open_span))
        else:
            self.stack.append(frame)

    def _parse_attribute_value(self, tag_name: str) -> AttributeValue | None:
        """Parse ``=value`` after an attribute name. ``None`` for bare attributes."""
        save = (self.pos, self.line, self.column)
        self.skip_whitespace()
        if self.current_char() != "=":
            self.pos, self.line, self.column = save
            return None
        self.advance()
        self.skip_whitespace()

        start = self.position()
        c = self.current_char()
        if c in ('"', "'"):
            return self._parse_quoted_value(tag_name)
        if c == "{":
            source, span = self._read_braced()
            return AttributeValue(kind=AttributeKind.EXPRESSION, value=source, span=span)

        while (c := self.current_char()) is not None and not c.isspace() and c != ">":
            if c == "/" and self.peek_char() == ">":
                break
            self.advance()
        token = self.text[start.offset : self.pos]
        span = self.span_from(start)
        if _FLOAT_RE.fullmatch(token):
            return AttributeValue(kind=AttributeKind.FLOAT, value=float(token), span=span)
        if _INT_RE.fullmatch(token):
            return AttributeValue(kind=AttributeKind.INTEGER, value=int(token), span=span)
        if token in ("true", "false"):
            return AttributeValue(kind=AttributeKind.BOOLEAN, value=token == "true", span=span)
        if token == "null":
            return AttributeValue(kind=AttributeKind.NULL, value=None, span=span)
        raise MalformedTag(
            f"Invalid attribute value `{token}` on `<{tag_name}>`. "
            "Quote text values, or use {...} for expressions",
            at(span, "Invalid value"),
            self.origin,
        )

    def _parse_quoted_value(self, tag_name: str) -> AttributeValue:
        start = self.position()
        quote = self.current_char()
        self.advance()
        chars: list[str] = []
        while (c := self.current_char()) is not None:
            if c == "\\" and self.peek_char() == quote:
                chars.append(quote)
                self.advance(2)
                continue
            if c == quote:
                self.advance()
                return AttributeValue(
                    kind=AttributeKind.STRING, value="".join(chars), span=self.span_from(start)
                )
            chars.append(c)
            self.advance()
        raise MalformedTag(
            f"Unterminated attribute value on `<{tag_name}>`",
            at(SourceSpan(start=start, end=start.advance(quote or "")), "Value starts here"),
            self.origin,
        )

    def _parse_close_tag(self) -> None:
        start = self.position()
        self.advance(2)  # </
        name = self.read_match(_TAG_NAME_RE) or ""
        self.skip_whitespace()
        if self.current_char() != ">":
            raise MalformedTag(
                f"Malformed closing tag `</{name}`, expected `>`",
                at(self.span_from(start)),
                self.origin,
            )
        self.advance()
        close_span = self.span_from(start)

        if not self.stack:
            raise UnmatchedTag(
                f"Unexpected closing tag `</{name}>`, no tag is open",
                at(close_span, "Unexpected close tag"),
                self.origin,
            )
        frame = self.stack[-1]
        if frame.name != name:
            raise UnmatchedTag(
                f"Unexpected closing tag `</{name}>`, expected closing tag for `<{frame.name}>`",
                [
                    LabeledSpan(span=frame.open_span, label="Opening tag"),
                    LabeledSpan(span=close_span, label="Expected close tag"),
                ],
                self.origin,
            )
        self.stack.pop()
        self.siblings.append(self._finish(frame, close_span))

    def _finish(self, frame: _Frame, close_span: SourceSpan) -> Node:
        if frame.name == SLOT_TAG:
            if any(not (isinstance(c, TextRun) and c.is_whitespace) for c in frame.children):
                raise MalformedTag(
                    "`<Slot>` cannot have children",
                    at(SourceSpan(start=frame.open_span.start, end=close_span.end)),
                    self.origin,
                )
            return SlotMarker(span=SourceSpan(start=frame.open_span.start, end=close_span.end))
        return TagNode(
            name=frame.name,
            attributes=frame.attributes,
            conditional=frame.conditional,
            children=frame.children,
            open_span=frame.open_span,
            close_span=close_span,
        )


def parse_markup(text: str, origin: str | None = None, start: int = 0) -> ParseResult:
    """
    Parse markup into a node tree.

    Args:
        text: Markup source
        origin: Document path or component key, attached to diagnostics
        start: Offset of the markup within ``text`` (e.g. after frontmatter)

    Returns:
        ParseResult with either nodes or a single diagnostic.
    """
    try:
        nodes = MarkupParser(text, origin, start).parse()
    except ParseError as e:
        logger.debug("Parse failed for %s: %s", origin or "<input>", e)
        return ParseResult(diagnostics=[e.to_diagnostic()])
    return ParseResult(nodes=nodes)
