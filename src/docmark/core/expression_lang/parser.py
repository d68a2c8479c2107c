"""
Recursive descent parser for the docmark expression language.

Grammar (precedence low to high):
    or_expr     → and_expr ("||" and_expr)*
    and_expr    → equality ("&&" equality)*
    equality    → not_expr (("==" | "!=" | "<" | ">" | "<=" | ">=") not_expr)*
    not_expr    → "!" not_expr | pipeline
    pipeline    → additive ("|" IDENT ("(" args ")")?)*
    additive    → multiply (("+" | "-") multiply)*
    multiply    → unary (("*" | "/") unary)*
    unary       → "-" unary | postfix
    postfix     → primary ("." IDENT)*
    primary     → literal | "@" IDENT | func_call | "(" or_expr ")" | list_literal
    literal     → INT | FLOAT | STRING | "true" | "false" | "null"
    func_call   → IDENT "(" args ")"
    args        → (or_expr ("," or_expr)*)?
    list_literal → "[" args "]"

A pipeline stage ``a | f(b, c)`` and a bare call ``f(a, b, c)`` produce
the same ``FilterCall`` node.

Nesting is bounded: brackets, calls, lists and prefix operators may nest
``MAX_BRACKET_DEPTH`` levels, and the finished tree may be at most
``MAX_TREE_DEPTH`` nodes deep.
"""

from __future__ import annotations

from docmark.core.errors import ExpressionSyntaxError
from docmark.core.expression_lang.tokenizer import Token, TokenKind, tokenize
from docmark.core.ir.expressions import (
    BinaryExpr,
    BinaryOp,
    Expr,
    FieldAccess,
    FilterCall,
    ListLiteral,
    Literal,
    UnaryExpr,
    UnaryOp,
    Variable,
)

# Parsing costs about ten frames per bracket level, evaluation a few per
# tree level.
MAX_BRACKET_DEPTH = 16
MAX_TREE_DEPTH = 48

_COMPARISON_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.EQ: BinaryOp.EQ,
    TokenKind.NE: BinaryOp.NE,
    TokenKind.LT: BinaryOp.LT,
    TokenKind.GT: BinaryOp.GT,
    TokenKind.LE: BinaryOp.LE,
    TokenKind.GE: BinaryOp.GE,
}


def _binary(op: BinaryOp, left: Expr, right: Expr) -> BinaryExpr:
    return BinaryExpr(op=op, left=left, right=right, start=left.start, end=right.end)


class _Parser:
    """Recursive descent parser for expressions."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.nesting = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    @property
    def previous_end(self) -> int:
        return self.tokens[self.pos - 1].end if self.pos else 0

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def expect(self, kind: TokenKind, what: str) -> Token:
        tok = self.current
        if tok.kind != kind:
            raise self._unexpected(tok, f"Expected {what}")
        return self.advance()

    def match(self, *kinds: TokenKind) -> Token | None:
        if self.current.kind in kinds:
            return self.advance()
        return None

    def enter(self, tok: Token) -> None:
        self.nesting += 1
        if self.nesting > MAX_BRACKET_DEPTH:
            raise ExpressionSyntaxError(
                f"Expression is nested more than {MAX_BRACKET_DEPTH} levels deep",
                tok.pos,
                max(tok.end, tok.pos + 1),
            )

    def leave(self) -> None:
        self.nesting -= 1

    def _unexpected(self, tok: Token, expectation: str | None = None) -> ExpressionSyntaxError:
        if tok.kind == TokenKind.EOF:
            message = "Unexpected end of expression"
        else:
            message = f"Unexpected token `{tok.value}`"
        if expectation:
            message += f". {expectation}"
        return ExpressionSyntaxError(message, tok.pos, max(tok.end, tok.pos + 1))

    # -- Grammar rules --

    def parse_or_expr(self) -> Expr:
        """and_expr ("||" and_expr)*"""
        left = self.parse_and_expr()
        while self.match(TokenKind.OR):
            right = self.parse_and_expr()
            left = _binary(BinaryOp.OR, left, right)
        return left

    def parse_and_expr(self) -> Expr:
        """equality ("&&" equality)*"""
        left = self.parse_equality()
        while self.match(TokenKind.AND):
            right = self.parse_equality()
            left = _binary(BinaryOp.AND, left, right)
        return left

    def parse_equality(self) -> Expr:
        """not_expr (comp_op not_expr)*"""
        left = self.parse_not_expr()
        while self.current.kind in _COMPARISON_OPS:
            op = _COMPARISON_OPS[self.advance().kind]
            right = self.parse_not_expr()
            left = _binary(op, left, right)
        return left

    def parse_not_expr(self) -> Expr:
        """'!' not_expr | pipeline"""
        bang = self.match(TokenKind.NOT)
        if bang:
            self.enter(bang)
            operand = self.parse_not_expr()
            self.leave()
            return UnaryExpr(op=UnaryOp.NOT, operand=operand, start=bang.pos, end=operand.end)
        return self.parse_pipeline()

    def parse_pipeline(self) -> Expr:
        """additive ('|' IDENT ('(' args ')')?)*"""
        expr = self.parse_additive()
        while self.match(TokenKind.PIPE):
            name_tok = self.current
            if name_tok.kind != TokenKind.IDENT:
                raise ExpressionSyntaxError(
                    f"Expected a filter name on the right side of `|`, found `{name_tok.value}`"
                    if name_tok.kind != TokenKind.EOF
                    else "Expected a filter name on the right side of `|`",
                    name_tok.pos,
                    max(name_tok.end, name_tok.pos + 1),
                )
            self.advance()
            args: list[Expr] = [expr]
            if self.current.kind == TokenKind.LPAREN:
                args.extend(self._parse_call_args(name_tok))
            expr = FilterCall(
                name=name_tok.value, args=args, start=expr.start, end=self.previous_end
            )
        return expr

    def parse_additive(self) -> Expr:
        """multiply (('+' | '-') multiply)*"""
        left = self.parse_multiply()
        while self.current.kind in (TokenKind.PLUS, TokenKind.MINUS):
            op = BinaryOp.ADD if self.advance().kind == TokenKind.PLUS else BinaryOp.SUB
            right = self.parse_multiply()
            left = _binary(op, left, right)
        return left

    def parse_multiply(self) -> Expr:
        """unary (('*' | '/') unary)*"""
        left = self.parse_unary()
        while self.current.kind in (TokenKind.STAR, TokenKind.SLASH):
            op = BinaryOp.MUL if self.advance().kind == TokenKind.STAR else BinaryOp.DIV
            right = self.parse_unary()
            left = _binary(op, left, right)
        return left

    def parse_unary(self) -> Expr:
        """'-' unary | postfix"""
        minus = self.match(TokenKind.MINUS)
        if minus:
            self.enter(minus)
            operand = self.parse_unary()
            self.leave()
            return UnaryExpr(op=UnaryOp.NEG, operand=operand, start=minus.pos, end=operand.end)
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """primary ('.' IDENT)*"""
        expr = self.parse_primary()
        while self.match(TokenKind.DOT):
            field_tok = self.expect(TokenKind.IDENT, "a field name after `.`")
            expr = FieldAccess(
                target=expr, field=field_tok.value, start=expr.start, end=field_tok.end
            )
        return expr

    def parse_primary(self) -> Expr:
        """literal | variable | func_call | '(' expr ')' | list"""
        tok = self.current

        # Parenthesized expression
        if tok.kind == TokenKind.LPAREN:
            self.advance()
            self.enter(tok)
            if self.current.kind == TokenKind.RPAREN:
                raise self._unexpected(self.current, "Expected an expression")
            expr = self.parse_or_expr()
            if self.current.kind != TokenKind.RPAREN:
                raise ExpressionSyntaxError(
                    "Unclosed parenthesis in expression", tok.pos, self.current.pos or tok.pos + 1
                )
            self.advance()
            self.leave()
            return expr

        # List literal
        if tok.kind == TokenKind.LBRACKET:
            self.advance()
            self.enter(tok)
            items = self._parse_args(TokenKind.RBRACKET, tok, "Unclosed list in expression")
            self.leave()
            return ListLiteral(items=items, start=tok.pos, end=self.previous_end)

        # Literals
        if tok.kind == TokenKind.INT:
            self.advance()
            return Literal(value=int(tok.value), start=tok.pos, end=tok.end)
        if tok.kind == TokenKind.FLOAT:
            self.advance()
            return Literal(value=float(tok.value), start=tok.pos, end=tok.end)
        if tok.kind == TokenKind.STRING:
            self.advance()
            return Literal(value=tok.value, start=tok.pos, end=tok.end)
        if tok.kind in (TokenKind.TRUE, TokenKind.FALSE):
            self.advance()
            return Literal(value=tok.kind == TokenKind.TRUE, start=tok.pos, end=tok.end)
        if tok.kind == TokenKind.NULL:
            self.advance()
            return Literal(value=None, start=tok.pos, end=tok.end)

        if tok.kind == TokenKind.VARIABLE:
            self.advance()
            return Variable(name=tok.value, start=tok.pos, end=tok.end)

        # Identifier: only valid as a function call
        if tok.kind == TokenKind.IDENT:
            self.advance()
            if self.current.kind != TokenKind.LPAREN:
                raise ExpressionSyntaxError(
                    f"Unexpected identifier `{tok.value}`. "
                    f"Variables are referenced as `@{tok.value}`",
                    tok.pos,
                    tok.end,
                )
            args = self._parse_call_args(tok)
            return FilterCall(name=tok.value, args=args, start=tok.pos, end=self.previous_end)

        raise self._unexpected(tok)

    def _parse_call_args(self, name_tok: Token) -> list[Expr]:
        """'(' args ')'"""
        open_tok = self.expect(TokenKind.LPAREN, "`(`")
        self.enter(open_tok)
        args = self._parse_args(
            TokenKind.RPAREN,
            open_tok,
            f"Unclosed filter arguments in `{name_tok.value}`. Expected closing parenthesis",
        )
        self.leave()
        return args

    def _parse_args(self, closer: TokenKind, open_tok: Token, unclosed: str) -> list[Expr]:
        """(or_expr (',' or_expr)*)? closer -- the opening token is already consumed."""
        args: list[Expr] = []
        if self.match(closer):
            return args
        while True:
            if self.current.kind == TokenKind.EOF:
                raise ExpressionSyntaxError(unclosed, open_tok.pos, open_tok.end)
            args.append(self.parse_or_expr())
            if self.match(closer):
                return args
            if self.current.kind == TokenKind.EOF:
                raise ExpressionSyntaxError(unclosed, open_tok.pos, open_tok.end)
            self.expect(TokenKind.COMMA, "`,`")


def _children(expr: Expr) -> list[Expr]:
    if isinstance(expr, BinaryExpr):
        return [expr.left, expr.right]
    if isinstance(expr, UnaryExpr):
        return [expr.operand]
    if isinstance(expr, FieldAccess):
        return [expr.target]
    if isinstance(expr, FilterCall):
        return list(expr.args)
    if isinstance(expr, ListLiteral):
        return list(expr.items)
    return []


def _check_tree_depth(root: Expr) -> None:
    """Reject trees too deep to evaluate; walks iteratively."""
    pending = [(root, 1)]
    while pending:
        expr, depth = pending.pop()
        if depth > MAX_TREE_DEPTH:
            raise ExpressionSyntaxError(
                f"Expression is more than {MAX_TREE_DEPTH} operations deep",
                expr.start,
                expr.end,
            )
        pending.extend((child, depth + 1) for child in _children(expr))

def parse_expr(source: str) -> Expr:
    """Parse an expression string into an AST.

    Args:
        source: Expression string without braces (e.g., ``@title | capitalize``)

    Returns:
        Parsed expression AST.

    Raises:
        ExpressionSyntaxError: If the expression is invalid.
    """
    tokens = tokenize(source)
    parser = _Parser(tokens)
    if parser.current.kind == TokenKind.EOF:
        raise ExpressionSyntaxError("Empty expression", 0, len(source))

    expr = parser.parse_or_expr()

    # Ensure all tokens consumed
    if parser.current.kind != TokenKind.EOF:
        raise parser._unexpected(parser.current)

    _check_tree_depth(expr)
    return expr
