"""
Expression types for docmark IR.

Typed AST for the ``{...}`` expression language used in prose and in
attribute values.

Supports:
- Literals: 42, 1.5, "text", 'text', true, false, null
- Variables: @title, @user_preferences.plan
- Logic: ||, &&, !
- Comparison: ==, !=, <, >, <=, >=
- Arithmetic: +, -, *, /
- Filters: "teddy" | append(" bear") | capitalize, append("teddy", " bear")

Every node records ``start``/``end`` offsets into the expression source so
evaluation errors can point at the offending sub-expression.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


class BinaryOp(StrEnum):
    """Binary operators for expressions."""

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    # Logical
    AND = "&&"
    OR = "||"


class UnaryOp(StrEnum):
    """Unary operators for expressions."""

    NEG = "-"
    NOT = "!"


# ---------------------------------------------------------------------------
# AST node types
# ---------------------------------------------------------------------------


class Literal(BaseModel):
    """A literal value: int, float, str, bool, or None (null)."""

    value: int | float | str | bool | None = Field(description="The literal value")
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.value is None:
            return "null"
        if isinstance(self.value, str):
            return f'"{self.value}"'
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


class Variable(BaseModel):
    """Variable lookup: ``@name``."""

    name: str = Field(description="Variable name without the @ sigil")
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"@{self.name}"


class FieldAccess(BaseModel):
    """
    Dot access into a mapping value.

    Examples:
        - FieldAccess(target=Variable(name="user_preferences"), field="plan")
          → @user_preferences.plan
    """

    target: Expr
    field: str
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.target}.{self.field}"


class BinaryExpr(BaseModel):
    """Binary operation: left op right."""

    op: BinaryOp
    left: Expr
    right: Expr
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"({self.left} {self.op.value} {self.right})"


class UnaryExpr(BaseModel):
    """Unary operation: op operand."""

    op: UnaryOp
    operand: Expr
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.op.value}{self.operand}"


class FilterCall(BaseModel):
    """
    Filter application: name(arg1, arg2, ...).

    Pipelines are desugared at parse time: ``a | f(b)`` and ``f(a, b)``
    both produce ``FilterCall(name="f", args=[a, b])``.
    """

    name: str = Field(description="Filter name")
    args: list[Expr] = Field(default_factory=list, description="Arguments")
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        args_str = ", ".join(str(a) for a in self.args)
        return f"{self.name}({args_str})"


class ListLiteral(BaseModel):
    """``[a, b, c]``. Parsed so it can be rejected with a precise error."""

    items: list[Expr] = Field(default_factory=list)
    start: int = 0
    end: int = 0

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return "[" + ", ".join(str(i) for i in self.items) + "]"


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

Expr = Literal | Variable | FieldAccess | BinaryExpr | UnaryExpr | FilterCall | ListLiteral

# Rebuild models for recursive forward references
FieldAccess.model_rebuild()
BinaryExpr.model_rebuild()
UnaryExpr.model_rebuild()
FilterCall.model_rebuild()
ListLiteral.model_rebuild()
