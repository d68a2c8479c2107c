"""
Expression evaluator for the docmark expression language.

Evaluates expression AST nodes against an ``ExpressionContext``.
Pure evaluation: no I/O, no side effects, no use of Python's eval().

Value semantics:
- Everything is truthy except ``null`` and ``false``.
- ``||`` and ``&&`` short-circuit and return an operand, not a boolean.
- Unknown variables and missing mapping keys evaluate to ``null``.
- Arithmetic and ordering apply to numbers only; ``==``/``!=`` compare
  values of the same type, and anything compares with ``null``.
- Mappings are only reachable through dot access. An expression whose
  value is a mapping or a list is rejected.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from docmark.core.errors import (
    ArityError,
    ExpressionError,
    FilterTypeError,
    InvalidOperation,
    UnknownFilter,
    UnsupportedType,
)
from docmark.core.expression_lang.filters import FilterRegistry
from docmark.core.expression_lang.parser import parse_expr
from docmark.core.ir.components import format_value, type_name
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


@dataclass(frozen=True)
class ExpressionContext:
    """
    Variables visible to an expression.

    ``attributes`` are the resolved attributes of the enclosing component
    and shadow ``ambient`` variables (e.g. ``user_preferences``) of the
    same name.
    """

    attributes: Mapping[str, Any] = field(default_factory=dict)
    ambient: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))
        object.__setattr__(self, "ambient", MappingProxyType(dict(self.ambient)))

    def lookup(self, name: str) -> Any:
        if name in self.attributes:
            return self.attributes[name]
        return self.ambient.get(name)

    def with_attributes(self, attributes: Mapping[str, Any]) -> ExpressionContext:
        """A context for a component body: new attributes, same ambient."""
        return ExpressionContext(attributes=attributes, ambient=self.ambient)


def is_truthy(value: Any) -> bool:
    """Everything except ``None`` and ``False`` is truthy."""
    return value is not None and value is not False


def evaluate(expr: Expr, context: ExpressionContext, filters: FilterRegistry) -> Any:
    """Evaluate an expression against a context.

    Args:
        expr: Parsed expression AST.
        context: Variables visible to the expression.
        filters: Filters callable from the expression.

    Returns:
        A scalar: str, int, float, bool, or None.

    Raises:
        ExpressionError: If evaluation fails. Offsets are relative to the
            expression source.
    """
    return _scalar(_interpret(expr, context, filters), expr)


def evaluate_source(source: str, context: ExpressionContext, filters: FilterRegistry) -> Any:
    """Parse and evaluate an expression string (without braces)."""
    return evaluate(parse_expr(source), context, filters)


def _scalar(value: Any, expr: Expr) -> Any:
    if isinstance(value, Mapping | list | tuple):
        raise UnsupportedType(
            f"Expression evaluates to a value of type `{type_name(value)}`, "
            "which cannot be used here",
            expr.start,
            expr.end,
        )
    return value


def _interpret(expr: Expr, ctx: ExpressionContext, filters: FilterRegistry) -> Any:
    """Dispatch evaluation to the appropriate handler."""
    if isinstance(expr, Literal):
        return expr.value

    if isinstance(expr, Variable):
        return ctx.lookup(expr.name)

    if isinstance(expr, FieldAccess):
        return _interpret_field_access(expr, ctx, filters)

    if isinstance(expr, BinaryExpr):
        return _interpret_binary(expr, ctx, filters)

    if isinstance(expr, UnaryExpr):
        return _interpret_unary(expr, ctx, filters)

    if isinstance(expr, FilterCall):
        return _interpret_filter_call(expr, ctx, filters)

    if isinstance(expr, ListLiteral):
        raise UnsupportedType("List values are not supported", expr.start, expr.end)

    raise UnsupportedType(f"Unknown expression type: {type(expr).__name__}", 0, 0)


def _interpret_field_access(
    expr: FieldAccess, ctx: ExpressionContext, filters: FilterRegistry
) -> Any:
    target = _interpret(expr.target, ctx, filters)
    if target is None:
        return None
    if isinstance(target, Mapping):
        return target.get(expr.field)
    raise InvalidOperation(
        f"Could not find field `{expr.field}` on `{type_name(target)}` `{format_value(target)}`",
        expr.start,
        expr.end,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _same_type(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return True
    return type(left) is type(right)


def _describe(value: Any) -> str:
    return "null" if value is None else format_value(value)


def _invalid_binary(expr: BinaryExpr, left: Any, right: Any) -> InvalidOperation:
    return InvalidOperation(
        f"Cannot apply operation `{expr.op.value}` on values `{_describe(left)}` with type "
        f"`{type_name(left)}` and `{_describe(right)}` with type `{type_name(right)}`",
        expr.start,
        expr.end,
    )


def _interpret_binary(expr: BinaryExpr, ctx: ExpressionContext, filters: FilterRegistry) -> Any:
    """Evaluate a binary expression."""
    # Short-circuit for logical operators
    if expr.op == BinaryOp.AND:
        left = _operand(expr.left, ctx, filters)
        if not is_truthy(left):
            return left
        return _operand(expr.right, ctx, filters)

    if expr.op == BinaryOp.OR:
        left = _operand(expr.left, ctx, filters)
        if is_truthy(left):
            return left
        return _operand(expr.right, ctx, filters)

    left = _operand(expr.left, ctx, filters)
    right = _operand(expr.right, ctx, filters)

    # Null-aware equality
    if expr.op in (BinaryOp.EQ, BinaryOp.NE):
        if left is None or right is None:
            equal = left is None and right is None
        elif _same_type(left, right):
            equal = left == right
        else:
            raise _invalid_binary(expr, left, right)
        return equal if expr.op == BinaryOp.EQ else not equal

    if not (_is_number(left) and _is_number(right)):
        raise _invalid_binary(expr, left, right)

    # Arithmetic
    if expr.op == BinaryOp.ADD:
        return left + right
    if expr.op == BinaryOp.SUB:
        return left - right
    if expr.op == BinaryOp.MUL:
        return left * right
    if expr.op == BinaryOp.DIV:
        if right == 0:
            raise InvalidOperation("Division by zero", expr.start, expr.end)
        return left / right

    # Comparison
    if expr.op == BinaryOp.LT:
        return left < right
    if expr.op == BinaryOp.GT:
        return left > right
    if expr.op == BinaryOp.LE:
        return left <= right
    if expr.op == BinaryOp.GE:
        return left >= right

    raise InvalidOperation(f"Unknown binary op: {expr.op}", expr.start, expr.end)


def _interpret_unary(expr: UnaryExpr, ctx: ExpressionContext, filters: FilterRegistry) -> Any:
    """Evaluate a unary expression."""
    val = _operand(expr.operand, ctx, filters)
    if expr.op == UnaryOp.NOT:
        return not is_truthy(val)
    if _is_number(val):
        return -val
    raise InvalidOperation(
        f"Cannot apply operation `{expr.op.value}` on value `{_describe(val)}` "
        f"with type `{type_name(val)}`",
        expr.start,
        expr.end,
    )


def _interpret_filter_call(
    expr: FilterCall, ctx: ExpressionContext, filters: FilterRegistry
) -> Any:
    """Evaluate a filter application. Arguments are evaluated left to right."""
    if expr.name not in filters:
        raise UnknownFilter(f"Unknown filter `{expr.name}`", expr.start, expr.end)

    args = [_operand(arg, ctx, filters) for arg in expr.args]
    try:
        return filters.apply(expr.name, args)
    except FilterTypeError as err:
        if err.argument is not None and err.argument < len(expr.args):
            target: Expr = expr.args[err.argument]
            raise _relocate(err, target.start, target.end) from None
        raise _relocate(err, expr.start, expr.end) from None
    except (ArityError, UnknownFilter) as err:
        raise _relocate(err, expr.start, expr.end) from None


def _operand(expr: Expr, ctx: ExpressionContext, filters: FilterRegistry) -> Any:
    """Evaluate a sub-expression whose value feeds an operator or filter."""
    return _scalar(_interpret(expr, ctx, filters), expr)


def _relocate(err: ExpressionError, start: int, end: int) -> ExpressionError:
    if err.start == err.end == 0:
        err.start, err.end = start, end
    return err
