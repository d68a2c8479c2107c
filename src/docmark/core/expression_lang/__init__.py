"""
docmark expression language.

Tokenizer, parser, evaluator, and filter registry for the ``{...}``
expressions used in prose and attribute values.

Usage:
    from docmark.core.expression_lang import ExpressionContext, FilterRegistry, evaluate_source

    filters = FilterRegistry.default().freeze()
    ctx = ExpressionContext(attributes={"name": "teddy"})
    result = evaluate_source('@name | append(" bear") | capitalize', ctx, filters)
    # result == "Teddy bear"
"""

from docmark.core.expression_lang.evaluator import (
    ExpressionContext,
    evaluate,
    evaluate_source,
    is_truthy,
)
from docmark.core.expression_lang.filters import FilterRegistry, FilterSpec
from docmark.core.expression_lang.parser import parse_expr

__all__ = [
    "ExpressionContext",
    "FilterRegistry",
    "FilterSpec",
    "evaluate",
    "evaluate_source",
    "is_truthy",
    "parse_expr",
]
