"""Core docmark functionality: IR, markup parser, component registry, expansion, diagnostics."""

from . import ir
from .compiler import CompileResult, Compiler
from .conditionals import ConditionalChain, group_conditionals, resolve_conditionals
from .errors import (
    AttributeValidationError,
    ConditionalError,
    Diagnostic,
    DocmarkError,
    ErrorKind,
    ExpansionError,
    ExpressionError,
    LabeledSpan,
    ParseError,
    SchemaError,
    render_diagnostic,
)
from .expander import Expander
from .expression_lang import (
    ExpressionContext,
    FilterRegistry,
    evaluate,
    evaluate_source,
    parse_expr,
)
from .manifest import CompilerConfig, DocmarkConfig, load_config
from .parser import ParseResult, parse_markup
from .registry import ComponentRegistry, derive_component_name
from .validator import validate_attributes

__all__ = [
    "ir",
    # Errors
    "AttributeValidationError",
    "ConditionalError",
    "Diagnostic",
    "DocmarkError",
    "ErrorKind",
    "ExpansionError",
    "ExpressionError",
    "LabeledSpan",
    "ParseError",
    "SchemaError",
    "render_diagnostic",
    # Pipeline
    "ParseResult",
    "parse_markup",
    "ComponentRegistry",
    "derive_component_name",
    "validate_attributes",
    "ExpressionContext",
    "FilterRegistry",
    "evaluate",
    "evaluate_source",
    "parse_expr",
    "ConditionalChain",
    "group_conditionals",
    "resolve_conditionals",
    "Expander",
    "CompileResult",
    "Compiler",
    # Configuration
    "CompilerConfig",
    "DocmarkConfig",
    "load_config",
]
