"""
docmark Intermediate Representation (IR) types.

All types are re-exported from this package.
"""

from .components import (
    AttributeDef,
    AttributeType,
    ComponentDefinition,
    ComponentSource,
    Validation,
    iter_slots,
    format_value,
    type_name,
)
from .expressions import (
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
from .nodes import (
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
    dump_tree,
)

__all__ = [
    # Nodes
    "AttributeKind",
    "AttributeValue",
    "ConditionalKind",
    "ConditionalOp",
    "ExprNode",
    "Node",
    "Position",
    "SlotMarker",
    "SourceSpan",
    "TagNode",
    "TextRun",
    "dump_tree",
    # Components
    "AttributeDef",
    "AttributeType",
    "ComponentDefinition",
    "ComponentSource",
    "Validation",
    "iter_slots",
    "format_value",
    "type_name",
    # Expressions
    "BinaryExpr",
    "BinaryOp",
    "Expr",
    "FieldAccess",
    "FilterCall",
    "ListLiteral",
    "Literal",
    "UnaryExpr",
    "UnaryOp",
    "Variable",
]
