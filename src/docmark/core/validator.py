"""
Attribute validation for component call sites.

Checks the attributes supplied on a ``TagNode`` against the schema of the
component it names and produces the attribute mapping its body is
expanded with.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .errors import (
    ExpressionError,
    InvalidAttributeType,
    InvalidAttributeValue,
    MissingRequiredAttribute,
    UndeclaredAttribute,
    at,
)
from .expression_lang import ExpressionContext, FilterRegistry, evaluate_source
from .ir.components import AttributeDef, AttributeType, ComponentDefinition, format_value, type_name
from .ir.nodes import AttributeValue, TagNode

logger = logging.getLogger(__name__)

_TRUE_FALSE = {"true": True, "false": False}
_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?")


def resolve_value(
    value: AttributeValue, context: ExpressionContext, filters: FilterRegistry
) -> Any:
    """
    Turn an attribute value into a runtime value.

    Literal values are returned as-is. Expression values are evaluated;
    errors are anchored at the expression's position in the source.
    """
    if not value.is_expression:
        return value.value
    source = str(value.value)
    try:
        return evaluate_source(source, context, filters)
    except ExpressionError as e:
        raise e.anchor(source, value.span.start.advance("{")) from None


def coerce(value: Any, is_a: AttributeType) -> Any:
    """
    Apply the only implicit conversions attributes get.

    - ``number``: a text value that parses as an int or float
    - ``boolean``: the texts ``"true"`` and ``"false"``
    """
    if not isinstance(value, str):
        return value
    if is_a == AttributeType.NUMBER:
        m = _NUMBER_RE.fullmatch(value.strip())
        if m is None:
            return value
        return float(m.group(0)) if m.group(1) else int(m.group(0))
    if is_a == AttributeType.BOOLEAN:
        return _TRUE_FALSE.get(value, value)
    return value


def validate_attributes(
    tag: TagNode,
    definition: ComponentDefinition,
    context: ExpressionContext,
    filters: FilterRegistry,
) -> dict[str, Any]:
    """
    Validate a call site against a component schema.

    Args:
        tag: The call site
        definition: Component being called
        context: Caller context, used to evaluate expression attributes
        filters: Filters available to those expressions

    Returns:
        Every schema attribute mapped to its resolved value (default or
        None when omitted).

    Raises:
        UndeclaredAttribute: Supplied attribute not in the schema
        MissingRequiredAttribute: Required attribute omitted or null
        InvalidAttributeType: Value does not match ``is_a``
        InvalidAttributeValue: Value not in ``is_one_of``
        ExpressionError: An attribute expression failed to evaluate
    """
    for name, supplied in tag.attributes.items():
        if definition.get_attribute(name) is None:
            declared = ", ".join(a.title for a in definition.attributes) or "none"
            raise UndeclaredAttribute(
                f'Unexpected attribute "{name}" for component `{definition.name}`. '
                f"Declared attributes: {declared}",
                at(supplied.span, "Undeclared attribute"),
            )

    resolved: dict[str, Any] = {}
    for attr in definition.attributes:
        supplied = tag.attributes.get(attr.title)
        value = None if supplied is None else resolve_value(supplied, context, filters)
        if value is None:
            if attr.required:
                raise MissingRequiredAttribute(
                    attr.title,
                    f"Missing required attribute `{attr.title}` for component `{definition.name}`",
                    at(tag.open_span, "Missing required attribute"),
                )
            resolved[attr.title] = attr.default
            continue
        assert supplied is not None
        resolved[attr.title] = _check_value(attr, coerce(value, attr.validation.is_a), supplied)

    logger.debug("Validated %d attribute(s) for %s", len(resolved), definition.name)
    return resolved


def _check_value(attr: AttributeDef, value: Any, supplied: AttributeValue) -> Any:
    validation = attr.validation
    if not validation.is_a.accepts(value):
        raise InvalidAttributeType(
            f"Unexpected type for attribute `{attr.title}`. Found `{format_value(value)}` "
            f"with type `{type_name(value)}`, expected `{validation.is_a}`",
            at(supplied.span, f"Expected {validation.is_a}"),
        )
    if not validation.allows(value):
        raise InvalidAttributeValue(
            f"Unexpected value for attribute `{attr.title}`. Found `{format_value(value)}`, "
            f"expected one of {validation.allowed_string()}",
            at(supplied.span, "Invalid value"),
        )
    return value
