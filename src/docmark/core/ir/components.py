"""
Component definition types for docmark IR.

A component is a reusable template: an ordered attribute schema plus a
body of markup nodes that may contain one ``<Slot />`` and may reference
each declared attribute as ``@title``.

Schema entries are declared in YAML frontmatter::

    ---
    attributes:
      - title: size
        required: false
        default: md
        validation:
          is_a: text
          is_one_of: [sm, md, lg]
    ---
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .nodes import Node, SlotMarker, TagNode

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ScalarValue = bool | int | float | str


class AttributeType(StrEnum):
    """Declared attribute types (``validation.is_a``)."""

    ANY = "any"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        """Check a resolved value against this type. Booleans are not numbers."""
        if self == AttributeType.ANY:
            return True
        if self == AttributeType.TEXT:
            return isinstance(value, str)
        if self == AttributeType.BOOLEAN:
            return isinstance(value, bool)
        return isinstance(value, int | float) and not isinstance(value, bool)


def type_name(value: Any) -> str:
    """Human-readable type name of a runtime value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "text"
    if isinstance(value, list | tuple):
        return "list"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def format_value(value: Any) -> str:
    """Format a value the way it appears in prose and in messages."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class Validation(BaseModel):
    """``validation`` block of an attribute definition."""

    is_a: AttributeType = Field(default=AttributeType.ANY, description="Expected value type")
    is_one_of: list[ScalarValue] = Field(
        default_factory=list, description="Allowed values (empty = unrestricted)"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    def allowed_string(self) -> str:
        return ", ".join(format_value(v) for v in self.is_one_of)

    def allows(self, value: Any) -> bool:
        if not self.is_one_of:
            return True
        return any(_same_value(value, allowed) for allowed in self.is_one_of)


def _same_value(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


class AttributeDef(BaseModel):
    """
    Schema entry for one component attribute.

    Lookup is by ``title``; schema order only affects documentation.
    """

    title: str = Field(..., description="Attribute name, usable as @title in the body")
    required: bool = Field(default=False, description="Whether callers must supply it")
    default: ScalarValue | None = Field(default=None, description="Value when omitted")
    validation: Validation = Field(default_factory=Validation)
    description: str | None = Field(default=None, description="Human-readable description")

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Titles must be usable as variable names."""
        if not IDENTIFIER_RE.match(v):
            raise ValueError(
                f"Invalid title '{v}'. Titles can only include letters, digits and "
                "underscores, and must not start with a digit"
            )
        return v

    @model_validator(mode="after")
    def validate_consistency(self) -> AttributeDef:
        """Allowed values and default must agree with the declared type."""
        is_a = self.validation.is_a
        for allowed in self.validation.is_one_of:
            if not is_a.accepts(allowed):
                raise ValueError(
                    f"Mismatch in is_one_of for '{self.title}': expected {is_a}, "
                    f"found \"{format_value(allowed)}\" which is of type {type_name(allowed)}"
                )
        if self.default is not None:
            if not is_a.accepts(self.default):
                raise ValueError(
                    f"Mismatch in default for '{self.title}': expected {is_a}, "
                    f"found \"{format_value(self.default)}\" which is of type "
                    f"{type_name(self.default)}"
                )
            if not self.validation.allows(self.default):
                raise ValueError(
                    f"Invalid default for '{self.title}': found {format_value(self.default)}, "
                    f"expected one of {self.validation.allowed_string()}"
                )
        return self


class ComponentSource(BaseModel):
    """Raw component text plus the registration key supplied by the loader."""

    key: str = Field(..., description="Registration key, e.g. _components/foo-bar/baz.md")
    text: str = Field(..., description="Frontmatter + body markup")

    model_config = ConfigDict(frozen=True)


class ComponentDefinition(BaseModel):
    """A loaded component. Owned by the registry and never mutated."""

    name: str = Field(..., description="Derived dotted name, e.g. Component.FooBar.Baz")
    key: str = Field(..., description="Registration key it was loaded from")
    schema_: list[AttributeDef] = Field(default_factory=list, alias="schema")
    body: list[Node] = Field(default_factory=list)
    source: str = Field(default="", description="Full source text, for diagnostics")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def attributes(self) -> list[AttributeDef]:
        return self.schema_

    def get_attribute(self, title: str) -> AttributeDef | None:
        """Get attribute definition by title."""
        for attr in self.schema_:
            if attr.title == title:
                return attr
        return None

    @property
    def slot_count(self) -> int:
        return sum(1 for _ in iter_slots(self.body))


def iter_slots(nodes: list[Node]) -> Iterator[SlotMarker]:
    """Yield SlotMarkers anywhere in a node list, in document order."""
    pending = [iter(nodes)]
    while pending:
        node = next(pending[-1], None)
        if node is None:
            pending.pop()
        elif isinstance(node, SlotMarker):
            yield node
        elif isinstance(node, TagNode):
            pending.append(iter(node.children))
