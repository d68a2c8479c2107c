"""
Component registry for docmark.

Loads component sources (YAML frontmatter + body markup) into
``ComponentDefinition`` objects keyed by a dotted name derived from each
source's registration key:

    _components/foo-bar/baz.md  →  Component.FooBar.Baz
    _topics/getting-started.md  →  Topic.GettingStarted
    widgets/button.md           →  Component.Widgets.Button  (prefix added)

Loading is per entry: a broken source is skipped and its diagnostic kept
in ``load_errors``; the rest of the registry still loads. The registry is
read-only once built.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from pathlib import PurePosixPath
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .builtins import BUILTIN_SOURCES
from .errors import Diagnostic, DocmarkError, LabeledSpan, NameCollision, SchemaError, at
from .ir.components import AttributeDef, ComponentDefinition, ComponentSource, iter_slots
from .ir.nodes import Node, Position, SourceSpan, TextRun
from .parser import parse_markup

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)
_SEGMENT_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_\-]*$")

_SPECIAL_SEGMENTS = {
    "_components": "Component",
    "_topics": "Topic",
}


class ComponentFrontmatter(BaseModel):
    """Frontmatter block of a component source."""

    attributes: list[AttributeDef] = Field(default_factory=list)
    description: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


def to_camel_case(segment: str) -> str:
    """``foo-bar_baz`` → ``FooBarBaz``."""
    pieces = re.split(r"[-_]", segment)
    return "".join(p[:1].upper() + p[1:] for p in pieces)


def derive_component_name(key: str, prefix: str = "Component") -> str:
    """
    Derive the dotted component name for a registration key.

    Raises:
        SchemaError: If a path segment does not start with a letter or has
            characters other than alphanumerics, underscores and hyphens.
    """
    path = PurePosixPath(key.replace("\\", "/"))
    if not path.name:
        raise SchemaError(f"Invalid component key `{key}`: empty path", origin=key)
    segments = list(path.with_suffix("").parts)

    parts: list[str] = []
    for segment in segments:
        if segment in _SPECIAL_SEGMENTS:
            parts.append(_SPECIAL_SEGMENTS[segment])
            continue
        if not segment[:1].isascii() or not segment[:1].isalpha():
            raise SchemaError(
                f"Invalid component key `{key}`: all parts of the component path "
                "must start with a letter",
                origin=key,
            )
        if not _SEGMENT_RE.match(segment):
            raise SchemaError(
                f"Invalid component key `{key}`: path can only include "
                "alphanumerics, underscores, and hyphens",
                origin=key,
            )
        parts.append(to_camel_case(segment))

    if segments[0] not in _SPECIAL_SEGMENTS and prefix:
        parts.insert(0, prefix)
    return ".".join(parts)


def split_frontmatter(text: str) -> tuple[str | None, int]:
    """
    Locate YAML frontmatter.

    Returns:
        ``(frontmatter_text, body_offset)``; frontmatter is None when the
        source has no ``---`` block.
    """
    m = _FRONTMATTER_RE.match(text)
    if m is None:
        return None, 0
    return m.group(1), m.end()


def load_component(source: ComponentSource, name: str) -> ComponentDefinition:
    """
    Load one component source.

    Raises:
        SchemaError: Invalid frontmatter, schema or body.
    """
    frontmatter_text, body_offset = split_frontmatter(source.text)
    frontmatter_span = SourceSpan(
        start=Position(), end=Position().advance(source.text[:body_offset])
    )
    schema = _parse_schema(frontmatter_text, source.key, frontmatter_span)

    result = parse_markup(source.text, origin=source.key, start=body_offset)
    if not result.ok:
        diagnostic = result.diagnostics[0]
        raise SchemaError(
            f"Invalid component body: {diagnostic.message}",
            list(diagnostic.spans),
            source.key,
        )

    body = _trim_whitespace(result.nodes)
    slots = list(iter_slots(body))
    if len(slots) > 1:
        raise SchemaError(
            f"Component `{name}` has {len(slots)} slots; at most one `<Slot />` is allowed",
            [LabeledSpan(span=slots[0].span, label="First slot")]
            + [LabeledSpan(span=s.span, label="Extra slot") for s in slots[1:]],
            source.key,
        )

    return ComponentDefinition(
        name=name, key=source.key, schema=schema, body=body, source=source.text
    )


def _parse_schema(text: str | None, key: str, span: SourceSpan) -> list[AttributeDef]:
    if text is None:
        return []
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML frontmatter: {e}", at(span), key) from e

    if data is None:
        return []
    if not isinstance(data, dict):
        raise SchemaError("Frontmatter must be a mapping", at(span), key)

    try:
        frontmatter = ComponentFrontmatter.model_validate(data)
    except ValidationError as e:
        raise SchemaError(_format_validation_error(e), at(span), key) from e

    seen: set[str] = set()
    for attr in frontmatter.attributes:
        if attr.title in seen:
            raise SchemaError(f"Duplicate attribute title '{attr.title}'", at(span), key)
        seen.add(attr.title)
    return frontmatter.attributes


def _format_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(p) for p in first["loc"])
    message = first["msg"].removeprefix("Value error, ")
    if first["type"] == "missing":
        return f"Missing field `{loc}` in component schema"
    if first["type"] == "extra_forbidden":
        return f"Unknown field `{loc}` in component schema"
    return f"Invalid component schema at `{loc}`: {message}" if loc else message


def _trim_whitespace(nodes: list[Node]) -> list[Node]:
    start, end = 0, len(nodes)
    while start < end and isinstance(nodes[start], TextRun) and nodes[start].is_whitespace:
        start += 1
    while end > start and isinstance(nodes[end - 1], TextRun) and nodes[end - 1].is_whitespace:
        end -= 1
    return nodes[start:end]


class ComponentRegistry:
    """Derived component name → ComponentDefinition."""

    def __init__(
        self,
        definitions: dict[str, ComponentDefinition] | None = None,
        load_errors: list[Diagnostic] | None = None,
    ) -> None:
        self._definitions = dict(definitions or {})
        self.load_errors: list[Diagnostic] = list(load_errors or [])

    @classmethod
    def load(
        cls,
        sources: Iterable[ComponentSource],
        *,
        prefix: str = "Component",
        strict_collisions: bool = False,
        include_builtins: bool = True,
    ) -> ComponentRegistry:
        """
        Build a registry from component sources.

        Args:
            sources: Component sources with explicit registration keys
            prefix: Namespace for keys outside ``_components``/``_topics``
            strict_collisions: Report name collisions as diagnostics
            include_builtins: Register ``Fragment``, ``Card`` and ``Callout``

        Returns:
            The registry; per-entry failures are listed in ``load_errors``.
        """
        definitions: dict[str, ComponentDefinition] = {}
        errors: list[Diagnostic] = []

        entries: list[tuple[ComponentSource, bool]] = []
        if include_builtins:
            entries.extend((s, True) for s in BUILTIN_SOURCES)
        entries.extend((s, False) for s in sources)

        for source, builtin in entries:
            try:
                name = (
                    PurePosixPath(source.key).stem
                    if builtin
                    else derive_component_name(source.key, prefix)
                )
                if name in definitions:
                    existing = definitions[name]
                    if strict_collisions:
                        raise NameCollision(
                            f"Component name `{name}` from `{source.key}` collides with "
                            f"`{existing.key}`",
                            origin=source.key,
                        )
                    logger.warning(
                        "Component name %s from %s collides with %s; keeping %s",
                        name,
                        source.key,
                        existing.key,
                        existing.key,
                    )
                    continue
                definitions[name] = load_component(source, name)
                logger.debug("Loaded component %s from %s", name, source.key)
            except DocmarkError as e:
                logger.debug("Skipping component %s: %s", source.key, e)
                errors.append(e.with_origin(source.key).to_diagnostic())

        return cls(definitions, errors)

    def resolve(self, name: str) -> ComponentDefinition | None:
        return self._definitions.get(name)

    def names(self) -> list[str]:
        return sorted(self._definitions)

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[ComponentDefinition]:
        return iter(self._definitions.values())
