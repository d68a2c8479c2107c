"""Shared pytest fixtures for docmark tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from docmark.core.compiler import Compiler, CompileResult
from docmark.core.expression_lang import ExpressionContext, FilterRegistry
from docmark.core.ir.components import ComponentSource
from docmark.core.registry import ComponentRegistry

BADGE_SOURCE = """\
---
attributes:
  - title: label
    required: true
    validation:
      is_a: text
  - title: size
    default: md
    validation:
      is_a: text
      is_one_of: [sm, md, lg]
---
<Box class={"badge-" | append(@size)}>{@label | capitalize}</Box>
"""

PANEL_SOURCE = """\
---
attributes:
  - title: heading
    validation:
      is_a: text
---
<Box class="panel">
<Box class="panel-heading">{@heading || "Untitled"}</Box>
<Slot />
</Box>
"""


def make_sources(**components: str) -> list[ComponentSource]:
    """``make_sources(**{"_components/badge.md": text})`` → component sources."""
    return [ComponentSource(key=key, text=text) for key, text in components.items()]


@pytest.fixture
def filters() -> FilterRegistry:
    """Return a frozen registry holding the built-in filters."""
    return FilterRegistry.default().freeze()


@pytest.fixture
def context() -> ExpressionContext:
    """Return a context with a few ambient variables."""
    return ExpressionContext(
        ambient={
            "user_preferences": {"plan": "pro", "theme": "dark"},
            "name": "teddy",
            "count": 3,
            "flag": 0,
            "enabled": False,
        }
    )


@pytest.fixture
def registry() -> ComponentRegistry:
    """Return a registry with the built-ins plus Badge and Panel components."""
    return ComponentRegistry.load(
        make_sources(
            **{
                "_components/badge.md": BADGE_SOURCE,
                "_components/panel.md": PANEL_SOURCE,
            }
        )
    )


@pytest.fixture
def make_compiler() -> Callable[..., Compiler]:
    """Return a factory building a compiler from ``key=text`` component sources."""

    def factory(
        components: dict[str, str] | None = None,
        *,
        max_depth: int = 64,
        ambient: dict[str, Any] | None = None,
        strict_collisions: bool = False,
    ) -> Compiler:
        registry = ComponentRegistry.load(
            make_sources(**(components or {})), strict_collisions=strict_collisions
        )
        return Compiler(registry, max_depth=max_depth, ambient=ambient)

    return factory


@pytest.fixture
def compile_doc(make_compiler: Callable[..., Compiler]) -> Callable[..., CompileResult]:
    """Return a helper compiling one document against ``Badge`` and ``Panel``."""

    def compile_(text: str, components: dict[str, str] | None = None, **kwargs: Any):
        sources = {
            "_components/badge.md": BADGE_SOURCE,
            "_components/panel.md": PANEL_SOURCE,
            **(components or {}),
        }
        context = kwargs.pop("context", None)
        return make_compiler(sources, **kwargs).compile(text, origin="doc.md", context=context)

    return compile_
