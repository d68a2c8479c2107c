"""
Document compiler: parse, expand, and collect diagnostics.

``Compiler.compile`` is the document boundary. Errors raised while
parsing or expanding one document become diagnostics on its
``CompileResult``; the registry and other documents are unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import Diagnostic, DocmarkError, render_diagnostic
from .expander import DEFAULT_MAX_DEPTH, Expander
from .expression_lang import ExpressionContext, FilterRegistry
from .ir.components import ComponentSource
from .ir.nodes import Node
from .manifest import DocmarkConfig
from .parser import parse_markup
from .registry import ComponentRegistry

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Expanded nodes, or the diagnostics that stopped compilation."""

    nodes: list[Node] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    origin: str | None = None

    @property
    def ok(self) -> bool:
        return not self.diagnostics


class Compiler:
    """Compiles documents against a shared, read-only component registry."""

    def __init__(
        self,
        registry: ComponentRegistry,
        filters: FilterRegistry | None = None,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        ambient: Mapping[str, Any] | None = None,
    ):
        self.registry = registry
        self.filters = (filters or FilterRegistry.default()).freeze()
        self.ambient = dict(ambient or {})
        self.expander = Expander(registry, self.filters, max_depth=max_depth)

    @classmethod
    def from_config(
        cls,
        config: DocmarkConfig,
        sources: Iterable[ComponentSource],
        filters: FilterRegistry | None = None,
    ) -> Compiler:
        """Build the registry from ``sources`` using the ``[compiler]`` settings."""
        settings = config.compiler
        registry = ComponentRegistry.load(
            sources,
            prefix=settings.component_prefix,
            strict_collisions=settings.strict_collisions,
            include_builtins=settings.include_builtins,
        )
        return cls(registry, filters, max_depth=settings.max_depth, ambient=config.context)

    def compile(
        self,
        text: str,
        origin: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> CompileResult:
        """
        Compile one document.

        Args:
            text: Document markup
            origin: Document path, attached to diagnostics
            context: Extra ambient variables, overriding configured ones

        Returns:
            CompileResult; ``ok`` when no diagnostics were produced.
        """
        parsed = parse_markup(text, origin)
        if not parsed.ok:
            return CompileResult(diagnostics=parsed.diagnostics, origin=origin)

        ctx = ExpressionContext(ambient={**self.ambient, **(context or {})})
        try:
            nodes = self.expander.expand(parsed.nodes, ctx)
        except DocmarkError as e:
            logger.debug("Compilation of %s failed: %s", origin or "<input>", e)
            return CompileResult(diagnostics=[e.with_origin(origin).to_diagnostic()], origin=origin)
        return CompileResult(nodes=nodes, origin=origin)

    def source_for(self, origin: str | None) -> str | None:
        """Source text of a component key, for rendering its diagnostics."""
        if origin is None:
            return None
        for definition in self.registry:
            if definition.key == origin:
                return definition.source
        return None

    def render_diagnostics(self, result: CompileResult, document: str) -> str:
        """Render every diagnostic of ``result`` against the right source text."""
        blocks = []
        for diagnostic in result.diagnostics:
            if diagnostic.origin == result.origin:
                source = document
            else:
                source = self.source_for(diagnostic.origin)
            blocks.append(render_diagnostic(diagnostic, source))
        return "\n\n".join(blocks)
