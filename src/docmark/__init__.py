"""
docmark - a compiler for component-extended documentation markup.

Parses prose mixed with typed, schema-validated components, conditional
blocks, filter expressions and slots, and expands it into a validated
content tree for a renderer.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version

# Re-export commonly used types for convenience
from .core import ir
from .core.compiler import CompileResult, Compiler
from .core.errors import Diagnostic, DocmarkError, render_diagnostic
from .core.ir.components import ComponentSource
from .core.registry import ComponentRegistry


def _get_version() -> str:
    try:
        return _metadata_version("docmark")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    "ir",
    "CompileResult",
    "Compiler",
    "ComponentRegistry",
    "ComponentSource",
    "Diagnostic",
    "DocmarkError",
    "render_diagnostic",
]
