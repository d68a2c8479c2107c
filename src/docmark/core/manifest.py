"""
Project configuration (``docmark.toml``).

Example:

    [compiler]
    max_depth = 64
    strict_collisions = false
    component_prefix = "Component"
    include_builtins = true

    [context.user_preferences]
    plan = "pro"
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .expander import MAX_NESTING_DEPTH

CONFIG_FILENAME = "docmark.toml"


@dataclass
class CompilerConfig:
    """Settings for registry loading and expansion."""

    max_depth: int = 64
    strict_collisions: bool = False
    component_prefix: str = "Component"
    include_builtins: bool = True


@dataclass
class DocmarkConfig:
    """Complete project configuration."""

    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    context: dict[str, Any] = field(default_factory=dict)  # ambient variables

    @property
    def user_preferences(self) -> dict[str, Any]:
        prefs = self.context.get("user_preferences", {})
        return prefs if isinstance(prefs, dict) else {}


def _expect(section: str, key: str, value: Any, kind: type) -> Any:
    # bool is an int subclass
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"[{section}] {key} must be {kind.__name__}, got {value!r}")
    return value


def load_config(path: Path | None) -> DocmarkConfig:
    """
    Load ``docmark.toml``.

    A missing file yields the defaults.

    Raises:
        ValueError: Invalid TOML or invalid setting values.
    """
    if path is None or not path.exists():
        return DocmarkConfig()

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    compiler_data = data.get("compiler", {})
    context_data = data.get("context", {})
    if not isinstance(compiler_data, dict):
        raise ValueError("[compiler] must be a table")
    if not isinstance(context_data, dict):
        raise ValueError("[context] must be a table")

    unknown = set(compiler_data) - set(CompilerConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown [compiler] setting(s): {', '.join(sorted(unknown))}")

    defaults = CompilerConfig()
    max_depth = _expect(
        "compiler", "max_depth", compiler_data.get("max_depth", defaults.max_depth), int
    )
    if not 1 <= max_depth <= MAX_NESTING_DEPTH:
        raise ValueError(
            f"[compiler] max_depth must be between 1 and {MAX_NESTING_DEPTH}, got {max_depth}"
        )

    compiler = CompilerConfig(
        max_depth=max_depth,
        strict_collisions=_expect(
            "compiler",
            "strict_collisions",
            compiler_data.get("strict_collisions", defaults.strict_collisions),
            bool,
        ),
        component_prefix=_expect(
            "compiler",
            "component_prefix",
            compiler_data.get("component_prefix", defaults.component_prefix),
            str,
        ),
        include_builtins=_expect(
            "compiler",
            "include_builtins",
            compiler_data.get("include_builtins", defaults.include_builtins),
            bool,
        ),
    )

    return DocmarkConfig(compiler=compiler, context=dict(context_data))
