"""
Filter registry for the docmark expression language.

A filter is a named function applied to a value, either in pipeline form
(``"foo" | append(" bar")``) or as a call (``append("foo", " bar")``).
The piped value is always the first argument.

Filters validate their own argument types and raise ``FilterTypeError``
naming the offending argument. Arity is checked by the registry before
the function runs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from docmark.core.errors import ArityError, FilterTypeError, UnknownFilter
from docmark.core.ir.components import format_value, type_name

logger = logging.getLogger(__name__)

FilterFunc = Callable[..., Any]

_ORDINALS = ("first", "second", "third", "fourth", "fifth")


def _ordinal(index: int) -> str:
    return _ORDINALS[index] if index < len(_ORDINALS) else f"#{index + 1}"


@dataclass(frozen=True)
class FilterSpec:
    """A registered filter and the number of arguments it accepts."""

    name: str
    func: FilterFunc
    min_arity: int
    max_arity: int | None = None

    def accepts(self, count: int) -> bool:
        if count < self.min_arity:
            return False
        return self.max_arity is None or count <= self.max_arity

    def describe_arity(self) -> str:
        if self.max_arity == self.min_arity:
            return str(self.min_arity)
        if self.max_arity is None:
            return f"at least {self.min_arity}"
        return f"{self.min_arity} to {self.max_arity}"


class FilterRegistry:
    """Name → filter table. Frozen registries reject further registration."""

    def __init__(self) -> None:
        self._filters: dict[str, FilterSpec] = {}
        self._frozen = False

    @classmethod
    def default(cls) -> FilterRegistry:
        """A fresh, unfrozen registry holding the built-in filters."""
        registry = cls()
        registry.register("capitalize", capitalize, 1, 1)
        registry.register("append", append, 2, 2)
        registry.register("prepend", prepend, 2, 2)
        registry.register("upcase", upcase, 1, 1)
        registry.register("downcase", downcase, 1, 1)
        registry.register("length", length, 1, 1)
        return registry

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self, name: str, func: FilterFunc, min_arity: int, max_arity: int | None = None
    ) -> None:
        """Register ``func`` under ``name``. Re-registering a name replaces it."""
        if self._frozen:
            raise RuntimeError(f"Cannot register filter '{name}': registry is frozen")
        if min_arity < 0 or (max_arity is not None and max_arity < min_arity):
            raise ValueError(f"Invalid arity for filter '{name}': {min_arity}..{max_arity}")
        if name in self._filters:
            logger.debug("Replacing filter %s", name)
        self._filters[name] = FilterSpec(name, func, min_arity, max_arity)

    def freeze(self) -> FilterRegistry:
        self._frozen = True
        return self

    def get(self, name: str) -> FilterSpec | None:
        return self._filters.get(name)

    def names(self) -> list[str]:
        return sorted(self._filters)

    def __contains__(self, name: object) -> bool:
        return name in self._filters

    def apply(self, name: str, args: list[Any]) -> Any:
        """
        Run a filter by name.

        Raises:
            UnknownFilter: No filter is registered under ``name``.
            ArityError: Wrong number of arguments.
            FilterTypeError: Raised by the filter itself.
        """
        spec = self._filters.get(name)
        if spec is None:
            raise UnknownFilter(f"Unknown filter `{name}`")
        if not spec.accepts(len(args)):
            raise ArityError(
                f"Wrong number of arguments for filter `{name}`. "
                f"Expected {spec.describe_arity()} argument(s), found {len(args)}"
            )
        return spec.func(*args)


# =============================================================================
# Built-in filters
# =============================================================================


def expect_text(filter_name: str, args: tuple[Any, ...], index: int) -> str:
    """Return ``args[index]`` if it is text, else raise ``FilterTypeError``."""
    value = args[index]
    if not isinstance(value, str):
        shown = "null" if value is None else format_value(value)
        raise FilterTypeError(
            f"Unexpected argument to filter `{filter_name}`. Expected a `text` as the "
            f"{_ordinal(index)} argument, found `{shown}` "
            f"with type `{type_name(value)}`",
            argument=index,
        )
    return value


def capitalize(*args: Any) -> str:
    s = expect_text("capitalize", args, 0)
    return s[:1].upper() + s[1:]


def append(*args: Any) -> str:
    front = expect_text("append", args, 0)
    back = expect_text("append", args, 1)
    return front + back


def prepend(*args: Any) -> str:
    back = expect_text("prepend", args, 0)
    front = expect_text("prepend", args, 1)
    return front + back


def upcase(*args: Any) -> str:
    return expect_text("upcase", args, 0).upper()


def downcase(*args: Any) -> str:
    return expect_text("downcase", args, 0).lower()


def length(*args: Any) -> int:
    return len(expect_text("length", args, 0))
