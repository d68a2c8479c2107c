"""
Property-based tests using Hypothesis.

These tests check invariants of the parser and the compiler across
generated markup rather than hand-picked examples.
"""

from __future__ import annotations

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from docmark.core.compiler import Compiler
from docmark.core.errors import ErrorKind
from docmark.core.expander import MAX_NESTING_DEPTH, Expander
from docmark.core.expression_lang import ExpressionContext, FilterRegistry
from docmark.core.ir.components import ComponentSource
from docmark.core.parser import parse_markup
from docmark.core.registry import ComponentRegistry

BADGE = """\
---
attributes:
  - title: label
    required: true
---
<Box class="badge">{@label | upcase}</Box>
"""

PANEL = """\
---
attributes:
  - title: heading
    default: Untitled
---
<Box class="panel">{@heading}<Slot /></Box>
"""


def _make_compiler() -> Compiler:
    registry = ComponentRegistry.load(
        [
            ComponentSource(key="_components/badge.md", text=BADGE),
            ComponentSource(key="_components/panel.md", text=PANEL),
        ]
    )
    return Compiler(registry, ambient={"name": "teddy", "count": 3, "flag": True})


COMPILER = _make_compiler()

# Fragments that may combine into anything, balanced or not.
TOKENS = [
    "<Box>",
    "</Box>",
    "<Tabs>",
    "</Tabs>",
    '<Tab title="t">',
    "</Tab>",
    "<Card>",
    "</Card>",
    '<Component.Badge label="x" />',
    "<Component.Badge />",
    "<Component.Panel>",
    "</Component.Panel>",
    "<Component.Missing />",
    "<Slot />",
    "<Box if={@flag}>",
    "<Box elseif={@count > 1}>",
    "<Box else>",
    "{@name}",
    "{@count + 1}",
    "{@name | upcase}",
    "{@name | append(1)}",
    "{(((1)))}",
    "{",
    "}",
    "\\{",
    "<",
    "<div>",
    "text",
    " ",
    "\n",
    '"',
    "=",
]

# Well-formed fragments built only from known tags and components.
_LEAVES = st.sampled_from(
    [
        "text ",
        "{@name}",
        "{@count * 2}",
        '<Component.Badge label="hi" />',
        '<Box if={@flag}>yes</Box><Box else>no</Box>',
        '<Tabs><Tab title="a">x</Tab><Tab title="b">y</Tab></Tabs>',
    ]
)


def _wrap(children: st.SearchStrategy[str]) -> st.SearchStrategy[str]:
    return st.tuples(
        st.sampled_from(["Box", "Grid", "Card", "Fragment", "Component.Panel"]),
        st.lists(children, max_size=3),
    ).map(lambda t: f"<{t[0]}>" + "".join(t[1]) + f"</{t[0]}>")


WELL_FORMED = st.lists(st.recursive(_LEAVES, _wrap, max_leaves=10), max_size=4).map("".join)

TAG_NAMES = st.from_regex(r"[A-Z][A-Za-z0-9]{0,6}", fullmatch=True).filter(lambda n: n != "Slot")


# =============================================================================
# Parser Property Tests
# =============================================================================


class TestParserProperties:
    """Property-based tests for the markup parser."""

    @given(st.text(max_size=500))
    @settings(max_examples=200)
    def test_parse_never_crashes_on_arbitrary_input(self, text: str) -> None:
        """Invariant: parse_markup returns nodes or diagnostics, never raises."""
        result = parse_markup(text)
        assert result.ok or (result.diagnostics and not result.nodes)

    @given(TAG_NAMES, TAG_NAMES, st.text(alphabet="abc xyz\n", max_size=20))
    @settings(max_examples=200)
    def test_mismatched_close_tag(self, opened: str, closed: str, body: str) -> None:
        """Invariant: <A>...</B> always reports UnmatchedTag naming both tags."""
        assume(opened != closed)
        result = parse_markup(f"<{opened}>{body}</{closed}>")
        assert not result.ok
        diagnostic = result.diagnostics[0]
        assert diagnostic.kind == ErrorKind.UNMATCHED_TAG
        assert diagnostic.message == (
            f"Unexpected closing tag `</{closed}>`, expected closing tag for `<{opened}>`"
        )
        assert [s.label for s in diagnostic.spans] == ["Opening tag", "Expected close tag"]
        assert diagnostic.spans[0].span.start.offset == 0


# =============================================================================
# Compiler Property Tests
# =============================================================================


class TestCompilerProperties:
    """Property-based tests for the document boundary."""

    @given(st.lists(st.sampled_from(TOKENS), max_size=40).map("".join))
    @settings(max_examples=300, deadline=None)
    def test_compile_only_produces_diagnostics(self, text: str) -> None:
        """Invariant: compile never raises; failures are rendered diagnostics."""
        result = COMPILER.compile(text, origin="doc.md")
        if result.ok:
            return
        assert len(result.diagnostics) == 1
        rendered = COMPILER.render_diagnostics(result, text)
        assert rendered.startswith(f"error[{result.diagnostics[0].kind}]")

    @given(st.integers(min_value=0, max_value=3 * MAX_NESTING_DEPTH))
    @settings(max_examples=30, deadline=None)
    def test_nesting_depth_is_a_diagnostic(self, depth: int) -> None:
        """Invariant: nesting compiles up to the ceiling and fails cleanly past it."""
        result = COMPILER.compile("<Box>" * depth + "x" + "</Box>" * depth)
        if depth <= MAX_NESTING_DEPTH:
            assert result.ok
        else:
            assert result.diagnostics[0].kind == ErrorKind.RECURSION_LIMIT_EXCEEDED

    @given(WELL_FORMED)
    @settings(max_examples=150, deadline=None)
    def test_well_formed_markup_compiles(self, text: str) -> None:
        """Invariant: balanced markup of known tags and valid calls compiles."""
        result = COMPILER.compile(text)
        assert result.ok, result.diagnostics

    @given(WELL_FORMED)
    @settings(max_examples=150, deadline=None)
    def test_expansion_is_idempotent(self, text: str) -> None:
        """Invariant: expanding an expanded tree returns the same tree."""
        result = COMPILER.compile(text)
        assume(result.ok)
        expander = Expander(
            ComponentRegistry.load([]), FilterRegistry.default().freeze(), max_depth=1
        )
        assert expander.expand(result.nodes, ExpressionContext()) == result.nodes
