"""
Tests for the expansion engine and the document compiler.

Covers:
- Component expansion with validated attributes
- Slots, lexical scoping and ambient context
- Built-in components (Fragment, Card, Callout)
- Conditionals inside documents and component bodies
- Structural checks after expansion
- Recursion ceiling, unknown components, misplaced slots
- Error origins and idempotent re-expansion
"""

from __future__ import annotations

import textwrap

import pytest

from docmark.core.compiler import Compiler
from docmark.core.errors import ErrorKind
from docmark.core.expander import MAX_NESTING_DEPTH, Expander
from docmark.core.expression_lang import ExpressionContext, FilterRegistry
from docmark.core.ir.nodes import AttributeKind, TagNode, TextRun
from docmark.core.registry import ComponentRegistry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SHADOW = textwrap.dedent("""\
    ---
    attributes:
      - title: name
        default: inner
    ---
    <Box>{@name}|<Slot /></Box>
""")

COUNTDOWN = textwrap.dedent("""\
    ---
    attributes:
      - title: n
        required: true
        validation:
          is_a: number
    ---
    {@n}<Component.Countdown if={@n > 0} n={@n - 1} />
""")

TAB_ITEM = textwrap.dedent("""\
    ---
    attributes:
      - title: title
        required: true
    ---
    <Tab title={@title}><Slot /></Tab>
""")

WRAPPER = "---\nattributes: []\n---\n<Box>\n  <Component.Badge />\n</Box>\n"


def _text(nodes: list) -> str:
    """Concatenate all text in a tree."""
    out = []
    for node in nodes:
        if isinstance(node, TextRun):
            out.append(node.value)
        elif isinstance(node, TagNode):
            out.append(_text(node.children))
    return "".join(out)


def _only(result) -> TagNode:
    assert result.ok, result.diagnostics
    tags = [n for n in result.nodes if isinstance(n, TagNode)]
    assert len(tags) == 1
    return tags[0]


def _diagnostic(result):
    assert not result.ok
    assert result.nodes == []
    assert len(result.diagnostics) == 1
    return result.diagnostics[0]


# =============================================================================
# Components
# =============================================================================


class TestComponentExpansion:
    """Tests for replacing call sites with component bodies."""

    def test_simple_component(self, compile_doc) -> None:
        box = _only(compile_doc('<Component.Badge label="new" />'))
        assert box.name == "Box"
        assert box.attributes["class"].value == "badge-md"
        assert box.children == [TextRun(value="New", span=box.children[0].span)]

    def test_supplied_attribute(self, compile_doc) -> None:
        box = _only(compile_doc('<Component.Badge label="x" size="lg" />'))
        assert box.attributes["class"].value == "badge-lg"

    def test_expression_attribute_uses_caller_context(self, compile_doc) -> None:
        result = compile_doc(
            "<Component.Badge label={@user_preferences.plan} />",
            context={"user_preferences": {"plan": "pro"}},
        )
        assert _text(result.nodes) == "Pro"

    def test_text_around_call_is_kept(self, compile_doc) -> None:
        result = compile_doc('Before <Component.Badge label="x" /> after')
        assert result.ok
        assert [type(n) for n in result.nodes] == [TextRun, TagNode, TextRun]

    def test_nested_component_calls(self, compile_doc) -> None:
        result = compile_doc(
            '<Component.Panel><Component.Badge label="inner" /></Component.Panel>'
        )
        assert result.ok
        assert _text(result.nodes).split() == ["Untitled", "Inner"]

    def test_ambient_context_reaches_component_bodies(self, compile_doc) -> None:
        plan = "---\nattributes: []\n---\n<Box>{@user_preferences.plan}</Box>"
        result = compile_doc(
            "<Component.Plan />",
            components={"_components/plan.md": plan},
            ambient={"user_preferences": {"plan": "team"}},
        )
        assert _text(result.nodes) == "team"

    def test_attributes_do_not_leak_into_nested_bodies(self, compile_doc) -> None:
        outer = "---\nattributes:\n  - title: label\n---\n<Component.Inner />"
        inner = '---\nattributes: []\n---\n{@label || "none"}'
        result = compile_doc(
            '<Component.Outer label="x" />',
            components={"_components/outer.md": outer, "_components/inner.md": inner},
        )
        assert _text(result.nodes) == "none"


class TestProse:
    """Tests for expressions in text."""

    def test_expression_becomes_text(self, compile_doc) -> None:
        result = compile_doc("Hello {@name | capitalize}!", context={"name": "teddy"})
        assert _text(result.nodes) == "Hello Teddy!"
        assert all(isinstance(n, TextRun) for n in result.nodes)

    def test_value_formatting(self, compile_doc) -> None:
        result = compile_doc("{1 + 1} {7 / 2} {4 / 2} {true} [{@missing}]")
        assert _text(result.nodes) == "2 3.5 2 true []"

    def test_expression_error_is_anchored(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("Hi {@name | shout}"))
        assert diagnostic.kind == ErrorKind.UNKNOWN_FILTER
        assert diagnostic.origin == "doc.md"
        span = diagnostic.primary_span
        assert (span.start.offset, span.end.offset) == (4, 17)

    def test_mapping_in_prose_is_rejected(self, compile_doc) -> None:
        result = compile_doc("{@user_preferences}", context={"user_preferences": {"a": 1}})
        assert _diagnostic(result).kind == ErrorKind.UNSUPPORTED_TYPE


class TestPrimitives:
    """Tests for primitive tags."""

    def test_expression_attributes_are_resolved(self, compile_doc) -> None:
        box = _only(
            compile_doc(
                "<Box class={@theme} hidden={@missing} pad={1 + 1} />",
                context={"theme": "dark"},
            )
        )
        assert list(box.attributes) == ["class", "pad"]
        assert box.attributes["class"].kind == AttributeKind.STRING
        assert box.attributes["class"].value == "dark"
        assert box.attributes["pad"].value == 2

    def test_lowercase_markup_is_untouched(self, compile_doc) -> None:
        result = compile_doc("<div class='x'>{@name}</div>", context={"name": "y"})
        assert _text(result.nodes) == "<div class='x'>y</div>"


# =============================================================================
# Slots
# =============================================================================


class TestSlots:
    """Tests for slot substitution."""

    def test_children_fill_slot(self, compile_doc) -> None:
        panel = _only(compile_doc('<Component.Panel heading="Hi">Body text</Component.Panel>'))
        assert panel.attributes["class"].value == "panel"
        heading = [c for c in panel.children if isinstance(c, TagNode)][0]
        assert _text([heading]) == "Hi"
        assert [c.value for c in panel.children if isinstance(c, TextRun)] == [
            "\n",
            "\n",
            "Body text",
            "\n",
        ]

    def test_empty_slot(self, compile_doc) -> None:
        panel = _only(compile_doc("<Component.Panel />"))
        assert _text(panel.children).split() == ["Untitled"]

    def test_slot_children_use_caller_scope(self, compile_doc) -> None:
        box = _only(
            compile_doc(
                "<Component.Shadow>{@name}</Component.Shadow>",
                components={"_components/shadow.md": SHADOW},
                ambient={"name": "outer"},
            )
        )
        assert [c.value for c in box.children] == ["inner", "|", "outer"]

    def test_slot_outside_component(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("<Box><Slot /></Box>"))
        assert diagnostic.kind == ErrorKind.INVALID_SLOT


# =============================================================================
# Built-ins
# =============================================================================


class TestBuiltins:
    """Tests for Fragment, Card and Callout."""

    def test_fragment_splices_children(self, compile_doc) -> None:
        result = compile_doc("<Fragment>a <Box /> b</Fragment>")
        assert result.ok
        assert [type(n) for n in result.nodes] == [TextRun, TagNode, TextRun]
        assert _text(result.nodes) == "a  b"

    def test_fragment_rejects_attributes(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc('<Fragment x="1" />'))
        assert diagnostic.kind == ErrorKind.UNDECLARED_ATTRIBUTE
        assert "Declared attributes: none" in diagnostic.message

    def test_card(self, compile_doc) -> None:
        box = _only(compile_doc("<Card>x</Card>"))
        assert box.attributes["class"].value == "d-card"
        assert box.attributes["padding"].value == 3
        assert "href" not in box.attributes
        assert _text(box.children).strip() == "x"

    def test_card_link(self, compile_doc) -> None:
        box = _only(compile_doc('<Card href="/docs" pad=1>x</Card>'))
        assert box.attributes["href"].value == "/docs"
        assert box.attributes["padding"].value == 1

    def test_callout_defaults(self, compile_doc) -> None:
        box = _only(compile_doc("<Callout>Note</Callout>"))
        assert box.attributes["class"].value == "d-callout d-callout-info"
        assert box.attributes["padding"].value == 2
        assert box.attributes["max_width"].value == "full"

    def test_callout_coerces_text_padding(self, compile_doc) -> None:
        box = _only(compile_doc('<Callout type="warning" pad="4">Careful</Callout>'))
        assert box.attributes["class"].value == "d-callout d-callout-warning"
        assert box.attributes["padding"].value == 4
        assert box.attributes["padding"].kind == AttributeKind.INTEGER

    def test_callout_rejects_unknown_type(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc('<Callout type="danger">x</Callout>'))
        assert diagnostic.kind == ErrorKind.INVALID_ATTRIBUTE_VALUE
        assert diagnostic.origin == "doc.md"
        assert "expected one of info, success, warning, error" in diagnostic.message


# =============================================================================
# Conditionals and structure
# =============================================================================


class TestConditionalExpansion:
    """Tests for conditionals during expansion."""

    def test_chain_of_components(self, compile_doc) -> None:
        text = (
            '<Component.Badge if={@plan == "pro"} label="pro" />\n'
            '<Component.Badge else label="free" />'
        )
        assert _text(compile_doc(text, context={"plan": "pro"}).nodes) == "Pro"
        assert _text(compile_doc(text, context={"plan": "x"}).nodes) == "Free"

    def test_false_chain_skips_validation(self, compile_doc) -> None:
        result = compile_doc("<Component.Badge if={false} />")
        assert result.ok
        assert result.nodes == []

    def test_conditional_in_body_uses_attributes(self, compile_doc) -> None:
        toggle = textwrap.dedent("""\
            ---
            attributes:
              - title: open
                default: false
                validation:
                  is_a: boolean
            ---
            <Box if={@open}>open</Box><Box else>closed</Box>
        """)
        components = {"_components/toggle.md": toggle}
        assert _text(compile_doc("<Component.Toggle />", components).nodes) == "closed"
        assert _text(compile_doc("<Component.Toggle open />", components).nodes) == "open"

    def test_nested_conditionals(self, compile_doc) -> None:
        text = "<Box><Box if={@a}>a</Box><Box else>b</Box></Box>"
        assert _text(compile_doc(text, context={"a": True}).nodes) == "a"


class TestStructure:
    """Tests for container checks on expanded children."""

    def test_tabs_preserve_order(self, compile_doc) -> None:
        text = '<Tabs>\n<Tab title="A">a</Tab>\n<Tab title="B">b</Tab>\n</Tabs>'
        tabs = _only(compile_doc(text))
        titles = [c.attributes["title"].value for c in tabs.children if isinstance(c, TagNode)]
        assert titles == ["A", "B"]

    def test_component_expanding_to_tab(self, compile_doc) -> None:
        result = compile_doc(
            '<Tabs><Component.TabItem title="A">a</Component.TabItem></Tabs>',
            components={"_components/tab-item.md": TAB_ITEM},
        )
        tabs = _only(result)
        assert [c.name for c in tabs.children] == ["Tab"]

    def test_wrong_child(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc('<Tabs><Tab title="A" /><Box /></Tabs>'))
        assert diagnostic.kind == ErrorKind.STRUCTURAL_VIOLATION

    def test_missing_title(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("<Steps><Step>one</Step></Steps>"))
        assert diagnostic.kind == ErrorKind.STRUCTURAL_VIOLATION
        assert "missing a `title`" in diagnostic.message

    def test_conditional_tab(self, compile_doc) -> None:
        text = '<Tabs>\n<Tab title="A" if={false} />\n<Tab title="B" />\n</Tabs>'
        tabs = _only(compile_doc(text))
        assert [c.attributes["title"].value for c in tabs.children if isinstance(c, TagNode)] == [
            "B"
        ]


# =============================================================================
# Errors
# =============================================================================


class TestExpansionErrors:
    """Tests for unknown components, recursion, and error origins."""

    def test_unknown_component(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("<Component.Nope />"))
        assert diagnostic.kind == ErrorKind.UNKNOWN_COMPONENT
        assert diagnostic.message == "Unknown component `<Component.Nope>`"

    def test_infinite_recursion(self, compile_doc) -> None:
        loop = "---\nattributes: []\n---\n<Component.Loop />"
        diagnostic = _diagnostic(
            compile_doc("<Component.Loop />", components={"_components/loop.md": loop}, max_depth=5)
        )
        assert diagnostic.kind == ErrorKind.RECURSION_LIMIT_EXCEEDED
        assert diagnostic.origin == "_components/loop.md"
        assert "depth of 5" in diagnostic.message

    def test_bounded_recursion(self, compile_doc) -> None:
        components = {"_components/countdown.md": COUNTDOWN}
        result = compile_doc("<Component.Countdown n=3 />", components, max_depth=4)
        assert _text(result.nodes) == "3210"

    def test_depth_ceiling_is_exact(self, compile_doc) -> None:
        components = {"_components/countdown.md": COUNTDOWN}
        result = compile_doc("<Component.Countdown n=3 />", components, max_depth=3)
        assert _diagnostic(result).kind == ErrorKind.RECURSION_LIMIT_EXCEEDED

    def test_deeply_nested_primitives(self, compile_doc) -> None:
        text = "<Box>" * 400 + "x" + "</Box>" * 400
        diagnostic = _diagnostic(compile_doc(text))
        assert diagnostic.kind == ErrorKind.RECURSION_LIMIT_EXCEEDED
        assert diagnostic.message == (
            f"Maximum tag nesting depth of {MAX_NESTING_DEPTH} exceeded at `<Box>`"
        )
        assert diagnostic.primary_span.start.offset == len("<Box>") * MAX_NESTING_DEPTH

    def test_primitive_nesting_at_ceiling(self, compile_doc) -> None:
        depth = MAX_NESTING_DEPTH
        result = compile_doc("<Box>" * depth + "x" + "</Box>" * depth)
        assert result.ok
        assert _text(result.nodes) == "x"

    def test_recursion_at_largest_max_depth(self, compile_doc) -> None:
        loop = "---\nattributes: []\n---\n<Component.Loop />"
        result = compile_doc(
            "<Component.Loop />",
            components={"_components/loop.md": loop},
            max_depth=MAX_NESTING_DEPTH,
        )
        diagnostic = _diagnostic(result)
        assert diagnostic.kind == ErrorKind.RECURSION_LIMIT_EXCEEDED
        assert f"component nesting depth of {MAX_NESTING_DEPTH}" in diagnostic.message

    def test_primitives_in_bodies_count_towards_nesting(self, compile_doc) -> None:
        loop = "---\nattributes: []\n---\n<Box><Component.Loop /></Box>"
        result = compile_doc(
            "<Component.Loop />",
            components={"_components/loop.md": loop},
            max_depth=MAX_NESTING_DEPTH,
        )
        diagnostic = _diagnostic(result)
        assert diagnostic.kind == ErrorKind.RECURSION_LIMIT_EXCEEDED
        assert "tag nesting depth" in diagnostic.message
        assert diagnostic.origin == "_components/loop.md"

    def test_long_expression_is_a_diagnostic(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("{@name" + " | upcase" * 1000 + "}"))
        assert diagnostic.kind == ErrorKind.EXPRESSION_SYNTAX_ERROR

    def test_max_depth_is_bounded(self) -> None:
        with pytest.raises(ValueError, match=f"between 1 and {MAX_NESTING_DEPTH}, got 500"):
            Compiler(ComponentRegistry.load([]), max_depth=500)
        with pytest.raises(ValueError, match="got 0"):
            Compiler(ComponentRegistry.load([]), max_depth=0)

    def test_error_in_body_has_component_origin(self, compile_doc) -> None:
        result = compile_doc(
            "<Component.Wrapper />", components={"_components/wrapper.md": WRAPPER}
        )
        diagnostic = _diagnostic(result)
        assert diagnostic.kind == ErrorKind.MISSING_REQUIRED_ATTRIBUTE
        assert diagnostic.origin == "_components/wrapper.md"
        start = diagnostic.primary_span.start
        assert (start.line, start.column) == (5, 3)

    def test_render_uses_component_source(self, make_compiler) -> None:
        compiler = make_compiler({"_components/wrapper.md": WRAPPER})
        result = compiler.compile("<Component.Wrapper />", origin="doc.md")
        rendered = compiler.render_diagnostics(result, "<Component.Wrapper />")
        assert "error[UnknownComponent]" in rendered
        assert "--> _components/wrapper.md:5:3" in rendered
        assert "    5 |   <Component.Badge />" in rendered

    def test_parse_error(self, compile_doc) -> None:
        diagnostic = _diagnostic(compile_doc("<A>text</B>"))
        assert diagnostic.kind == ErrorKind.UNMATCHED_TAG
        assert diagnostic.origin == "doc.md"


# =============================================================================
# Compiler and expander API
# =============================================================================


class TestCompiler:
    """Tests for the document boundary."""

    def test_failure_does_not_affect_next_document(self, make_compiler) -> None:
        compiler = make_compiler()
        assert not compiler.compile("<Component.Nope />").ok
        assert compiler.compile("<Card>ok</Card>").ok

    def test_filters_are_frozen(self, make_compiler) -> None:
        assert make_compiler().filters.frozen

    def test_custom_filter(self) -> None:
        filters = FilterRegistry.default()
        filters.register("shout", lambda *args: str(args[0]).upper() + "!", 1, 1)
        compiler = Compiler(ComponentRegistry.load([]), filters)
        result = compiler.compile('{"hi" | shout}')
        assert _text(result.nodes) == "HI!"

    def test_context_overrides_ambient(self, make_compiler) -> None:
        compiler = make_compiler(ambient={"name": "ambient"})
        assert _text(compiler.compile("{@name}").nodes) == "ambient"
        assert _text(compiler.compile("{@name}", context={"name": "doc"}).nodes) == "doc"

    def test_expansion_is_idempotent(self, compile_doc) -> None:
        result = compile_doc(
            'Intro <Component.Badge label="x" /> <Card href="/a">{@name}</Card>'
            '<Callout type="success">ok</Callout>',
            context={"name": "teddy"},
        )
        assert result.ok
        expander = Expander(
            ComponentRegistry.load([]), FilterRegistry.default().freeze(), max_depth=1
        )
        again = expander.expand(result.nodes, ExpressionContext())
        assert again == result.nodes
