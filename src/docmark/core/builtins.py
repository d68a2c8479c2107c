"""
Built-in components and primitive tags.

Built-in components are ordinary component sources registered under their
bare names (``Card``, not ``Component.Card``) ahead of user components.

Primitive tags are not components: the expander resolves their attributes
and expands their children, then hands them to the renderer unchanged.
"""

from __future__ import annotations

from .ir.components import ComponentSource

PRIMITIVE_TAGS: frozenset[str] = frozenset(
    {"Box", "Flex", "Grid", "Tabs", "Tab", "Steps", "Step", "CodeSelect"}
)

FRAGMENT_SOURCE = """\
---
attributes: []
---
<Slot />
"""

CARD_SOURCE = """\
---
attributes:
  - title: pad
    default: 3
    validation:
      is_a: number
      is_one_of: [0, 1, 2, 3, 4, 5]
  - title: href
    description: Makes the whole card a link
    validation:
      is_a: text
---
<Box class="d-card" padding={@pad} href={@href}>
<Slot />
</Box>
"""

CALLOUT_SOURCE = """\
---
attributes:
  - title: type
    default: info
    validation:
      is_a: text
      is_one_of: [info, success, warning, error]
  - title: pad
    default: 2
    validation:
      is_a: number
      is_one_of: [0, 1, 2, 3, 4, 5]
---
<Box padding={@pad} max_width="full" class={"d-callout d-callout-" | append(@type)}>
<Slot />
</Box>
"""

BUILTIN_SOURCES: tuple[ComponentSource, ...] = (
    ComponentSource(key="Fragment.md", text=FRAGMENT_SOURCE),
    ComponentSource(key="Card.md", text=CARD_SOURCE),
    ComponentSource(key="Callout.md", text=CALLOUT_SOURCE),
)


def is_primitive(name: str) -> bool:
    return name in PRIMITIVE_TAGS
