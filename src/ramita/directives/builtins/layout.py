"""Layout directives: extend, section and yield.

A child template names its layout with ``extend`` and fills named regions
with ``section``; the layout marks where those regions go with ``yield``.

Example:
    child:   <div th:extend="layouts/base">
               <main th:section="content">Hi</main>
             </div>
    layout:  <body><div th:yield="content, 'Nothing here'"></div></body>

The child's own output is discarded once a layout takes over; only its
sections survive.

Thread Safety:
Stateless processors. Safe for concurrent use across threads.

"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from ramita.expressions import ExpressionMode
from ramita.utils.text import split_top_level

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract
    from ramita.nodes import Element


class ExtendDirective:
    """``extend="layouts/base"``: render this template inside a layout.

    The element's own tags are dropped and its children hoisted. When a
    template executes several extends, the last one wins.

    """

    names: ClassVar[tuple[str, ...]] = ("extend",)
    priority: ClassVar[int] = 10
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        layout = context.literal_name(expression, "layout")
        context.insert_before(node, context.statement(f"ctx.extend({layout!r})"))
        node.omit_tag = True


class SectionDirective:
    """``section="content"``: capture the element's output under a name.

    The captured markup is rendered where a layout yields it, not in place.
    The element's own tags are dropped.

    """

    names: ClassVar[tuple[str, ...]] = ("section",)
    priority: ClassVar[int] = 30
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        name = context.literal_name(expression, "section")
        context.insert_before(node, context.statement(f"ctx.start_section({name!r})"))
        context.insert_after(node, context.statement("ctx.end_section()"))
        node.omit_tag = True


class YieldDirective:
    """``yield="content"`` or ``yield="content, 'default'"``.

    Replaces the element's content with the captured section, or with the
    escaped default (a calculation-mode expression) when the section was
    never defined.

    """

    names: ClassVar[tuple[str, ...]] = ("yield",)
    priority: ClassVar[int] = 120
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        parts = split_top_level(expression)
        name = context.literal_name(parts[0] if parts else "", "section")
        default = ",".join(parts[1:]).strip()
        default_code = context.compile(default, ExpressionMode.CALCULATION) if default else "None"
        context.replace_content(node, *context.echo(f"ctx.yield_section({name!r}, {default_code})"))


__all__ = ["ExtendDirective", "SectionDirective", "YieldDirective"]
