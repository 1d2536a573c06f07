"""Content and attribute directives: text, raw/html, attr, attribute-style.

- ``text="user.name"`` replaces the content with the escaped value
- ``raw="post.body"`` / ``html="post.body"`` replace it unescaped
- ``attr="href=url, title=label"`` sets several attributes
- ``href="url"``, ``class="...``, ``data-id="..."`` (any other prefixed
  attribute) set that one attribute, from an expression or from text
  with ``{expr}`` interpolation (``href="/users/{user.id}"``)

Attribute values go through the runtime's attribute rendering: None and
False omit the attribute, True renders it bare, anything else is escaped.

Thread Safety:
Stateless processors. Safe for concurrent use across threads.

"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, ClassVar

from ramita.errors import TemplateSyntaxError
from ramita.expressions import ExpressionMode, split_interpolation
from ramita.utils.text import split_top_level

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract
    from ramita.nodes import Element

ATTRIBUTE_NAME_RE = re.compile(r"[A-Za-z_:][-A-Za-z0-9_:.]*")


class TextDirective:
    """``text`` (escaped) and ``raw``/``html`` (unescaped) content."""

    names: ClassVar[tuple[str, ...]] = ("text", "raw", "html")
    priority: ClassVar[int] = 170
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        if context.directive == "text":
            code = context.compile(expression, ExpressionMode.TEXT)
        else:
            code = f"_s({context.compile(expression)})"
        context.replace_content(node, *context.echo(code))


class AttrDirective:
    """``attr="name=expr, other=expr"``: set several attributes.

    Values are calculation-mode expressions. A name listed twice keeps the
    last value.

    """

    names: ClassVar[tuple[str, ...]] = ("attr",)
    priority: ClassVar[int] = 180
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        for part in split_top_level(expression):
            if not part.strip():
                continue
            name, equals, value = part.partition("=")
            name = name.strip()
            if not equals or not ATTRIBUTE_NAME_RE.fullmatch(name) or value.startswith("="):
                raise TemplateSyntaxError(f"Invalid attribute assignment '{part.strip()}'")
            code = context.compile(value.strip(), ExpressionMode.CALCULATION)
            context.set_attribute_code(node, name, code)


class AttributeDirective:
    """Any other prefixed attribute: ``th:href="url"`` sets ``href``.

    Registered as the registry fallback rather than under a name.

    """

    names: ClassVar[tuple[str, ...]] = ()
    priority: ClassVar[int] = 190
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        name = context.directive
        if not ATTRIBUTE_NAME_RE.fullmatch(name):
            raise TemplateSyntaxError(f"Invalid attribute name '{name}'")
        context.set_attribute_code(node, name, self._value_code(expression, context))

    def _value_code(self, expression: str, context: DirectiveContext) -> str:
        parts = split_interpolation(expression)
        if not any(is_expression for _, is_expression in parts):
            return context.compile(expression, ExpressionMode.CALCULATION)
        pieces = [
            context.compile(segment) if is_expression else repr(segment)
            for segment, is_expression in parts
        ]
        return f"_concat({', '.join(pieces)})"


__all__ = ["ATTRIBUTE_NAME_RE", "AttrDirective", "AttributeDirective", "TextDirective"]
