"""Form directives: method, csrf, field and errors.

Example:
    <form th:method="PUT" th:csrf>
      <input th:field="user.email">
      <span th:errors="email"></span>
    </form>

Compiles so that the form submits as POST with a hidden ``_method`` field,
carries the CSRF token field first, binds the input's name, id and value
to ``user.email``, and shows the field's validation messages only when
there are any.

Thread Safety:
Stateless processors. Safe for concurrent use across threads.

"""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING, ClassVar

from ramita.directives.contracts import FIELD_CONTRACT, FORM_CONTRACT
from ramita.nodes import Attribute, Element, ElementState
from ramita.runtime import SPOOFED_METHODS
from ramita.utils.text import unquote

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract

LITERAL_METHODS = frozenset(["GET", "POST", *SPOOFED_METHODS])

_PLAIN_PATH_RE = re.compile(r"^\$?[A-Za-z_]\w*(?:\.\w+)*$")

# Input types that never carry a bound value
_NO_VALUE_TYPES = frozenset(["password", "file", "submit", "button", "reset", "image"])


def _hidden_input(name: str, value: str) -> Element:
    return Element(
        tag="input",
        attributes=[
            Attribute("type", "hidden"),
            Attribute("name", name),
            Attribute("value", value),
        ],
        state=ElementState.DONE,
    )


class MethodDirective:
    """``method="PUT"``: form method with spoofing.

    GET and POST are set directly. PUT, PATCH and DELETE submit as POST with
    a hidden ``_method`` field as the form's first child. Any other
    expression is evaluated at render time and gets the same treatment.

    """

    names: ClassVar[tuple[str, ...]] = ("method",)
    priority: ClassVar[int] = 130
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = FORM_CONTRACT

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        literal = unquote(expression).upper()
        if literal in LITERAL_METHODS:
            if literal in SPOOFED_METHODS:
                node.set_attribute("method", "POST")
                node.prepend(_hidden_input("_method", literal))
            else:
                node.set_attribute("method", literal)
            return

        method = context.fresh("_method")
        context.insert_before(node, context.statement(f"{method} = {context.compile(expression)}"))
        context.set_attribute_code(node, "method", f"_form_method({method})")
        node.prepend(*context.echo(f"_method_field({method})"))


class CsrfDirective:
    """``csrf``: hidden CSRF token field as the form's first child.

    The token comes from the ``csrf_field`` helper, the ``csrf_token``
    helper or the session, in that order; with none available nothing is
    rendered.

    """

    names: ClassVar[tuple[str, ...]] = ("csrf",)
    priority: ClassVar[int] = 140
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = FORM_CONTRACT

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        node.prepend(*context.echo("ctx.csrf_field()"))


class FieldDirective:
    """``field="user.email"``: bind a form control to a value path.

    Derives ``name`` (last path segment) and ``id`` (dots become
    underscores) unless present, then binds the value by control kind:

    - text-like inputs: ``value``, unless the markup already has one
    - checkbox/radio: ``checked`` when the bound value matches the
      control's ``value`` (default ``1``); lists match by membership
    - textarea: content
    - select: ``selected`` on each matching option (string equality, or
      membership for lists)

    Password and file inputs never receive a value.

    """

    names: ClassVar[tuple[str, ...]] = ("field",)
    priority: ClassVar[int] = 150
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = FIELD_CONTRACT

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        path = expression.strip()
        if _PLAIN_PATH_RE.match(path):
            segments = path.lstrip("$").split(".")
            if not node.has_attribute("name"):
                node.set_attribute("name", segments[-1])
            if not node.has_attribute("id"):
                node.set_attribute("id", "_".join(segments))

        value = context.fresh("_field")
        context.insert_before(node, context.statement(f"{value} = {context.compile(path)}"))

        if node.name == "textarea":
            context.replace_content(node, *context.echo(f"_e({value})"))
        elif node.name == "select":
            self._bind_options(node, value, context)
        elif node.name == "input":
            self._bind_input(node, value, context)

    def _bind_input(self, node: Element, value: str, context: DirectiveContext) -> None:
        kind = (node.attribute_text("type") or "text").strip().lower()
        if kind in ("checkbox", "radio"):
            option = node.attribute_text("value", "1")
            context.set_attribute_code(node, "checked", f"_matches({value}, {option!r})")
        elif kind not in _NO_VALUE_TYPES and not node.has_attribute("value"):
            context.set_attribute_code(node, "value", value)

    def _bind_options(self, node: Element, value: str, context: DirectiveContext) -> None:
        for option in node.iter_elements():
            if option.name != "option":
                continue
            attr = option.get_attribute("value")
            if attr is not None and attr.dynamic:
                # Value only known at render time
                continue
            if attr is not None and attr.value is not None:
                option_value = attr.text or ""
            else:
                option_value = html.unescape(option.text_content()).strip()
            context.set_attribute_code(option, "selected", f"_matches({value}, {option_value!r})")


class ErrorsDirective:
    """``errors="email"``: validation messages for a field.

    A dotted path looks up its last segment (``user.email`` reads the
    ``email`` messages), matching the name ``field`` derives. ``*`` or
    ``all`` shows every message. The element renders only when
    there is at least one message; messages are escaped and joined with
    ``<br>``.

    """

    names: ClassVar[tuple[str, ...]] = ("errors",)
    priority: ClassVar[int] = 160
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        field = unquote(expression) or "*"
        if _PLAIN_PATH_RE.match(field):
            field = field.rsplit(".", 1)[-1].lstrip("$")
        context.wrap(node, f"if ctx.has_errors({field!r}):")
        context.replace_content(node, *context.echo(f"ctx.field_errors({field!r})"))


__all__ = [
    "CsrfDirective",
    "ErrorsDirective",
    "FieldDirective",
    "LITERAL_METHODS",
    "MethodDirective",
]
