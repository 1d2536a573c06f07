"""Fragment directives: fragment, include and replace.

A fragment is a named, parameterized subtree:

    <div th:fragment="card(user, showActions)">...</div>

It compiles to a nested function registered on the render's fragment
registry when the defining element executes; the definition site renders
nothing. ``include`` renders a fragment as the element's content,
``replace`` renders it in place of the whole element:

    <div th:include="card(currentUser, true)"></div>
    <div th:replace="'partials/cards' :: card(user)"></div>

A reference with a template path imports that template's fragments first
(the path gets the template suffix unless it already has one). Unknown
fragments and unloadable templates render as nothing.

Reference grammar:
    ["templatePath" "::"] fragmentName ["(" [arg ("," arg)*] ")"]

Thread Safety:
Stateless processors. Safe for concurrent use across threads.

"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from ramita.errors import TemplateSyntaxError
from ramita.expressions import ExpressionMode
from ramita.utils.text import is_identifier, split_top_level, unquote

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract
    from ramita.nodes import Element

_CALL_RE = re.compile(r"^\s*(?P<name>[A-Za-z_][\w\-]*)\s*(?:\((?P<args>.*)\))?\s*$", re.DOTALL)


@dataclass(frozen=True, slots=True)
class FragmentReference:
    """A parsed include/replace target.

    Attributes:
        template: Template path before ``::`` (None for local fragments)
        name: Fragment name
        args: Argument expressions, in order

    """

    template: str | None
    name: str
    args: tuple[str, ...] = ()


def _split_call(text: str, what: str) -> tuple[str, list[str]]:
    """Split ``name(a, b)`` into the name and its stripped arguments."""
    if not _parens_balanced(text):
        raise TemplateSyntaxError(f"Mismatched parentheses in {what}", expression=text)
    match = _CALL_RE.match(text)
    if match is None:
        raise TemplateSyntaxError(f"Invalid {what}; expected name or name(...)", expression=text)
    inner = match.group("args")
    if inner is None or not inner.strip():
        return match.group("name"), []
    args = [arg.strip() for arg in split_top_level(inner)]
    if any(not arg for arg in args):
        raise TemplateSyntaxError(f"Empty argument in {what}", expression=text)
    return match.group("name"), args


def parse_signature(text: str) -> tuple[str, tuple[str, ...]]:
    """Parse a fragment declaration ``name(param, ...)``.

    Raises:
        TemplateSyntaxError: On mismatched parentheses, non-identifier or
            duplicate parameters.

    Example:
        >>> parse_signature("card(user, showActions)")
        ('card', ('user', 'showActions'))

    """
    name, params = _split_call(text, "fragment signature")
    for param in params:
        if not is_identifier(param):
            raise TemplateSyntaxError(f"Invalid fragment parameter '{param}'", expression=text)
    if len(set(params)) != len(params):
        raise TemplateSyntaxError("Duplicate fragment parameter", expression=text)
    return name, tuple(params)


def parse_reference(text: str) -> FragmentReference:
    """Parse an include/replace target.

    Example:
        >>> parse_reference("'partials/cards' :: card(user)")
        FragmentReference(template='partials/cards', name='card', args=('user',))

    """
    template: str | None = None
    separator = _find_separator(text)
    rest = text
    if separator != -1:
        template = unquote(text[:separator])
        if not template:
            raise TemplateSyntaxError("Missing template path before '::'", expression=text)
        rest = text[separator + 2 :]
    name, args = _split_call(rest, "fragment reference")
    return FragmentReference(template, name, tuple(args))


def _parens_balanced(text: str) -> bool:
    quote = ""
    depth = 0
    for char in text:
        if quote:
            if char == quote:
                quote = ""
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0 and not quote


def _find_separator(text: str) -> int:
    """Offset of the first ``::`` outside quotes and parentheses, or -1."""
    quote = ""
    depth = 0
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = ""
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == ":" and depth == 0 and text.startswith("::", index):
            return index
    return -1


class FragmentDirective:
    """``fragment="card(user, showActions)"``: declare a reusable subtree.

    Parameters are bound as locals visible to the element's subtree;
    arguments missing at the call site are None. Redeclaring a name
    replaces the earlier fragment for the rest of the render.

    """

    names: ClassVar[tuple[str, ...]] = ("fragment",)
    priority: ClassVar[int] = 20
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        name, params = parse_signature(expression)
        function = context.fresh("_frag_" + re.sub(r"\W", "_", name))
        arguments = ", ".join(f"{context.bind(param)}=None" for param in params)

        context.insert_before(
            node,
            context.open(f"def {function}({arguments}):"),
            context.statement("ctx.push_buffer()"),
        )
        context.insert_after(
            node,
            context.statement("return ctx.pop_buffer()"),
            context.close(f"ctx.fragments.register({name!r}, {params!r}, {function})"),
        )


def _call_code(reference: FragmentReference, context: DirectiveContext) -> str:
    args = "".join(f"{context.compile(arg, ExpressionMode.CALCULATION)}, " for arg in reference.args)
    if reference.template is None:
        return f"ctx.render_fragment({reference.name!r}, ({args}))"
    template = context.template_path(reference.template)
    return f"ctx.render_fragment({reference.name!r}, ({args}), {template!r})"


class IncludeDirective:
    """``include="card(user)"``: render a fragment as the element's content."""

    names: ClassVar[tuple[str, ...]] = ("include",)
    priority: ClassVar[int] = 110
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        code = _call_code(parse_reference(expression), context)
        context.replace_content(node, *context.echo(code))


class ReplaceDirective:
    """``replace="card(user)"``: render a fragment instead of the element."""

    names: ClassVar[tuple[str, ...]] = ("replace",)
    priority: ClassVar[int] = 100
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        code = _call_code(parse_reference(expression), context)
        context.replace_element(node, *context.echo(code))


__all__ = [
    "FragmentDirective",
    "FragmentReference",
    "IncludeDirective",
    "ReplaceDirective",
    "parse_reference",
    "parse_signature",
]
