"""Control-flow directives: repeat, if/unless, switch/case/default, with.

All of them wrap the element (or, for switch, its case children) in
generated blocks, and run before the element's children are processed.

Repeat forms:
    item items          item in items          item : items
    key,item items      (mappings yield key/value, sequences index/item)

Thread Safety:
Stateless processors. Safe for concurrent use across threads.

"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, ClassVar

from ramita.errors import TemplateSyntaxError
from ramita.expressions import ExpressionMode
from ramita.nodes import Element
from ramita.utils.text import is_identifier, split_top_level

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract

REPEAT_RE = re.compile(
    r"""
    ^\s*(?P<first>[A-Za-z_]\w*)
    (?:\s*,\s*(?P<second>[A-Za-z_]\w*))?
    (?:\s*:\s*|\s+in\s+|\s+)
    (?P<source>\S.*?)\s*$
    """,
    re.VERBOSE | re.DOTALL,
)


class RepeatDirective:
    """``repeat="item items"``: render the element once per item.

    Non-iterable sources iterate zero times. An expression that does not
    have the repeat shape renders the element once, without a loop, and
    logs a warning (strict mode raises instead).

    """

    names: ClassVar[tuple[str, ...]] = ("repeat",)
    priority: ClassVar[int] = 40
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        match = REPEAT_RE.match(expression)
        if match is None:
            context.degrade("Cannot parse repeat expression; expected 'item items' or 'key,item items'")
            return

        source = context.compile(match.group("source"))
        if match.group("second") is not None:
            key = context.bind(match.group("first"))
            item = context.bind(match.group("second"))
        else:
            key = context.fresh("_k")
            item = context.bind(match.group("first"))
        context.wrap(node, f"for {key}, {item} in _iter({source}):")


class ConditionalDirective:
    """``if="cond"`` / ``unless="cond"``: render the element conditionally.

    Both on one element nest, so the element renders when the ``if``
    condition holds and the ``unless`` condition does not.

    """

    names: ClassVar[tuple[str, ...]] = ("if", "unless")
    priority: ClassVar[int] = 50
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        condition = context.compile(expression, ExpressionMode.CONDITIONAL)
        if context.directive == "unless":
            context.wrap(node, f"if not {condition}:")
        else:
            context.wrap(node, f"if {condition}:")


class SwitchDirective:
    """``switch="user.role"`` with ``case``/``default`` on direct children.

    Exactly one clause renders: the first case equal to the subject, or
    every ``default`` child when no case matches. A clause spans from its
    case child up to the next case child, so markup between cases belongs
    to the preceding clause.

    Case values that are bare words (``case="admin"``) are string literals;
    anything else (``case="roles.admin"``, ``case="'a b'"``, ``case="3"``)
    is an expression.

    """

    names: ClassVar[tuple[str, ...]] = ("switch",)
    priority: ClassVar[int] = 60
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        clauses = self._collect_clauses(node, context)
        if not clauses:
            context.degrade("switch has no case or default children")
            return

        subject = context.compile(expression)
        values = [context.compile_case(value) for _, is_default, value in clauses if not is_default]
        selected = context.fresh("_sw")
        cases = "".join(f"{value}, " for value in values)

        first = clauses[0][0]
        context.insert_before(first, context.statement(f"{selected} = _switch_index({subject}, ({cases}))"))

        case_index = 0
        for position, (child, is_default, _) in enumerate(clauses):
            if position > 0:
                context.insert_before(child, context.close())
            if is_default:
                context.insert_before(child, context.open(f"if {selected} == -1:"))
            else:
                context.insert_before(child, context.open(f"if {selected} == {case_index}:"))
                case_index += 1
        context.insert_after(clauses[-1][0], context.close())

    def _collect_clauses(
        self, node: Element, context: DirectiveContext
    ) -> list[tuple[Element, bool, str]]:
        case_attr = context.attribute_name("case")
        default_attr = context.attribute_name("default")
        clauses: list[tuple[Element, bool, str]] = []
        for child in node.children:
            if not isinstance(child, Element):
                continue
            case = child.get_attribute(case_attr)
            default = child.get_attribute(default_attr)
            if case is not None:
                child.remove_attribute(case.name)
                clauses.append((child, False, case.text or ""))
            if default is not None:
                child.remove_attribute(default.name)
                if case is None:
                    clauses.append((child, True, ""))
        return clauses


class CaseDirective:
    """``case``/``default`` outside a switch.

    Switch consumes these attributes from its children; any that remain are
    orphans and are dropped (strict mode raises).

    """

    names: ClassVar[tuple[str, ...]] = ("case", "default")
    priority: ClassVar[int] = 60
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        context.degrade(f"'{context.directive}' is not a direct child of a switch")


class WithDirective:
    """``with="total=price * qty, label='Total: ' + total"``: local bindings.

    Bindings are evaluated left to right in calculation mode; later ones may
    use earlier ones. They are visible to the element's later directives
    and its subtree.

    """

    names: ClassVar[tuple[str, ...]] = ("with",)
    priority: ClassVar[int] = 70
    structural: ClassVar[bool] = True
    replaces_content: ClassVar[bool] = False
    contract: ClassVar[DirectiveContract | None] = None

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        statements: list[str] = []
        for part in split_top_level(expression):
            if not part.strip():
                continue
            name, equals, value = part.partition("=")
            name = name.strip()
            if not equals or not is_identifier(name) or not value.strip() or value.startswith("="):
                raise TemplateSyntaxError(f"Invalid binding '{part.strip()}'; expected name=expression")
            code = context.compile(value.strip(), ExpressionMode.CALCULATION)
            statements.append(f"{context.bind(name)} = {code}")
        if statements:
            context.insert_before(node, context.statement("\n".join(statements)))


__all__ = [
    "CaseDirective",
    "ConditionalDirective",
    "REPEAT_RE",
    "RepeatDirective",
    "SwitchDirective",
    "WithDirective",
]
