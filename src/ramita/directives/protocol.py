"""DirectiveProcessor protocol for template directives.

A directive is an attribute such as ``th:if="user.active"``. Each
directive name maps to one processor; the dispatcher calls it with the
element, the decoded expression and the compile context. Processors
mutate the tree and emit markers; they never write Python directly into
the tree.

Thread Safety:
Processors must be stateless. Per-compile state (scope, template name,
counters) lives in the DirectiveContext passed as an argument, so one
processor instance may serve concurrent compiles.

Example:
    >>> class UpperDirective:
    ...     names = ("upper",)
    ...     priority = 175
    ...     structural = False
    ...     replaces_content = True
    ...     contract = None
    ...
    ...     def process(self, node, expression, context):
    ...         code = context.compile(expression)
    ...         context.replace_content(node, *context.echo(f"_e(_s({code}).upper())"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.contracts import DirectiveContract
    from ramita.nodes import Element


@runtime_checkable
class DirectiveProcessor(Protocol):
    """Protocol for directive implementations.

    Attributes:
        names: Directive names this processor handles, without prefix.
               Example: ("if", "unless")
        priority: Position in the processing order; lower runs first.
                  Among wrappers, lower means outer.
        structural: Runs before the element's children are processed.
        replaces_content: Discards the element's children, so the
                          dispatcher does not process them.
        contract: Optional placement rules, checked before processing.

    Thread Safety:
        Processors must be stateless. Multiple threads may call the same
        instance concurrently.
    """

    names: ClassVar[tuple[str, ...]]
    """Directive names this processor responds to (e.g., ("text", "raw"))."""

    priority: ClassVar[int]
    """Declared processing priority (lower runs first)."""

    structural: ClassVar[bool]
    """True when the directive changes the element's wrapping or replacement."""

    replaces_content: ClassVar[bool]
    """True when the directive discards the element's children."""

    contract: ClassVar[DirectiveContract | None]
    """Optional placement contract. None means no restrictions."""

    def process(self, node: Element, expression: str, context: DirectiveContext) -> None:
        """Apply the directive to an element.

        The directive attribute has already been removed from ``node``;
        ``context.directive`` names the directive being applied.

        Args:
            node: Element carrying the directive
            expression: Decoded attribute value ("" for valueless attributes)
            context: Compile context (scope, expression compiler, markers)

        Raises:
            TemplateSyntaxError: Malformed expression or signature
            TemplateStructureError: Structural misuse (strict mode)
        """
        ...


__all__ = ["DirectiveProcessor"]
