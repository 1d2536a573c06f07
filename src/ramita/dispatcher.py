"""Directive dispatcher: walks the tree and applies processors in order.

Per element:
1. Collect directive attributes and sort them by declared priority
2. Push a scope frame (bindings stay visible to the subtree only)
3. Apply structural directives (wrapping, unwrapping, replacing)
4. Process the children (unless a directive will replace them)
5. Apply content and attribute directives
6. Pop the scope frame

State machine per element:
    Unvisited → StructuralApplied → ChildrenProcessed → LeafDirectivesApplied → Done

Text children outside raw-text elements get ``{expression}`` interpolation
in text mode.

Thread Safety:
One dispatcher per compile; it owns the compile's DirectiveContext.

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ramita.errors import TemplateError, TemplateStructureError
from ramita.expressions import ExpressionMode, split_interpolation
from ramita.markers import MarkerKind, marker_comment
from ramita.nodes import Attribute, Document, Element, ElementState, Node, Text
from ramita.utils.logger import get_logger, warn_at

if TYPE_CHECKING:
    from ramita.directives.base import DirectiveContext
    from ramita.directives.protocol import DirectiveProcessor

logger = get_logger(__name__)

# Directives of which an element may carry at most one
EXCLUSIVE_DIRECTIVES = frozenset(["if", "unless", "switch", "repeat"])


@dataclass(slots=True)
class PendingDirective:
    """A directive attribute found on an element, awaiting processing."""

    processor: DirectiveProcessor
    attribute: Attribute
    directive: str


class DirectiveDispatcher:
    """Applies directive processors to a document tree.

    Usage:
        >>> context = DirectiveContext(config, get_default_registry(), "pages/home")
        >>> DirectiveDispatcher(context).dispatch(document)

    """

    __slots__ = ("_context",)

    def __init__(self, context: DirectiveContext) -> None:
        self._context = context

    def dispatch(self, document: Document) -> None:
        """Process every element and text node of the document.

        Raises:
            TemplateSyntaxError: Malformed expression (with location)
            TemplateStructureError: Structural misuse in strict mode
        """
        for child in list(document.children):
            self._visit(child)

    def _visit(self, node: Node) -> None:
        if isinstance(node, Element):
            self._visit_element(node)
        elif isinstance(node, Text) and not node.verbatim and self._context.config.interpolate_text:
            self._interpolate(node)

    def _visit_element(self, element: Element) -> None:
        pending = self._collect(element)
        self._check_exclusive(element, pending)

        context = self._context
        context.push_scope()
        try:
            for entry in pending:
                if entry.processor.structural:
                    self._apply(element, entry)
            element.state = ElementState.STRUCTURAL_APPLIED

            if not any(entry.processor.replaces_content for entry in pending):
                for child in list(element.children):
                    self._visit(child)
            element.state = ElementState.CHILDREN_PROCESSED

            for entry in pending:
                if entry.processor.structural:
                    continue
                if element.parent is None:
                    # Replaced by an earlier directive; nothing left to target
                    element.remove_attribute(entry.attribute.name)
                    continue
                self._apply(element, entry)
            element.state = ElementState.LEAF_DIRECTIVES_APPLIED
        finally:
            context.pop_scope()
        element.state = ElementState.DONE

    # -------------------------------------------------------------------------
    # Directive collection
    # -------------------------------------------------------------------------

    def _collect(self, element: Element) -> list[PendingDirective]:
        registry = self._context.registry
        prefix = self._context.prefix.lower()
        pending: list[PendingDirective] = []

        for attr in element.attributes:
            if attr.dynamic:
                continue
            lowered = attr.name.lower()
            if prefix:
                if not lowered.startswith(prefix) or len(lowered) == len(prefix):
                    continue
                directive = attr.name[len(prefix) :]
                processor = registry.get(directive)
                if processor is None:
                    processor = registry.fallback
                else:
                    directive = directive.lower()
            else:
                # Without a prefix only the closed vocabulary counts
                processor = registry.get(lowered)
                directive = lowered
            if processor is not None:
                pending.append(PendingDirective(processor, attr, directive))

        # sorted() is stable: equal priorities keep attribute order
        return sorted(pending, key=lambda entry: entry.processor.priority)

    def _check_exclusive(self, element: Element, pending: list[PendingDirective]) -> None:
        exclusive = [entry.attribute.name for entry in pending if entry.directive in EXCLUSIVE_DIRECTIVES]
        if len(exclusive) < 2:
            return
        message = f"Several structural directives on <{element.tag}>: {', '.join(exclusive)}"
        context = self._context
        if context.strict:
            raise TemplateStructureError(
                message,
                lineno=element.location.lineno or None,
                source_file=context.template_name,
            )
        warn_at(
            logger,
            context.template_name,
            element.location.lineno,
            "%s; applying them nested in priority order",
            message,
        )

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def _apply(self, element: Element, entry: PendingDirective) -> None:
        context = self._context
        attr = entry.attribute
        expression = attr.text or ""
        element.remove_attribute(attr.name)
        context.begin(element, attr.name, entry.directive, expression)

        contract = getattr(entry.processor, "contract", None)
        if contract is not None:
            violation = contract.validate(entry.directive, element.name, expression)
            if violation is not None:
                warn_at(logger, context.template_name, element.location.lineno, "%s", violation)

        try:
            entry.processor.process(element, expression, context)
        except TemplateError as exc:
            raise exc.locate(
                directive=attr.name,
                lineno=element.location.lineno or None,
                source_file=context.template_name,
                expression=expression,
            ) from exc

    # -------------------------------------------------------------------------
    # Text interpolation
    # -------------------------------------------------------------------------

    def _interpolate(self, node: Text) -> None:
        parts = split_interpolation(node.content)
        if not any(is_expression for _, is_expression in parts):
            return

        context = self._context
        replacement: list[Node] = []
        for segment, is_expression in parts:
            if not is_expression:
                replacement.append(Text(content=segment, location=node.location))
                continue
            try:
                code = context.compile(segment, ExpressionMode.TEXT)
            except TemplateError as exc:
                if context.strict:
                    raise exc.locate(
                        lineno=node.location.lineno or None,
                        source_file=context.template_name,
                        expression=segment,
                    ) from exc
                warn_at(
                    logger,
                    context.template_name,
                    node.location.lineno,
                    "leaving '{%s}' as text: %s",
                    segment,
                    exc.message,
                )
                replacement.append(Text(content=f"{{{segment}}}", location=node.location))
                continue
            replacement.append(marker_comment(MarkerKind.ECHO, code))
        node.replace_with(*replacement)


__all__ = ["DirectiveDispatcher", "EXCLUSIVE_DIRECTIVES", "PendingDirective"]
