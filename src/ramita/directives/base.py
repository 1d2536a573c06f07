"""Compile context shared by directive processors.

DirectiveContext bundles the per-compile state processors need: the
active configuration, the expression compiler, the current lexical scope
and the location of the directive being applied. It also provides the
tree-editing helpers that insert markers, so processors describe *what*
code to emit rather than how markers are laid out.

Marker placement rules:
- Wrappers insert their opening marker immediately before the element and
  their closing marker immediately after it. Processing outer directives
  first therefore nests blocks correctly.
- Statements that must run where the element renders go immediately
  before the element, inside any wrappers already in place.

Thread Safety:
One DirectiveContext per compile. Never shared.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ramita.errors import TemplateStructureError, TemplateSyntaxError
from ramita.expressions import ExpressionCompiler, ExpressionMode, Scope
from ramita.location import SourceLocation
from ramita.markers import MarkerKind, encode_marker, marker_comment
from ramita.nodes import Comment, Document, Element, Node
from ramita.utils.logger import get_logger, warn_at
from ramita.utils.text import unquote

if TYPE_CHECKING:
    from ramita.config import CompilerConfig
    from ramita.directives.registry import ProcessorRegistry

logger = get_logger(__name__)

# Known template suffixes; a fragment path ending in one is used as is
TEMPLATE_SUFFIXES = (".th.html", ".html")

_TRACE_LIMIT = 80


class DirectiveContext:
    """Per-compile state and tree-editing helpers for processors.

    Attributes:
        config: Active compiler configuration
        registry: Processor registry in use
        template_name: Logical name of the template being compiled
        expressions: Expression compiler
        scope: Current lexical scope frame
        directive: Name of the directive being applied (without prefix)
        attribute: Attribute name as written (``th:if``)
        expression: Expression of the directive being applied
        location: Location of the element being processed

    """

    __slots__ = (
        "config",
        "registry",
        "template_name",
        "expressions",
        "scope",
        "directive",
        "attribute",
        "expression",
        "location",
    )

    def __init__(
        self,
        config: CompilerConfig,
        registry: ProcessorRegistry,
        template_name: str | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.template_name = template_name
        self.expressions = ExpressionCompiler()
        self.scope = Scope()
        self.directive = ""
        self.attribute = ""
        self.expression = ""
        self.location = SourceLocation.unknown()

    # -------------------------------------------------------------------------
    # Configuration shortcuts
    # -------------------------------------------------------------------------

    @property
    def strict(self) -> bool:
        return self.config.strict

    @property
    def prefix(self) -> str:
        return self.config.prefix

    def attribute_name(self, directive: str) -> str:
        """Attribute spelling of a directive under the configured prefix."""
        return f"{self.prefix}{directive}"

    # -------------------------------------------------------------------------
    # Dispatch bookkeeping
    # -------------------------------------------------------------------------

    def begin(self, element: Element, attribute: str, directive: str, expression: str) -> None:
        """Record the directive about to be applied."""
        self.attribute = attribute
        self.directive = directive
        self.expression = expression
        self.location = element.location

    def push_scope(self) -> None:
        self.scope = self.scope.child()

    def pop_scope(self) -> None:
        parent = self.scope.parent
        if parent is None:
            msg = "Cannot pop the root scope"
            raise RuntimeError(msg)
        self.scope = parent

    # -------------------------------------------------------------------------
    # Expressions and names
    # -------------------------------------------------------------------------

    def compile(self, expression: str, mode: ExpressionMode = ExpressionMode.VALUE) -> str:
        """Compile an expression against the current scope."""
        return self.expressions.compile(expression, mode, self.scope)

    def compile_case(self, value: str) -> str:
        return self.expressions.compile_case(value, self.scope)

    def bind(self, name: str) -> str:
        """Bind a template name in the current scope frame."""
        return self.scope.bind(name)

    def fresh(self, prefix: str) -> str:
        """Unique Python identifier for generated temporaries."""
        return self.scope.fresh(prefix)

    def literal_name(self, text: str, what: str) -> str:
        """A quoted or bare name (section, layout, error field).

        Raises:
            TemplateSyntaxError: If the name is empty.
        """
        name = unquote(text)
        if not name:
            raise TemplateSyntaxError(f"Missing {what} name", expression=text)
        return name

    def template_path(self, path: str) -> str:
        """Resolve a cross-template path by the suffix convention."""
        if path.endswith(TEMPLATE_SUFFIXES):
            return path
        return f"{path}{self.config.template_suffix}"

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def trace(self) -> str:
        """Comment line tying generated code to its source directive."""
        where = self.template_name or "<string>"
        if self.location.lineno:
            where = f"{where}:{self.location.lineno}"
        expression = " ".join(self.expression.split())
        if len(expression) > _TRACE_LIMIT:
            expression = expression[: _TRACE_LIMIT - 3] + "..."
        if expression:
            return f'# {where} {self.attribute}="{expression}"'
        return f"# {where} {self.attribute}"

    def degrade(self, message: str) -> None:
        """Report a tolerated structural problem.

        Raises in strict mode; logs a warning and returns otherwise.

        Raises:
            TemplateStructureError: In strict mode.
        """
        if self.strict:
            raise TemplateStructureError(
                message,
                expression=self.expression,
                directive=self.attribute or None,
                lineno=self.location.lineno or None,
                source_file=self.template_name,
            )
        warn_at(
            logger,
            self.template_name,
            self.location.lineno,
            "%s (in %s=\"%s\")",
            message,
            self.attribute,
            self.expression,
        )

    # -------------------------------------------------------------------------
    # Markers
    # -------------------------------------------------------------------------

    def open(self, header: str) -> Comment:
        """Block-opening marker, preceded by the trace comment."""
        return marker_comment(MarkerKind.OPEN, f"{self.trace()}\n{header}")

    def close(self, footer: str = "") -> Comment:
        return marker_comment(MarkerKind.CLOSE, footer)

    def statement(self, code: str) -> Comment:
        """Statement marker, preceded by the trace comment."""
        return marker_comment(MarkerKind.STMT, f"{self.trace()}\n{code}")

    def echo(self, code: str) -> list[Node]:
        """Trace comment plus a marker writing ``code``'s value."""
        return [
            marker_comment(MarkerKind.STMT, self.trace()),
            marker_comment(MarkerKind.ECHO, code),
        ]

    # -------------------------------------------------------------------------
    # Tree editing
    # -------------------------------------------------------------------------

    def wrap(self, element: Element, header: str, footer: str = "") -> None:
        """Enclose an element in a generated block."""
        self.insert_before(element, self.open(header))
        self.insert_after(element, self.close(footer))

    def insert_before(self, element: Element, *nodes: Node) -> None:
        parent = _parent_of(element)
        parent.insert_before(element, *nodes)

    def insert_after(self, element: Element, *nodes: Node) -> None:
        parent = _parent_of(element)
        parent.insert_after(element, *nodes)

    def replace_content(self, element: Element, *nodes: Node) -> None:
        """Replace an element's children.

        A self-closing element gains an end tag. A void element cannot hold
        content; in permissive mode the nodes are placed after it instead.
        """
        if element.is_void:
            self.degrade(f"<{element.tag}> cannot have content")
            self.insert_after(element, *nodes)
            return
        if element.self_closing:
            element.self_closing = False
            element.end_tag = f"</{element.tag}>"
        elif element.end_tag is None:
            element.end_tag = f"</{element.tag}>"
        element.replace_children(*nodes)

    def replace_element(self, element: Element, *nodes: Node) -> None:
        """Replace the whole element (tags included) with nodes."""
        element.replace_with(*nodes)

    def set_attribute_code(self, element: Element, name: str, code: str) -> None:
        """Make ``name`` a dynamic attribute rendered from ``code``.

        None/False omit the attribute at render time, True renders it bare.
        """
        trace = encode_marker(MarkerKind.STMT, self.trace())
        value = encode_marker(MarkerKind.ECHO, f"_attr({name!r}, {code})")
        element.set_dynamic_attribute(name, trace + value)


def _parent_of(element: Element) -> Element | Document:
    parent = element.parent
    if parent is None:
        msg = f"<{element.tag}> is detached from the tree"
        raise TemplateStructureError(msg, lineno=element.location.lineno or None)
    return parent


__all__ = ["DirectiveContext", "TEMPLATE_SUFFIXES"]
