"""Exception classes for Ramita.

Provides standardized exceptions for compile-time and render-time failures.

Compile-time errors (syntax and structure) are never swallowed: they carry
enough context (template, line, directive, expression) to locate the
offending attribute. Render-time resolution gaps are modelled by
ResolutionError but recovered locally by the runtime.
"""

from __future__ import annotations


class RamitaError(Exception):
    """Base exception for all Ramita errors.

    Subclass this for specific error categories.
    """

    pass


class TemplateError(RamitaError):
    """Error tied to a location in a template.

    Formats a ``file:line: message`` prefix, followed by the directive and
    expression that triggered it when those are known.
    """

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        directive: str | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_file: str | None = None,
    ) -> None:
        """Initialize template error with optional location.

        Args:
            message: Error description
            expression: Directive expression text (optional)
            directive: Directive attribute name, e.g. "th:if" (optional)
            lineno: Line number where error occurred (1-indexed)
            col_offset: Column offset inside the expression (1-indexed)
            source_file: Template name or path (optional)
        """
        self.message = message
        self.expression = expression
        self.directive = directive
        self.lineno = lineno
        self.col_offset = col_offset
        self.source_file = source_file
        super().__init__(self._format())

    def _format(self) -> str:
        location = ""
        if self.source_file:
            location = f"{self.source_file}:"
        if self.lineno is not None:
            location += f"{self.lineno}:"
        if location:
            location = location.rstrip(":") + ": "

        detail = ""
        if self.directive and self.expression is not None:
            detail = f" (in {self.directive}=\"{self.expression}\")"
        elif self.directive:
            detail = f" (in {self.directive})"
        elif self.expression is not None:
            detail = f" (in expression \"{self.expression}\")"

        return f"{location}{self.message}{detail}"

    def locate(
        self,
        *,
        directive: str | None = None,
        lineno: int | None = None,
        source_file: str | None = None,
        expression: str | None = None,
    ) -> TemplateError:
        """Return a copy of this error enriched with missing location fields.

        Fields already set on the error win over the new values, so the
        innermost context is kept.
        """
        return type(self)(
            self.message,
            expression=self.expression if self.expression is not None else expression,
            directive=self.directive or directive,
            lineno=self.lineno if self.lineno is not None else lineno,
            col_offset=self.col_offset,
            source_file=self.source_file or source_file,
        )


class TemplateSyntaxError(TemplateError):
    """Malformed expression, fragment signature, or template text.

    Always fatal: aborts the compile.
    """

    pass


class TemplateStructureError(TemplateError):
    """Structural misuse of directives.

    Raised for switch without cases, unparseable repeat sources, several
    structural directives on one element, orphan case/default, or
    unbalanced markers. Some of these degrade silently when the compiler
    runs in permissive mode.
    """

    pass


class ResolutionError(RamitaError):
    """A fragment or include target could not be resolved at render time.

    Never escapes a render: the runtime logs it and renders nothing.
    """

    def __init__(self, target: str, message: str) -> None:
        """Initialize resolution error.

        Args:
            target: Fragment name or template path that failed to resolve
            message: Description of the failure
        """
        self.target = target
        super().__init__(f"Cannot resolve '{target}': {message}")


class TemplateNotFound(RamitaError):
    """A loader could not find the requested template."""

    def __init__(self, name: str, searched: tuple[str, ...] = ()) -> None:
        """Initialize with the template name and the locations searched."""
        self.name = name
        self.searched = searched
        message = f"Template '{name}' not found"
        if searched:
            listing = "\n  - ".join(searched)
            message += f". Searched in:\n  - {listing}"
        super().__init__(message)


class RenderError(RamitaError):
    """Error during template execution.

    Raised when the render depth is exceeded, or wraps an exception that
    escaped a compiled render function.
    """

    def __init__(self, template: str, message: str) -> None:
        """Initialize render error.

        Args:
            template: Name of the template being rendered
            message: Description of the failure
        """
        self.template = template
        super().__init__(f"Error rendering template '{template}': {message}")
