"""Template compiler: the parse → dispatch → serialize → expand pipeline.

The output is the source of a Python module defining ``render(ctx)``:

    from ramita.runtime import (...)

    def render(ctx):
        _w = ctx.write
        _lookup = ctx.lookup
        _helper = ctx.helper
        _w('<ul>')
        # pages/home:3 th:repeat="item items"
        for _k_1, l_item_2 in _iter(_lookup('items')):
            _w('<li>')
            _w(_e(l_item_2))
            _w('</li>')
        _w('</ul>')

Static markup stays verbatim (as string literals) and every dynamic region
is preceded by a comment naming the template line and directive.

Thread Safety:
TemplateCompiler holds only an immutable config. Each compile builds its
own tree, scope and marker stream, so one compiler may serve many threads.

"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ramita.config import CompilerConfig, get_compiler_config
from ramita.directives.base import DirectiveContext
from ramita.directives.registry import get_default_registry
from ramita.dispatcher import DirectiveDispatcher
from ramita.markers import INDENT, expand_markers
from ramita.parser import parse_document
from ramita.serializer import serialize
from ramita.utils.hashing import hash_str
from ramita.utils.logger import get_logger

if TYPE_CHECKING:
    from ramita.runtime import RenderContext

logger = get_logger(__name__)

# Runtime helpers imported by every compiled module, as (name, alias)
RUNTIME_IMPORTS: tuple[tuple[str, str], ...] = (
    ("add", "_add"),
    ("attribute", "_attr"),
    ("call", "_call"),
    ("compare", "_cmp"),
    ("concat", "_concat"),
    ("divide", "_div"),
    ("escape", "_e"),
    ("form_method", "_form_method"),
    ("get", "_get"),
    ("iterate", "_iter"),
    ("loose_equal", "_eq"),
    ("matches_value", "_matches"),
    ("method_field", "_method_field"),
    ("modulo", "_mod"),
    ("multiply", "_mul"),
    ("negate", "_neg"),
    ("raw", "_s"),
    ("subtract", "_sub"),
    ("switch_index", "_switch_index"),
)


class CompiledTemplate:
    """Compiled Python source for one template.

    The render function is created lazily, on first use, by executing the
    source.

    Attributes:
        name: Logical template name
        code: Python module source defining ``render(ctx)``
        source_hash: Short hash of the template text it was compiled from

    """

    __slots__ = ("name", "code", "source_hash", "_render")

    def __init__(self, name: str, code: str, source_hash: str = "") -> None:
        self.name = name
        self.code = code
        self.source_hash = source_hash
        self._render: Callable[[RenderContext], None] | None = None

    @property
    def render_function(self) -> Callable[[RenderContext], None]:
        """The module's ``render`` function (executed on first access)."""
        if self._render is None:
            namespace: dict[str, Any] = {"__name__": f"ramita.compiled.{self.name}"}
            exec(compile(self.code, f"<template:{self.name}>", "exec"), namespace)
            self._render = namespace["render"]
        return self._render

    def render(self, ctx: RenderContext) -> None:
        """Execute the template, writing into ``ctx``."""
        self.render_function(ctx)

    def __repr__(self) -> str:
        return f"CompiledTemplate(name={self.name!r}, source_hash={self.source_hash!r})"


class TemplateCompiler:
    """Compiles template text to Python source.

    Usage:
        >>> compiler = TemplateCompiler()
        >>> code = compiler.compile('<p th:text="name">x</p>', "greeting")
        >>> "def render(ctx):" in code
        True

    Configuration:
        An explicit config wins; otherwise the context config
        (``get_compiler_config()``) is read at the start of each compile.

    """

    __slots__ = ("_config",)

    def __init__(self, config: CompilerConfig | None = None) -> None:
        self._config = config

    @property
    def config(self) -> CompilerConfig:
        """Effective configuration for the next compile."""
        return self._config if self._config is not None else get_compiler_config()

    def compile(self, source: str, name: str) -> str:
        """Compile template text to Python module source.

        Args:
            source: Template text
            name: Logical template name (used in errors and trace comments)

        Returns:
            Python source defining ``render(ctx)``

        Raises:
            TemplateSyntaxError: Malformed markup, expression or signature
            TemplateStructureError: Structural misuse (strict mode) or
                unbalanced generated blocks
        """
        config = self.config
        logger.debug("Compiling template %s", name)

        document = parse_document(source, name)
        context = DirectiveContext(config, config.registry or get_default_registry(), name)
        DirectiveDispatcher(context).dispatch(document)
        body = expand_markers(serialize(document, require_done=True), name)

        code = assemble_module(name, body)
        logger.debug("Compiled template %s (%d lines)", name, len(body))
        return code

    def compile_template(self, source: str, name: str) -> CompiledTemplate:
        """Compile template text into a CompiledTemplate."""
        return CompiledTemplate(name, self.compile(source, name), hash_str(source, truncate=16))


def assemble_module(name: str, body: list[str]) -> str:
    """Wrap expanded body lines in a module defining ``render(ctx)``."""
    lines = [f"# Compiled from template {name!r}", "from ramita.runtime import ("]
    lines.extend(f"{INDENT}{helper} as {alias}," for helper, alias in RUNTIME_IMPORTS)
    lines.extend(
        [
            ")",
            "",
            "",
            "def render(ctx):",
            f"{INDENT}_w = ctx.write",
            f"{INDENT}_lookup = ctx.lookup",
            f"{INDENT}_helper = ctx.helper",
        ]
    )
    lines.extend(f"{INDENT}{line}" for line in body)
    lines.append("")
    return "\n".join(lines)


def compile_template(
    source: str,
    name: str = "<string>",
    *,
    config: CompilerConfig | None = None,
) -> CompiledTemplate:
    """Compile template text with an explicit or context configuration.

    Example:
        >>> from ramita.runtime import RenderContext
        >>> template = compile_template('<b th:text="who">x</b>')
        >>> ctx = RenderContext({"who": "you"})
        >>> template.render(ctx)
        >>> ctx.getvalue()
        '<b>you</b>'

    """
    return TemplateCompiler(config).compile_template(source, name)


__all__ = [
    "CompiledTemplate",
    "RUNTIME_IMPORTS",
    "TemplateCompiler",
    "assemble_module",
    "compile_template",
]
