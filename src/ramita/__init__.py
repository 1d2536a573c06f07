"""
Ramita: directive template compiler for Python

Compiles HTML-like markup annotated with ``th:`` directive attributes into
Python render functions. Static markup stays verbatim; directives become
control flow, safe variable access, layouts, fragments and form bindings.

Quick Start:
    >>> from ramita import render_string
    >>> render_string('<p th:if="user.active">Hi {user.name}</p>', {"user": {"active": True, "name": "Ada"}})
    '<p>Hi Ada</p>'

    >>> # Templates from a directory, with layouts and a compile cache
    >>> from ramita import DiskCompileCache, Environment, FileSystemLoader
    >>> env = Environment(FileSystemLoader("resources/views"), cache=DiskCompileCache(".cache"))
    >>> html = env.render("pages/home", {"user": user})

Compiling Only:
    >>> from ramita import TemplateCompiler
    >>> code = TemplateCompiler().compile('<b th:text="name">x</b>', "greeting")

Custom Directives:
    >>> from ramita import CompilerConfig, create_registry_with_defaults
    >>> builder = create_registry_with_defaults()
    >>> builder.register(MyDirective())
    >>> env = Environment(loader, config=CompilerConfig(registry=builder.build()))

Installation:
    pip install ramita               # Zero runtime dependencies
"""

from collections.abc import Mapping
from typing import Any

from ramita.cache import (
    CompileCache,
    DictCompileCache,
    DiskCompileCache,
    hash_config,
    hash_template,
)
from ramita.compiler import CompiledTemplate, TemplateCompiler, compile_template
from ramita.config import (
    CompilerConfig,
    compiler_config_context,
    get_compiler_config,
    reset_compiler_config,
    set_compiler_config,
)
from ramita.directives.registry import (
    ProcessorRegistry,
    ProcessorRegistryBuilder,
    create_registry_with_defaults,
    get_default_registry,
)
from ramita.engine import Environment, Template
from ramita.errors import (
    RamitaError,
    RenderError,
    ResolutionError,
    TemplateError,
    TemplateNotFound,
    TemplateStructureError,
    TemplateSyntaxError,
)
from ramita.loaders import DictLoader, FileSystemLoader, TemplateLoader, TemplateSource
from ramita.runtime import RenderContext

__version__ = "0.1.0"


def render_string(
    source: str,
    data: Mapping[str, Any] | None = None,
    *,
    name: str = "<string>",
    config: CompilerConfig | None = None,
    **kwargs: Any,
) -> str:
    """Compile and render template text in one call.

    Layouts and cross-template fragments are not available (there is
    nothing to load them from); use an Environment for those.

    Args:
        source: Template text
        data: Template variables
        name: Template name for error messages
        config: Compiler config (None = the context config)
        **kwargs: ``errors``, ``validation_errors`` and ``session``

    Returns:
        Rendered markup
    """
    environment = Environment(DictLoader({}), config=config)
    return environment.from_string(source, name).render(data, **kwargs)


__all__ = [
    # Compiler
    "CompiledTemplate",
    "TemplateCompiler",
    "compile_template",
    "render_string",
    # Engine
    "Environment",
    "Template",
    "RenderContext",
    # Loaders
    "DictLoader",
    "FileSystemLoader",
    "TemplateLoader",
    "TemplateSource",
    # Cache
    "CompileCache",
    "DictCompileCache",
    "DiskCompileCache",
    "hash_config",
    "hash_template",
    # Configuration
    "CompilerConfig",
    "compiler_config_context",
    "get_compiler_config",
    "reset_compiler_config",
    "set_compiler_config",
    # Directives
    "ProcessorRegistry",
    "ProcessorRegistryBuilder",
    "create_registry_with_defaults",
    "get_default_registry",
    # Errors
    "RamitaError",
    "RenderError",
    "ResolutionError",
    "TemplateError",
    "TemplateNotFound",
    "TemplateStructureError",
    "TemplateSyntaxError",
    "__version__",
]
