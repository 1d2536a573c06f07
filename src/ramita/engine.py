"""View engine boundary: load, compile, cache and render templates.

Environment ties a loader, a compiler and an optional compile cache
together, and drives layouts: after a template renders, a layout requested
with ``extend`` renders next with the same context, its sections frame
stacked above the child's, until no layout is requested.

Usage:
    >>> from ramita import DictLoader, Environment
    >>> env = Environment(DictLoader({
    ...     "layout": '<main th:yield="content"></main>',
    ...     "home": '<div th:extend="layout"><p th:section="content">Hi</p></div>',
    ... }))
    >>> env.render("home")
    '<main>Hi</main>'

Thread Safety:
    The in-memory template table is guarded by a lock. Each render gets its
    own RenderContext. A shared compile cache must itself be thread-safe
    (DiskCompileCache is; DictCompileCache is not).

"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from ramita.cache import hash_config, hash_template
from ramita.compiler import CompiledTemplate, TemplateCompiler
from ramita.errors import RamitaError, RenderError
from ramita.runtime import RenderContext
from ramita.utils.hashing import hash_str
from ramita.utils.logger import get_logger

if TYPE_CHECKING:
    from ramita.cache import CompileCache
    from ramita.config import CompilerConfig
    from ramita.loaders import TemplateLoader

logger = get_logger(__name__)

DEFAULT_MAX_RENDER_DEPTH = 10


class Template:
    """A compiled template bound to its environment.

    Usage:
        >>> template = env.get_template("pages/home")
        >>> html = template.render({"user": user}, errors={"email": ["Required"]})

    """

    __slots__ = ("environment", "compiled")

    def __init__(self, environment: Environment, compiled: CompiledTemplate) -> None:
        self.environment = environment
        self.compiled = compiled

    @property
    def name(self) -> str:
        return self.compiled.name

    @property
    def code(self) -> str:
        """Compiled Python source."""
        return self.compiled.code

    def render(self, data: Mapping[str, Any] | None = None, **kwargs: Any) -> str:
        """Render with layouts applied.

        Args:
            data: Template variables
            **kwargs: ``errors``, ``validation_errors`` and ``session``

        Returns:
            Rendered markup
        """
        return self.environment.render_template(self, data, **kwargs)

    def render_into(self, ctx: RenderContext) -> None:
        """Execute this template against an existing context.

        Raises:
            RenderError: If the context is nested deeper than the
                environment allows, or if the render function raised
                anything other than a Ramita error.
        """
        limit = self.environment.max_render_depth
        if ctx.depth > limit:
            raise RenderError(
                self.name,
                f"maximum render depth ({limit}) exceeded; recursive layout or import?",
            )
        try:
            self.compiled.render(ctx)
        except RamitaError:
            raise
        except Exception as exc:
            raise RenderError(self.name, f"{type(exc).__name__}: {exc}") from exc

    def __repr__(self) -> str:
        return f"Template({self.name!r})"


class Environment:
    """Loads, compiles and renders templates.

    Args:
        loader: Source of template text
        config: Compiler config (None = the context config at compile time)
        cache: Optional compile cache consulted before compiling
        helpers: Functions callable from templates as ``name(args)``, plus
            the ``csrf_field``/``csrf_token`` hooks
        max_render_depth: Deepest allowed chain of layouts and imports
        globals: Data visible to every render; render data of the same
            name wins

    """

    __slots__ = (
        "loader",
        "compiler",
        "cache",
        "helpers",
        "max_render_depth",
        "globals",
        "_templates",
        "_lock",
    )

    def __init__(
        self,
        loader: TemplateLoader,
        config: CompilerConfig | None = None,
        cache: CompileCache | None = None,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
        max_render_depth: int = DEFAULT_MAX_RENDER_DEPTH,
        globals: Mapping[str, Any] | None = None,
    ) -> None:
        self.loader = loader
        self.compiler = TemplateCompiler(config)
        self.cache = cache
        self.helpers: dict[str, Callable[..., Any]] = dict(helpers or {})
        self.max_render_depth = max_render_depth
        self.globals: dict[str, Any] = dict(globals or {})
        self._templates: dict[tuple[str, str], Template] = {}
        self._lock = threading.Lock()

    def share(self, key: str | Mapping[str, Any], value: Any = None) -> Environment:
        """Add shared data for every later render.

        Example:
            >>> env.share("site", {"name": "Acme"}).share({"year": 2026})

        Returns:
            self for chaining
        """
        if isinstance(key, Mapping):
            self.globals.update(key)
        else:
            self.globals[key] = value
        return self

    def get_template(self, name: str) -> Template:
        """Load and compile a template, reusing earlier compiles.

        Raises:
            TemplateNotFound: If the loader has no such template
            TemplateSyntaxError: If the template does not compile
            TemplateStructureError: If the template does not compile
        """
        source = self.loader.get_source(name)
        template_key = hash_template(source)
        config_hash = hash_config(self.compiler.config)

        with self._lock:
            template = self._templates.get((template_key, config_hash))
        if template is not None:
            return template

        code = self.cache.get(template_key, config_hash) if self.cache is not None else None
        if code is None:
            code = self.compiler.compile(source.text, source.name)
            if self.cache is not None:
                self.cache.put(template_key, config_hash, code)
        else:
            logger.debug("Compile cache hit for %s", name)

        template = Template(self, CompiledTemplate(source.name, code, hash_str(source.text, truncate=16)))
        with self._lock:
            self._templates[(template_key, config_hash)] = template
        return template

    def from_string(self, source: str, name: str = "<string>") -> Template:
        """Compile template text directly (never cached)."""
        return Template(self, self.compiler.compile_template(source, name))

    def render(
        self,
        name: str,
        data: Mapping[str, Any] | None = None,
        *,
        errors: Mapping[str, Any] | None = None,
        validation_errors: Mapping[str, Any] | None = None,
        session: Mapping[str, Any] | None = None,
    ) -> str:
        """Render a template by name, applying its layouts.

        Example:
            >>> env.render("pages/home", {"user": {"name": "Ada"}})

        """
        return self.render_template(
            self.get_template(name),
            data,
            errors=errors,
            validation_errors=validation_errors,
            session=session,
        )

    def render_template(
        self,
        template: Template,
        data: Mapping[str, Any] | None = None,
        *,
        errors: Mapping[str, Any] | None = None,
        validation_errors: Mapping[str, Any] | None = None,
        session: Mapping[str, Any] | None = None,
    ) -> str:
        """Render a loaded template, then each layout it extends in turn."""
        if self.globals:
            data = {**self.globals, **(data or {})}
        ctx = RenderContext(
            data,
            helpers=self.helpers,
            errors=errors,
            validation_errors=validation_errors,
            session=session,
            environment=self,
            template_name=template.name,
        )
        template.render_into(ctx)

        while ctx.layout is not None:
            layout = self.get_template(ctx.layout)
            ctx.layout = None
            ctx.depth += 1
            ctx.template_name = layout.name
            ctx.sections.push_frame()
            # The child's markup outside its sections is not rendered
            ctx.reset_output()
            layout.render_into(ctx)
        return ctx.getvalue()

    def __repr__(self) -> str:
        return f"Environment(loader={self.loader!r}, max_render_depth={self.max_render_depth})"


__all__ = ["DEFAULT_MAX_RENDER_DEPTH", "Environment", "Template"]
