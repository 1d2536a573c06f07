"""ContextVar-based compiler configuration for Ramita.

Provides thread-local configuration using Python's ContextVars (PEP 567).
Config is read once at the start of each compile; nothing else about a
compile is shared.

Thread Safety:
    ContextVars are thread-local. Each thread has independent storage,
    so no locks are needed and race conditions are impossible.

Usage:
    # Explicit config
    compiler = TemplateCompiler(CompilerConfig(strict=True))

    # Or set it for the current context
    from ramita.config import set_compiler_config, reset_compiler_config

    set_compiler_config(CompilerConfig(prefix="data-th-"))
    try:
        code = TemplateCompiler().compile(source, "pages/home")
    finally:
        reset_compiler_config()

    # Or use the context manager
    with compiler_config_context(CompilerConfig(strict=True)):
        code = TemplateCompiler().compile(source, "pages/home")

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ramita.directives.registry import ProcessorRegistry


@dataclass(frozen=True, slots=True)
class CompilerConfig:
    """Immutable compiler configuration.

    Frozen dataclass ensures thread-safety (immutable after creation).

    Attributes:
        prefix: Attribute prefix marking directives (``th:if``). With an empty
            prefix only the closed directive vocabulary is recognized.
        strict: Raise on malformed input that legacy templates tolerate
            (bad repeat source, switch without cases, orphan case/default,
            several structural directives on one element, bad inline
            ``{expr}``). When False those degrade with a logged warning.
        interpolate_text: Compile ``{expression}`` runs in text nodes
        template_suffix: Suffix appended to cross-template fragment paths
            that do not already end with a known template suffix
        registry: Processor registry (None = built-in directives)

    """

    prefix: str = "th:"
    strict: bool = False
    interpolate_text: bool = True
    template_suffix: str = ".th.html"
    registry: ProcessorRegistry | None = None

    @classmethod
    def from_dict(cls, config_dict: dict) -> CompilerConfig:
        """Create CompilerConfig from dictionary.

        Only includes keys that are valid CompilerConfig fields; unknown keys
        are silently ignored.

        Example:
            >>> config = CompilerConfig.from_dict({"strict": True, "unknown": 1})
            >>> config.strict
            True

        """
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in config_dict.items() if k in valid_fields}
        return cls(**filtered)


# Module-level default config (reused, never recreated)
_DEFAULT_CONFIG: CompilerConfig = CompilerConfig()

# Thread-local configuration via ContextVar
_compiler_config: ContextVar[CompilerConfig] = ContextVar(
    "compiler_config",
    default=_DEFAULT_CONFIG,
)


def get_compiler_config() -> CompilerConfig:
    """Get current compiler configuration (thread-local).

    Returns:
        The active CompilerConfig for this thread/context.

    """
    return _compiler_config.get()


def set_compiler_config(config: CompilerConfig) -> None:
    """Set compiler configuration for current context.

    Args:
        config: CompilerConfig instance to use for this context.

    """
    _compiler_config.set(config)


def reset_compiler_config() -> None:
    """Reset to default configuration.

    Reuses the module-level _DEFAULT_CONFIG singleton, avoiding allocation.

    """
    _compiler_config.set(_DEFAULT_CONFIG)


@contextmanager
def compiler_config_context(config: CompilerConfig) -> Iterator[None]:
    """Context manager for temporary config changes.

    Properly restores the previous config even if an exception is raised.

    Example:
        >>> with compiler_config_context(CompilerConfig(strict=True)):
        ...     code = TemplateCompiler().compile("<p>hi</p>", "x")

    """
    previous = _compiler_config.get()
    _compiler_config.set(config)
    try:
        yield
    finally:
        _compiler_config.set(previous)


__all__ = [
    "CompilerConfig",
    "compiler_config_context",
    "get_compiler_config",
    "reset_compiler_config",
    "set_compiler_config",
]
