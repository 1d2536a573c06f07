"""Processor registry for directive lookup and ordering.

The registry maps directive names to processors and owns the processing
order: every processor declares a priority, and the registry exposes the
resulting table so it can be inspected and tested.

Default order (lower runs first; among wrappers, lower is outer):

    10  extend          structural
    20  fragment        structural
    30  section         structural
    40  repeat          structural
    50  if, unless      structural
    60  switch          structural (case/default scanned on children)
    70  with            structural
    100 replace         content
    110 include         content
    120 yield           content
    130 method          content
    140 csrf            content
    150 field           content
    160 errors          content
    170 text, raw, html content
    180 attr            content
    190 <attribute>     content (any other prefixed attribute)

Thread Safety:
ProcessorRegistry is immutable after creation. Safe to share.
Use ProcessorRegistryBuilder for mutable construction.

Example:
    >>> builder = ProcessorRegistryBuilder()
    >>> builder.register(ConditionalDirective())
    >>> registry = builder.build()
    >>> registry.get("unless")
    <...ConditionalDirective object at ...>
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ramita.directives.protocol import DirectiveProcessor

# Name under which the attribute-style processor appears in the order table
ATTRIBUTE_STYLE = "<attribute>"


class ProcessorRegistry:
    """Immutable registry of directive processors.

    Thread Safety:
        Immutable after creation. Safe to share across threads.
    """

    __slots__ = ("_processors", "_by_name", "_fallback")

    def __init__(
        self,
        processors: tuple[DirectiveProcessor, ...],
        by_name: dict[str, DirectiveProcessor],
        fallback: DirectiveProcessor | None,
    ) -> None:
        """Initialize registry with pre-built mappings.

        Use ProcessorRegistryBuilder to create instances.
        """
        self._processors = processors
        self._by_name = by_name
        self._fallback = fallback

    def get(self, name: str) -> DirectiveProcessor | None:
        """Get the processor registered for a directive name.

        Args:
            name: Directive name without prefix (e.g., "if", "repeat")

        Returns:
            Processor if registered, None otherwise
        """
        return self._by_name.get(name.lower())

    def has(self, name: str) -> bool:
        """Check if directive name is registered."""
        return name.lower() in self._by_name

    @property
    def fallback(self) -> DirectiveProcessor | None:
        """Processor for attribute-style directives (``th:href``, ...)."""
        return self._fallback

    @property
    def names(self) -> frozenset[str]:
        """All registered directive names (the closed vocabulary)."""
        return frozenset(self._by_name.keys())

    @property
    def processors(self) -> tuple[DirectiveProcessor, ...]:
        """All registered processors, fallback included."""
        if self._fallback is None:
            return self._processors
        return (*self._processors, self._fallback)

    def order_table(self) -> tuple[tuple[int, str], ...]:
        """The declared processing order as ``(priority, name)`` rows.

        Rows are sorted by priority, then name.
        """
        rows = [(processor.priority, name) for name, processor in self._by_name.items()]
        if self._fallback is not None:
            rows.append((self._fallback.priority, ATTRIBUTE_STYLE))
        return tuple(sorted(rows))

    def __contains__(self, name: str) -> bool:
        """Support 'name in registry' syntax."""
        return self.has(name)

    def __len__(self) -> int:
        """Number of registered directive names."""
        return len(self._by_name)


class ProcessorRegistryBuilder:
    """Mutable builder for ProcessorRegistry.

    Example:
        >>> builder = ProcessorRegistryBuilder()
        >>> builder.register(TextDirective())
        >>> builder.set_fallback(AttributeDirective())
        >>> registry = builder.build()
    """

    __slots__ = ("_processors", "_by_name", "_fallback")

    def __init__(self) -> None:
        """Initialize empty builder."""
        self._processors: list[DirectiveProcessor] = []
        self._by_name: dict[str, DirectiveProcessor] = {}
        self._fallback: DirectiveProcessor | None = None

    def register(self, processor: DirectiveProcessor) -> ProcessorRegistryBuilder:
        """Register a directive processor.

        Args:
            processor: Processor implementing the DirectiveProcessor protocol

        Returns:
            Self for chaining

        Raises:
            TypeError: If the processor lacks a required class attribute
            ValueError: If a name conflicts with an existing registration
        """
        _validate(processor)

        for name in processor.names:
            key = name.lower()
            if key in self._by_name:
                existing = self._by_name[key]
                msg = f"Directive '{name}' already registered by {type(existing).__name__}"
                raise ValueError(msg)
            self._by_name[key] = processor

        self._processors.append(processor)
        return self

    def register_all(self, processors: list[DirectiveProcessor]) -> ProcessorRegistryBuilder:
        """Register multiple processors.

        Returns:
            Self for chaining
        """
        for processor in processors:
            self.register(processor)
        return self

    def set_fallback(self, processor: DirectiveProcessor) -> ProcessorRegistryBuilder:
        """Set the processor for prefixed attributes outside the vocabulary."""
        _validate(processor)
        self._fallback = processor
        return self

    def build(self) -> ProcessorRegistry:
        """Build immutable registry from registered processors."""
        return ProcessorRegistry(
            processors=tuple(self._processors),
            by_name=dict(self._by_name),
            fallback=self._fallback,
        )

    def __len__(self) -> int:
        """Number of registered processors."""
        return len(self._processors)


def _validate(processor: DirectiveProcessor) -> None:
    for attribute in ("names", "priority", "structural", "replaces_content"):
        if not hasattr(processor, attribute):
            msg = f"Processor {type(processor).__name__} missing '{attribute}' attribute"
            raise TypeError(msg)


def create_registry_with_defaults() -> ProcessorRegistryBuilder:
    """Create a builder pre-populated with the built-in directives.

    Use this to add or override directives:

        >>> builder = create_registry_with_defaults()
        >>> builder.register(MyDirective())
        >>> registry = builder.build()

    """
    from ramita.directives.builtins.content import AttrDirective, AttributeDirective, TextDirective
    from ramita.directives.builtins.control import (
        CaseDirective,
        ConditionalDirective,
        RepeatDirective,
        SwitchDirective,
        WithDirective,
    )
    from ramita.directives.builtins.forms import (
        CsrfDirective,
        ErrorsDirective,
        FieldDirective,
        MethodDirective,
    )
    from ramita.directives.builtins.fragments import (
        FragmentDirective,
        IncludeDirective,
        ReplaceDirective,
    )
    from ramita.directives.builtins.layout import ExtendDirective, SectionDirective, YieldDirective

    builder = ProcessorRegistryBuilder()

    # Layouts
    builder.register(ExtendDirective())
    builder.register(SectionDirective())
    builder.register(YieldDirective())

    # Control flow
    builder.register(RepeatDirective())
    builder.register(ConditionalDirective())
    builder.register(SwitchDirective())
    builder.register(CaseDirective())
    builder.register(WithDirective())

    # Fragments
    builder.register(FragmentDirective())
    builder.register(ReplaceDirective())
    builder.register(IncludeDirective())

    # Forms
    builder.register(MethodDirective())
    builder.register(CsrfDirective())
    builder.register(FieldDirective())
    builder.register(ErrorsDirective())

    # Content and attributes
    builder.register(TextDirective())
    builder.register(AttrDirective())
    builder.set_fallback(AttributeDirective())

    return builder


# Cached singleton, thread-safe since ProcessorRegistry is immutable
_DEFAULT_REGISTRY: ProcessorRegistry | None = None


def get_default_registry() -> ProcessorRegistry:
    """Get the default processor registry (cached singleton).

    Thread Safety:
        Returns a cached immutable registry. Safe for concurrent access.
    """
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = create_registry_with_defaults().build()
    return _DEFAULT_REGISTRY


__all__ = [
    "ATTRIBUTE_STYLE",
    "ProcessorRegistry",
    "ProcessorRegistryBuilder",
    "create_registry_with_defaults",
    "get_default_registry",
]
