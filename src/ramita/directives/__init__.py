"""Directive system for Ramita.

Directives are prefixed attributes (``th:if``, ``th:repeat``...) that the
dispatcher hands to processors. Register custom processors with
ProcessorRegistryBuilder and pass the registry through CompilerConfig.

Example:
    >>> from ramita.directives import create_registry_with_defaults
    >>> builder = create_registry_with_defaults()
    >>> builder.register(MyDirective())
    >>> config = CompilerConfig(registry=builder.build())

"""

from ramita.directives.base import DirectiveContext
from ramita.directives.contracts import ContractViolation, DirectiveContract
from ramita.directives.protocol import DirectiveProcessor
from ramita.directives.registry import (
    ProcessorRegistry,
    ProcessorRegistryBuilder,
    create_registry_with_defaults,
    get_default_registry,
)

__all__ = [
    "ContractViolation",
    "DirectiveContext",
    "DirectiveContract",
    "DirectiveProcessor",
    "ProcessorRegistry",
    "ProcessorRegistryBuilder",
    "create_registry_with_defaults",
    "get_default_registry",
]
