"""Built-in directive processors.

Provides the closed directive vocabulary:
- Layout: extend, section, yield
- Control flow: repeat, if/unless, switch/case/default, with
- Fragments: fragment, include, replace
- Forms: method, csrf, field, errors
- Content: text, raw/html, attr, attribute-style (fallback)

"""

from __future__ import annotations

from ramita.directives.builtins.content import (
    AttrDirective,
    AttributeDirective,
    TextDirective,
)
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
from ramita.directives.builtins.layout import (
    ExtendDirective,
    SectionDirective,
    YieldDirective,
)

__all__ = [
    "AttrDirective",
    "AttributeDirective",
    "CaseDirective",
    "ConditionalDirective",
    "CsrfDirective",
    "ErrorsDirective",
    "ExtendDirective",
    "FieldDirective",
    "FragmentDirective",
    "IncludeDirective",
    "MethodDirective",
    "RepeatDirective",
    "ReplaceDirective",
    "SectionDirective",
    "SwitchDirective",
    "TextDirective",
    "WithDirective",
    "YieldDirective",
]
