"""Runtime support for compiled templates.

A compiled template is a module defining ``render(ctx)``. Everything it
needs at render time lives here: the RenderContext it writes into, the
per-render FragmentRegistry and SectionStack, and the small helper
functions generated code calls (escaping, safe access, safe arithmetic).

Safe access contract:
- Any undefined path segment yields None, never an exception
- Ordering comparisons involving None or incompatible types are False
- Arithmetic treats None as 0; ``+`` concatenates when either side is a
  string; division or modulo by zero yields None
- Exceptions raised by user callables propagate

Thread Safety:
Helper functions are pure. A RenderContext (with its registries) belongs
to exactly one render and is never shared.

"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ramita.errors import RenderError, ResolutionError, TemplateNotFound
from ramita.stringbuilder import StringBuilder
from ramita.utils.logger import get_logger
from ramita.utils.text import escape_html

if TYPE_CHECKING:
    from ramita.engine import Environment

logger = get_logger(__name__)

SPOOFED_METHODS = frozenset(["PUT", "PATCH", "DELETE"])

# Rendered bare or omitted, never with a value
BOOLEAN_ATTRIBUTES = frozenset(
    [
        "allowfullscreen",
        "autofocus",
        "autoplay",
        "checked",
        "controls",
        "default",
        "defer",
        "disabled",
        "formnovalidate",
        "hidden",
        "inert",
        "itemscope",
        "loop",
        "multiple",
        "novalidate",
        "open",
        "readonly",
        "required",
        "reversed",
        "selected",
    ]
)

_ORDERINGS: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}


# =============================================================================
# Output helpers
# =============================================================================


def escape(value: Any) -> str:
    """Render a value as escaped markup text.

    None renders as nothing, booleans as ``true``/``false``.
    """
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    return escape_html(str(value))


def raw(value: Any) -> str:
    """Render a value without escaping."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def attribute(name: str, value: Any) -> str:
    """Render a whole attribute, including its leading space.

    None and False omit the attribute; True renders it bare. HTML boolean
    attributes (``disabled``, ``checked``, ...) follow the value's truth:
    bare when truthy, omitted otherwise.

    Example:
        >>> attribute("href", "/a?b=1&c=2")
        ' href="/a?b=1&amp;c=2"'
        >>> attribute("disabled", True)
        ' disabled'
        >>> attribute("disabled", None)
        ''

    """
    if name.lower() in BOOLEAN_ATTRIBUTES:
        return f" {name}" if value else ""
    if value is None or value is False:
        return ""
    if value is True:
        return f" {name}"
    return f' {name}="{escape(value)}"'


def concat(*parts: Any) -> str:
    """Join interpolated parts as text (None contributes nothing)."""
    return "".join(raw(part) for part in parts)


# =============================================================================
# Safe access
# =============================================================================


def get(obj: Any, key: str | int) -> Any:
    """Null-safe member access.

    Mappings are read by key (an integer key falls back to its string
    form), sequences by index and other objects by public attribute.
    """
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        try:
            if key in obj:
                return obj[key]
        except TypeError:
            return None
        if isinstance(key, int):
            return obj.get(str(key))
        return None
    if isinstance(key, int):
        if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
            return obj[key] if 0 <= key < len(obj) else None
        return None
    if key.startswith("_"):
        return None
    return getattr(obj, key, None)


def call(fn: Any, *args: Any) -> Any:
    """Call fn when callable, else yield None."""
    if callable(fn):
        return fn(*args)
    return None


def iterate(value: Any) -> Iterator[tuple[Any, Any]]:
    """Yield ``(key, item)`` pairs for a repeat loop.

    Mappings yield their items, other iterables yield ``(index, item)``.
    None, strings and non-iterables yield nothing.
    """
    if value is None or isinstance(value, (str, bytes)):
        return iter(())
    if isinstance(value, Mapping):
        return iter(list(value.items()))
    if isinstance(value, Iterable):
        return enumerate(value)
    return iter(())


def compare(op: str, left: Any, right: Any) -> bool:
    """Ordering comparison that is False instead of raising."""
    if left is None or right is None:
        return False
    try:
        return bool(_ORDERINGS[op](left, right))
    except TypeError:
        return False


def loose_equal(left: Any, right: Any) -> bool:
    """Equality that also matches numbers against their string form."""
    if left == right:
        return True
    if isinstance(left, str) and _is_number(right):
        return left == raw(right)
    if isinstance(right, str) and _is_number(left):
        return right == raw(left)
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _numeric(value: Any) -> int | float:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return 0


def add(left: Any, right: Any) -> Any:
    """``+``: concatenation when either side is a string, else numeric sum."""
    if isinstance(left, str) or isinstance(right, str):
        return raw(left) + raw(right)
    return _numeric(left) + _numeric(right)


def subtract(left: Any, right: Any) -> int | float:
    return _numeric(left) - _numeric(right)


def multiply(left: Any, right: Any) -> int | float:
    return _numeric(left) * _numeric(right)


def divide(left: Any, right: Any) -> int | float | None:
    """Division; None when dividing by zero."""
    divisor = _numeric(right)
    if divisor == 0:
        return None
    return _numeric(left) / divisor


def modulo(left: Any, right: Any) -> int | float | None:
    """Modulo; None when the divisor is zero."""
    divisor = _numeric(right)
    if divisor == 0:
        return None
    return _numeric(left) % divisor


def negate(value: Any) -> int | float:
    return -_numeric(value)


# =============================================================================
# Directive helpers
# =============================================================================


def switch_index(subject: Any, cases: Sequence[Any]) -> int:
    """Index of the first case equal to subject, or -1."""
    for index, case in enumerate(cases):
        if loose_equal(subject, case):
            return index
    return -1


def matches_value(current: Any, option: Any) -> bool:
    """Whether a bound value selects an option (checkbox, radio, select).

    Lists, tuples and sets match by membership; True matches the usual
    checkbox values.
    """
    if current is None or current is False:
        return False
    if current is True:
        return raw(option).lower() in ("1", "true", "on")
    if isinstance(current, (list, tuple, set, frozenset)):
        return any(loose_equal(item, option) for item in current)
    return loose_equal(current, option)


def form_method(value: Any) -> str:
    """Method attribute value for a form; spoofed methods submit as POST."""
    method = raw(value).strip().upper() or "GET"
    return "POST" if method in SPOOFED_METHODS else method


def method_field(value: Any) -> str:
    """Hidden ``_method`` field for spoofed methods, else nothing."""
    method = raw(value).strip().upper()
    if method in SPOOFED_METHODS:
        return f'<input type="hidden" name="_method" value="{method}">'
    return ""


# =============================================================================
# Fragments
# =============================================================================


@dataclass(frozen=True, slots=True)
class Fragment:
    """A registered fragment: name, ordered parameters and body closure."""

    name: str
    params: tuple[str, ...]
    body: Callable[..., str]


class FragmentRegistry:
    """Fragments registered during one render.

    Registration happens when the defining element executes; a later
    registration under the same name replaces the earlier one.

    """

    __slots__ = ("_fragments", "imported")

    def __init__(self) -> None:
        self._fragments: dict[str, Fragment] = {}
        # Templates whose fragments were already imported into this registry
        self.imported: set[str] = set()

    def register(self, name: str, params: Sequence[str], body: Callable[..., str]) -> None:
        self._fragments[name] = Fragment(name, tuple(params), body)

    def get(self, name: str) -> Fragment | None:
        return self._fragments.get(name)

    def render(self, name: str, args: Sequence[Any] = ()) -> str:
        """Call a fragment, padding missing arguments with None.

        Raises:
            ResolutionError: If no fragment is registered under name.
        """
        fragment = self._fragments.get(name)
        if fragment is None:
            raise ResolutionError(name, "no fragment registered under this name")
        values = list(args[: len(fragment.params)])
        if len(args) > len(fragment.params):
            logger.debug("Fragment '%s' ignores %d extra argument(s)", name, len(args) - len(values))
        values.extend([None] * (len(fragment.params) - len(values)))
        return fragment.body(*values)

    def __contains__(self, name: str) -> bool:
        return name in self._fragments

    def __len__(self) -> int:
        return len(self._fragments)


# =============================================================================
# Sections
# =============================================================================


class SectionStack:
    """Captured sections, one frame per template level.

    The first frame belongs to the template being rendered, later frames to
    each layout in turn. Lookups search the most-derived template first, so
    a child's section overrides a layout's section of the same name.

    """

    __slots__ = ("_frames", "_open", "_writes")

    def __init__(self) -> None:
        self._frames: list[dict[str, str]] = [{}]
        self._open: list[tuple[str, int]] = []
        self._writes: dict[str, int] = {}

    def push_frame(self) -> None:
        self._frames.append({})

    def begin(self, name: str) -> None:
        self._open.append((name, self._writes.get(name, 0)))

    def end(self, content: str) -> str:
        """Close the innermost open section and store its content.

        A section that already received content from a nested section of the
        same name while open keeps the inner content.
        """
        if not self._open:
            raise RenderError("<sections>", "section end without a matching start")
        name, writes_at_start = self._open.pop()
        if self._writes.get(name, 0) == writes_at_start:
            self._frames[-1][name] = content
            self._writes[name] = writes_at_start + 1
        return name

    def lookup(self, name: str) -> str | None:
        for frame in self._frames:
            if name in frame:
                return frame[name]
        return None

    @property
    def depth(self) -> int:
        """Number of template levels recorded."""
        return len(self._frames)


# =============================================================================
# Render context
# =============================================================================


class RenderContext:
    """State of one render.

    Compiled code writes through :meth:`write`, resolves free names through
    :meth:`lookup` and helpers through :meth:`helper`. Fragments, sections
    and the layout request are per-render.

    Usage:
        >>> ctx = RenderContext({"name": "World"})
        >>> ctx.write("Hello ")
        >>> ctx.write(escape(ctx.lookup("name")))
        >>> ctx.getvalue()
        'Hello World'

    """

    __slots__ = (
        "data",
        "helpers",
        "errors",
        "validation_errors",
        "session",
        "environment",
        "template_name",
        "depth",
        "fragments",
        "sections",
        "layout",
        "_buffers",
    )

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
        errors: Mapping[str, Any] | None = None,
        validation_errors: Mapping[str, Any] | None = None,
        session: Mapping[str, Any] | None = None,
        environment: Environment | None = None,
        template_name: str | None = None,
        depth: int = 0,
        fragments: FragmentRegistry | None = None,
    ) -> None:
        self.data = data if data is not None else {}
        self.helpers = helpers if helpers is not None else {}
        self.errors = errors
        self.validation_errors = validation_errors
        self.session = session
        self.environment = environment
        self.template_name = template_name
        self.depth = depth
        self.fragments = fragments if fragments is not None else FragmentRegistry()
        self.sections = SectionStack()
        self.layout: str | None = None
        self._buffers: list[StringBuilder] = [StringBuilder()]

    # -- output ---------------------------------------------------------------

    def write(self, text: str) -> None:
        self._buffers[-1].append(text)

    def push_buffer(self) -> None:
        """Redirect writes into a fresh buffer."""
        self._buffers.append(StringBuilder())

    def pop_buffer(self) -> str:
        """Stop capturing and return what was written since push_buffer()."""
        if len(self._buffers) == 1:
            raise RenderError(self.template_name or "<string>", "output buffer underflow")
        return self._buffers.pop().build()

    def getvalue(self) -> str:
        """Output written to the root buffer."""
        return self._buffers[0].build()

    def reset_output(self) -> None:
        """Discard root output (used when a layout takes over)."""
        self._buffers[0].clear()

    # -- names ----------------------------------------------------------------

    def lookup(self, name: str) -> Any:
        """Resolve a free template name; unknown names are None."""
        data = self.data
        if isinstance(data, Mapping):
            return data.get(name)
        return get(data, name)

    def helper(self, name: str) -> Callable[..., Any] | None:
        return self.helpers.get(name)

    # -- layouts and sections -------------------------------------------------

    def extend(self, name: str) -> None:
        """Request a layout; the last request made during a render wins."""
        self.layout = name

    def start_section(self, name: str) -> None:
        self.sections.begin(name)
        self.push_buffer()

    def end_section(self) -> None:
        self.sections.end(self.pop_buffer())

    def yield_section(self, name: str, default: Any = None) -> str:
        """Captured section markup, or the escaped default."""
        content = self.sections.lookup(name)
        if content is None:
            return escape(default)
        return content

    # -- fragments ------------------------------------------------------------

    def derive(self, template_name: str) -> RenderContext:
        """Context for rendering another template that shares this render's
        data, helpers and fragment registry but nothing else."""
        return RenderContext(
            self.data,
            helpers=self.helpers,
            errors=self.errors,
            validation_errors=self.validation_errors,
            session=self.session,
            environment=self.environment,
            template_name=template_name,
            depth=self.depth + 1,
            fragments=self.fragments,
        )

    def import_fragments(self, template: str) -> None:
        """Execute another template once so its fragments get registered.

        Raises:
            ResolutionError: If there is no environment or the template
                cannot be loaded.
        """
        if template in self.fragments.imported:
            return
        if self.environment is None:
            raise ResolutionError(template, "no environment to load templates from")
        try:
            compiled = self.environment.get_template(template)
        except TemplateNotFound as exc:
            raise ResolutionError(template, str(exc)) from exc
        self.fragments.imported.add(template)
        compiled.render_into(self.derive(template))

    def render_fragment(self, name: str, args: Sequence[Any] = (), template: str | None = None) -> str:
        """Render a fragment; unresolvable targets render as nothing."""
        try:
            if template is not None:
                self.import_fragments(template)
            return self.fragments.render(name, args)
        except ResolutionError as exc:
            logger.debug("%s (in %s)", exc, self.template_name or "<string>")
            return ""

    # -- forms ----------------------------------------------------------------

    def csrf_field(self) -> str:
        """Hidden CSRF field from the first available source, else nothing.

        Sources in order: the ``csrf_field`` helper (returns markup), the
        ``csrf_token`` helper, the session's ``_token``.
        """
        field_helper = self.helper("csrf_field")
        if callable(field_helper):
            return raw(field_helper())
        token = None
        token_helper = self.helper("csrf_token")
        if callable(token_helper):
            token = token_helper()
        if token is None and self.session is not None:
            token = self.session.get("_token")
        if not token:
            return ""
        return f'<input type="hidden" name="_token" value="{escape(token)}">'

    def error_messages(self, field: str) -> list[str]:
        """Messages for a field (``*`` or ``all`` for every field).

        ``errors`` is consulted before ``validation_errors``; the first one
        with messages wins.
        """
        for source in (self.errors, self.validation_errors):
            messages = _collect_messages(source, field)
            if messages:
                return messages
        return []

    def has_errors(self, field: str) -> bool:
        return bool(self.error_messages(field))

    def field_errors(self, field: str) -> str:
        """Escaped messages for a field joined with ``<br>``."""
        return "<br>".join(escape(message) for message in self.error_messages(field))


def _collect_messages(source: Mapping[str, Any] | None, field: str) -> list[str]:
    if not source:
        return []
    if field in ("*", "all"):
        messages: list[str] = []
        for value in source.values():
            messages.extend(_as_messages(value))
        return messages
    return _as_messages(source.get(field))


def _as_messages(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, Iterable):
        return [raw(item) for item in value if item is not None]
    return [raw(value)]


__all__ = [
    "BOOLEAN_ATTRIBUTES",
    "Fragment",
    "FragmentRegistry",
    "RenderContext",
    "SectionStack",
    "add",
    "attribute",
    "call",
    "compare",
    "concat",
    "divide",
    "escape",
    "form_method",
    "get",
    "iterate",
    "loose_equal",
    "matches_value",
    "method_field",
    "modulo",
    "multiply",
    "negate",
    "raw",
    "subtract",
    "switch_index",
]
