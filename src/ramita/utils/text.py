"""Text processing utilities for Ramita.

Provides escaping for markup output and delimiter-aware splitting used by
directives that take lists (``with``, ``attr``, fragment arguments).

Example:
    >>> from ramita.utils.text import split_top_level
    >>> split_top_level("a=f(1, 2), b='x,y'")
    ['a=f(1, 2)', " b='x,y'"]
"""

from __future__ import annotations

import html as html_module
import re

IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def escape_html(text: str) -> str:
    """Escape HTML special characters for text and attribute values.

    Converts ``&``, ``<``, ``>``, ``"`` and ``'`` to entities.

    Examples:
        >>> escape_html("<b>\\"Tom\\" & 'Jerry'</b>")
        '&lt;b&gt;&quot;Tom&quot; &amp; &#x27;Jerry&#x27;&lt;/b&gt;'
    """
    if not text:
        return ""
    return html_module.escape(text, quote=True)


def is_identifier(text: str) -> bool:
    """Return True when text is a plain template identifier."""
    return IDENTIFIER_RE.fullmatch(text) is not None


def split_top_level(text: str, delimiter: str = ",") -> list[str]:
    """Split text on a delimiter, ignoring delimiters nested in parens or quotes.

    Backslash-escaped quote characters inside a quoted run do not close it.
    Parts are returned unstripped; an empty input yields an empty list.

    Args:
        text: Text to split
        delimiter: Single-character delimiter

    Returns:
        List of parts in source order
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote = ""
    prev = ""

    for char in text:
        if quote:
            if char == quote and prev != "\\":
                quote = ""
        elif char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == delimiter and depth == 0:
            parts.append("".join(current))
            current = []
            prev = char
            continue
        current.append(char)
        prev = char

    if current:
        parts.append("".join(current))
    return parts


def unquote(text: str) -> str:
    """Strip one pair of matching surrounding quotes, if present."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text
