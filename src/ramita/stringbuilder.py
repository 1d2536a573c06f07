"""StringBuilder for O(n) string accumulation.

Used by the serializer and as the output buffer of a render: compiled
templates write many small literal chunks, so appending to a list and
joining once is much cheaper than repeated concatenation.

Thread Safety:
StringBuilder instances are local to one serialize() call or one render
buffer. No shared mutable state.

"""

from __future__ import annotations


class StringBuilder:
    """Efficient string accumulator.

    Usage:
            >>> sb = StringBuilder()
            >>> sb.append("<p>")
            >>> sb.append("Hello")
            >>> sb.append("</p>")
            >>> sb.build()
            '<p>Hello</p>'

    """

    __slots__ = ("_parts",)

    def __init__(self) -> None:
        """Initialize empty StringBuilder."""
        self._parts: list[str] = []

    def append(self, s: str) -> StringBuilder:
        """Append a string to the builder.

        Args:
            s: String to append (empty strings are skipped)

        Returns:
            self for method chaining
        """
        if s:
            self._parts.append(s)
        return self

    def extend(self, strings: list[str]) -> StringBuilder:
        """Append multiple strings at once."""
        self._parts.extend(s for s in strings if s)
        return self

    def build(self) -> str:
        """Join all parts into the final string."""
        return "".join(self._parts)

    def clear(self) -> None:
        """Drop accumulated parts so the builder can be reused."""
        self._parts.clear()

    def __len__(self) -> int:
        """Number of accumulated parts."""
        return len(self._parts)

    def __bool__(self) -> bool:
        return bool(self._parts)


__all__ = ["StringBuilder"]
