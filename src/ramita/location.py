"""Source location tracking for error messages and compiled-code comments.

Thread Safety:
SourceLocation is frozen (immutable) and safe to share across threads.

"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Source location for error messages and debugging.

    All positions are 1-indexed (lineno and col_offset start at 1).

    Attributes:
        lineno: Starting line number (1-indexed)
        col_offset: Starting column offset (1-indexed)
        offset: Absolute start offset in the source text
        source_file: Template name or path (optional)

    Examples:
        >>> loc = SourceLocation(1, 1, 0, "pages/home.th.html")
        >>> str(loc)
        'pages/home.th.html:1:1'

    """

    lineno: int
    col_offset: int
    offset: int = 0
    source_file: str | None = None

    def __str__(self) -> str:
        """Format location for error messages.

        Returns:
            Formatted string like "home.th.html:10:5" or "10:5"
        """
        if self.source_file:
            return f"{self.source_file}:{self.lineno}:{self.col_offset}"
        return f"{self.lineno}:{self.col_offset}"

    @classmethod
    def unknown(cls) -> SourceLocation:
        """Create an unknown/placeholder location.

        Use for nodes created synthetically by directive processors.
        """
        return cls(lineno=0, col_offset=0)


class LineIndex:
    """Maps absolute offsets in a source text to line/column positions."""

    __slots__ = ("_line_starts", "_source_file")

    def __init__(self, source: str, source_file: str | None = None) -> None:
        starts = [0]
        pos = source.find("\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = source.find("\n", pos + 1)
        self._line_starts = starts
        self._source_file = source_file

    def location(self, offset: int) -> SourceLocation:
        """Return the SourceLocation of an absolute offset."""
        line = bisect_right(self._line_starts, offset)
        col = offset - self._line_starts[line - 1] + 1
        return SourceLocation(line, col, offset, self._source_file)
