"""Marker protocol: carrying generated code through the document tree.

The tree cannot hold raw Python, so directive processors store code as an
opaque marker, a comment whose body is ``@ramita:<kind>:<base64 payload>``.
Markers survive any tree mutation and serialization untouched; once the
tree is serialized, a single expansion pass turns the text into the body
of the ``render`` function.

Marker kinds:
- ``open``: statements ending in a block header; following code is indented
- ``close``: dedent, then emit the trailing statements (if any)
- ``stmt``: statements at the current indentation
- ``echo``: one expression whose value is written to the output

Static text between markers becomes a literal write, kept verbatim via
``repr``.

Thread Safety:
All functions are pure. MarkerExpander instances are single-use.

"""

from __future__ import annotations

import base64
import re
from enum import Enum

from ramita.errors import TemplateStructureError
from ramita.nodes import Comment

MARKER_PREFIX = "<!--@ramita:"

MARKER_RE = re.compile(r"<!--@ramita:(open|close|stmt|echo):([A-Za-z0-9+/=]*)-->")

INDENT = "    "


class MarkerKind(Enum):
    """Kinds of generated-code markers."""

    OPEN = "open"
    CLOSE = "close"
    STMT = "stmt"
    ECHO = "echo"


def encode_marker(kind: MarkerKind, payload: str = "") -> str:
    """Encode a payload as marker text.

    Example:
        >>> encode_marker(MarkerKind.ECHO, "1")
        '<!--@ramita:echo:MQ==-->'

    """
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return f"{MARKER_PREFIX}{kind.value}:{encoded}-->"


def decode_payload(encoded: str) -> str:
    """Decode the base64 payload of a marker."""
    return base64.b64decode(encoded.encode("ascii")).decode("utf-8")


def marker_comment(kind: MarkerKind, payload: str = "") -> Comment:
    """Build a comment node that serializes to the marker text."""
    text = encode_marker(kind, payload)
    return Comment(content=text[len("<!--") : -len("-->")])


def is_marker(text: str) -> bool:
    """Return True when text is exactly one marker."""
    return MARKER_RE.fullmatch(text) is not None


class MarkerExpander:
    """Expands serialized template text into Python statements.

    Output lines are indented relative to the enclosing function body.

    Usage:
        >>> text = "<p>" + encode_marker(MarkerKind.ECHO, "_e(x)") + "</p>"
        >>> MarkerExpander(text).expand()
        ["_w('<p>')", '_w(_e(x))', "_w('</p>')"]

    """

    __slots__ = ("_text", "_name", "_lines", "_blocks")

    def __init__(self, text: str, name: str | None = None) -> None:
        self._text = text
        self._name = name
        self._lines: list[str] = []
        # One flag per open block: has it received a statement yet
        self._blocks: list[bool] = []

    def expand(self) -> list[str]:
        """Expand every marker, in order.

        Raises:
            TemplateStructureError: On unbalanced open/close markers or
                marker text that is not well formed.
        """
        pos = 0
        for match in MARKER_RE.finditer(self._text):
            self._static(self._text[pos : match.start()])
            pos = match.end()
            kind = MarkerKind(match.group(1))
            payload = decode_payload(match.group(2))

            if kind is MarkerKind.ECHO:
                self._emit(f"_w({payload})")
            elif kind is MarkerKind.STMT:
                self._emit_all(payload)
            elif kind is MarkerKind.OPEN:
                self._emit_all(payload)
                self._blocks.append(False)
            else:
                self._close()
                self._emit_all(payload)

        self._static(self._text[pos:])
        if self._blocks:
            raise TemplateStructureError(
                f"{len(self._blocks)} generated block(s) were never closed",
                source_file=self._name,
            )
        return self._lines

    def _static(self, text: str) -> None:
        if not text:
            return
        if MARKER_PREFIX in text:
            raise TemplateStructureError("Malformed or unconsumed marker in output", source_file=self._name)
        self._emit(f"_w({text!r})")

    def _close(self) -> None:
        if not self._blocks:
            raise TemplateStructureError("Close marker without a matching open marker", source_file=self._name)
        if not self._blocks[-1]:
            self._emit("pass")
        self._blocks.pop()

    def _emit_all(self, payload: str) -> None:
        for line in payload.splitlines():
            if line.strip():
                self._emit(line)

    def _emit(self, line: str) -> None:
        if self._blocks and not line.lstrip().startswith("#"):
            self._blocks[-1] = True
        self._lines.append(INDENT * len(self._blocks) + line)


def expand_markers(text: str, name: str | None = None) -> list[str]:
    """Expand serialized template text into render-function body lines."""
    return MarkerExpander(text, name).expand()


__all__ = [
    "INDENT",
    "MARKER_PREFIX",
    "MARKER_RE",
    "MarkerExpander",
    "MarkerKind",
    "decode_payload",
    "encode_marker",
    "expand_markers",
    "is_marker",
    "marker_comment",
]
