"""Document parser for Ramita templates.

A forgiving scanner that turns HTML-like template text into the mutable
tree from :mod:`ramita.nodes`. It is not an HTML5 tree builder: it never
reorders, normalizes or decodes anything, so a tree that no directive
touched serializes back to the exact input.

Handled constructs:
- Comments ``<!-- ... -->`` (unterminated comments run to end of input)
- Declarations and CDATA ``<!DOCTYPE ...>``, ``<![CDATA[ ... ]]>`` (verbatim text)
- Processing instructions ``<? ... ?>`` (verbatim text)
- Start tags with quoted, unquoted and valueless attributes
- Void elements, self-closing syntax, raw-text elements (script, style)
- Same-name implicit close for li/option/tr/td/th/dt/dd/p
- Stray end tags (kept as verbatim text) and unclosed elements at EOF

Thread Safety:
Parser instances hold per-call state. Create one per parse; the module
function ``parse_document`` does so.

"""

from __future__ import annotations

import re

from ramita.errors import TemplateSyntaxError
from ramita.location import LineIndex
from ramita.markers import MARKER_PREFIX
from ramita.nodes import Attribute, Comment, Document, Element, Node, Text

# Elements whose content is raw text up to the matching end tag
RAW_TEXT_ELEMENTS = frozenset(["script", "style"])

# Elements closed implicitly when a sibling with the same name starts
SELF_NESTING_CLOSERS = frozenset(["li", "option", "tr", "td", "th", "dt", "dd", "p"])

_TAG_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9:_.\-]*")
_ATTR_NAME_RE = re.compile(r"[^\s\"'>/=]+")
_WS_RE = re.compile(r"\s*")
_EQUALS_RE = re.compile(r"\s*=\s*")
_UNQUOTED_VALUE_RE = re.compile(r"[^\s>]+")
_END_TAG_RE = re.compile(r"</([A-Za-z][A-Za-z0-9:_.\-]*)\s*>")


class DocumentParser:
    """Single-use parser producing a Document tree.

    Usage:
        >>> doc = DocumentParser("<p th:text=\\"name\\">x</p>", "greeting").parse()
        >>> doc.children[0].tag
        'p'

    """

    __slots__ = ("_source", "_pos", "_len", "_lines", "_name", "_stack", "_document")

    def __init__(self, source: str, name: str | None = None) -> None:
        self._source = source
        self._pos = 0
        self._len = len(source)
        self._lines = LineIndex(source, name)
        self._name = name
        self._document = Document(name=name, location=self._lines.location(0))
        self._stack: list[Element] = []

    def parse(self) -> Document:
        """Parse the whole source.

        Raises:
            TemplateSyntaxError: If the source contains the reserved marker
                sequence used for generated code.
        """
        marker_at = self._source.find(MARKER_PREFIX)
        if marker_at != -1:
            loc = self._lines.location(marker_at)
            raise TemplateSyntaxError(
                f"Template text may not contain the reserved sequence '{MARKER_PREFIX}'",
                lineno=loc.lineno,
                source_file=self._name,
            )

        source = self._source
        text_start = 0
        while self._pos < self._len:
            lt = source.find("<", self._pos)
            if lt == -1:
                break
            self._pos = lt
            if not self._at_markup():
                self._pos = lt + 1
                continue
            self._flush_text(text_start, lt)
            self._scan_markup()
            text_start = self._pos

        self._flush_text(text_start, self._len)
        return self._document

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _at_markup(self) -> bool:
        """Whether the ``<`` at the current position opens a construct."""
        nxt = self._source[self._pos + 1 : self._pos + 2]
        if nxt in ("!", "?"):
            return True
        if nxt == "/":
            return _END_TAG_RE.match(self._source, self._pos) is not None
        if _TAG_NAME_RE.match(self._source, self._pos + 1) is None:
            return False
        return self._start_tag_end(self._pos) is not None

    def _scan_markup(self) -> None:
        source = self._source
        pos = self._pos
        if source.startswith("<!--", pos):
            self._scan_comment()
        elif source.startswith("<![CDATA[", pos):
            self._scan_verbatim("]]>")
        elif source.startswith("<!", pos):
            self._scan_verbatim(">")
        elif source.startswith("<?", pos):
            self._scan_verbatim(">")
        elif source.startswith("</", pos):
            self._scan_end_tag()
        else:
            self._scan_start_tag()

    def _scan_comment(self) -> None:
        start = self._pos
        end = self._source.find("-->", start + 4)
        if end == -1:
            node = Comment(
                content=self._source[start + 4 :],
                terminated=False,
                location=self._lines.location(start),
            )
            self._pos = self._len
        else:
            node = Comment(content=self._source[start + 4 : end], location=self._lines.location(start))
            self._pos = end + 3
        self._add(node)

    def _scan_verbatim(self, terminator: str) -> None:
        start = self._pos
        end = self._source.find(terminator, start + 2)
        self._pos = self._len if end == -1 else end + len(terminator)
        self._add(
            Text(content=self._source[start : self._pos], verbatim=True, location=self._lines.location(start))
        )

    def _scan_end_tag(self) -> None:
        start = self._pos
        match = _END_TAG_RE.match(self._source, start)
        assert match is not None  # guarded by _at_markup
        self._pos = match.end()
        name = match.group(1).lower()

        for depth in range(len(self._stack) - 1, -1, -1):
            if self._stack[depth].name == name:
                # Elements above the match are closed implicitly
                del self._stack[depth + 1 :]
                element = self._stack.pop()
                element.end_tag = match.group(0)
                return

        # Stray end tag: keep it as text so the output is unchanged
        self._add(Text(content=match.group(0), verbatim=True, location=self._lines.location(start)))

    def _scan_start_tag(self) -> None:
        start = self._pos
        source = self._source
        name_match = _TAG_NAME_RE.match(source, start + 1)
        assert name_match is not None
        tag = name_match.group(0)
        pos = name_match.end()
        # A quoted value never runs past the tag's closing ">"
        tag_stop = self._start_tag_end(start)
        assert tag_stop is not None  # guarded by _at_markup

        attributes: list[Attribute] = []
        seen: set[str] = set()
        scan = pos
        while True:
            ws = _WS_RE.match(source, scan)
            assert ws is not None
            after_ws = ws.end()
            if source.startswith("/>", after_ws) or source.startswith(">", after_ws):
                break
            name_match = _ATTR_NAME_RE.match(source, after_ws)
            if name_match is None:
                # Stray "/" or quote: carried in the next attribute's prefix
                scan = after_ws + 1
                continue
            attr = Attribute(name_match.group(0), None, quote="", prefix=source[pos:after_ws], equals="")
            pos = name_match.end()
            eq = _EQUALS_RE.match(source, pos)
            if eq is not None and eq.end() > pos:
                value_start = eq.end()
                quote = source[value_start : value_start + 1]
                value_end = source.find(quote, value_start + 1, tag_stop) if quote in ('"', "'") else -1
                if value_end != -1:
                    attr.value = source[value_start + 1 : value_end]
                    attr.quote = quote
                    pos = value_end + 1
                else:
                    value_match = _UNQUOTED_VALUE_RE.match(source, value_start)
                    if value_match is None:
                        attr.value = ""
                        pos = value_start
                    else:
                        attr.value = value_match.group(0)
                        pos = value_match.end()
                attr.equals = eq.group(0)
            lowered = attr.name.lower()
            if lowered in seen:
                loc = self._lines.location(start)
                raise TemplateSyntaxError(
                    f"Duplicate attribute '{attr.name}' on <{tag}>",
                    lineno=loc.lineno,
                    source_file=self._name,
                )
            seen.add(lowered)
            attributes.append(attr)
            scan = pos

        self_closing = source.startswith("/>", after_ws)
        tag_end = source[pos:after_ws]
        self._pos = after_ws + (2 if self_closing else 1)

        element = Element(
            tag=tag,
            attributes=attributes,
            self_closing=self_closing,
            tag_end=tag_end,
            location=self._lines.location(start),
        )

        lowered = element.name
        if lowered in SELF_NESTING_CLOSERS and self._stack and self._stack[-1].name == lowered:
            self._stack.pop()

        self._add(element)
        if self_closing or element.is_void:
            return
        if lowered in RAW_TEXT_ELEMENTS:
            self._scan_raw_text(element)
            return
        self._stack.append(element)

    def _scan_raw_text(self, element: Element) -> None:
        start = self._pos
        closer = re.compile(rf"</{re.escape(element.name)}\s*>", re.IGNORECASE)
        match = closer.search(self._source, start)
        end = self._len if match is None else match.start()
        if end > start:
            element.append(
                Text(content=self._source[start:end], verbatim=True, location=self._lines.location(start))
            )
        if match is not None:
            element.end_tag = match.group(0)
            self._pos = match.end()
        else:
            self._pos = self._len

    def _start_tag_end(self, pos: int) -> int | None:
        """Return the offset just past a well-formed start tag at ``pos``, else None."""
        source = self._source
        length = self._len
        quote = ""
        i = pos + 1
        while i < length:
            char = source[i]
            if quote:
                if char == quote:
                    quote = ""
            elif char in ('"', "'"):
                # Quotes only open values, i.e. right after "="
                j = i - 1
                while j > pos and source[j].isspace():
                    j -= 1
                if source[j] == "=":
                    quote = char
            elif char == ">":
                return i + 1
            elif char == "<":
                return None
            i += 1
        return None

    # -------------------------------------------------------------------------
    # Tree building
    # -------------------------------------------------------------------------

    def _add(self, node: Node) -> None:
        parent = self._stack[-1] if self._stack else self._document
        parent.append(node)

    def _flush_text(self, start: int, end: int) -> None:
        if end > start:
            self._add(Text(content=self._source[start:end], location=self._lines.location(start)))


def parse_document(source: str, name: str | None = None) -> Document:
    """Parse template text into a Document tree.

    Args:
        source: Template text
        name: Logical template name used in locations and errors

    Returns:
        Document root

    """
    return DocumentParser(source, name).parse()


__all__ = ["DocumentParser", "RAW_TEXT_ELEMENTS", "parse_document"]
