"""Mutable document tree for Ramita templates.

Unlike an immutable AST, directive processors rewrite this tree in place:
they wrap elements in markers, replace content, drop tags and rewrite
attributes. Every node keeps the raw text it was parsed from so untouched
regions serialize byte-for-byte.

Node Hierarchy:
Node (base)
├── Document   (root container, no markup of its own)
├── Element    (tag, ordered attributes, ordered children)
├── Text       (raw character data)
└── Comment    (raw comment body, also carries markers)

Ownership:
An Element or Document owns its children exclusively; every node holds one
non-owning ``parent`` reference. Use the container methods (``append``,
``insert_before``...) so the back-references stay consistent.

Thread Safety:
Trees are built fresh for every compile and never shared between threads.

"""

from __future__ import annotations

import html
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from ramita.location import SourceLocation
from ramita.utils.text import escape_html

# Elements that never have content or an end tag
VOID_ELEMENTS = frozenset(
    [
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    ]
)


class ElementState(Enum):
    """Dispatch progress of an element.

    Unvisited → StructuralApplied → ChildrenProcessed → LeafDirectivesApplied → Done
    """

    UNVISITED = 0
    STRUCTURAL_APPLIED = 1
    CHILDREN_PROCESSED = 2
    LEAF_DIRECTIVES_APPLIED = 3
    DONE = 4


# =============================================================================
# Base Node
# =============================================================================


@dataclass(slots=True, eq=False, kw_only=True)
class Node:
    """Base class for all tree nodes.

    All nodes track their source location for error messages.

    """

    location: SourceLocation = field(default_factory=SourceLocation.unknown)
    parent: Element | Document | None = field(default=None, repr=False)

    def detach(self) -> None:
        """Remove this node from its parent, if any."""
        if self.parent is not None:
            self.parent.remove_child(self)

    def replace_with(self, *nodes: Node) -> None:
        """Replace this node with the given nodes, in order."""
        parent = self.parent
        if parent is None:
            msg = "Cannot replace a detached node"
            raise ValueError(msg)
        parent.insert_before(self, *nodes)
        parent.remove_child(self)


@dataclass(slots=True, eq=False, kw_only=True)
class Text(Node):
    """Raw character data.

    ``verbatim`` text (doctype, CDATA, processing instructions, script and
    style bodies) is never interpolated.

    """

    content: str = ""
    verbatim: bool = False


@dataclass(slots=True, eq=False, kw_only=True)
class Comment(Node):
    """Comment; ``content`` is the raw text between ``<!--`` and ``-->``.

    A missing terminator at end of input is recorded so the comment
    round-trips exactly.

    """

    content: str = ""
    terminated: bool = True


@dataclass(slots=True, eq=False)
class Attribute:
    """One attribute of an element.

    Attributes:
        name: Attribute name as written
        value: Raw value text (entities not decoded), None when valueless
        quote: Quote character used around the value ('"', "'" or "")
        prefix: Raw whitespace preceding the attribute
        equals: Raw ``=`` spelling including surrounding whitespace
        dynamic: When True, ``value`` holds a marker that renders the whole
            attribute (name included) at render time

    """

    name: str
    value: str | None = None
    quote: str = '"'
    prefix: str = " "
    equals: str = "="
    dynamic: bool = False

    @property
    def text(self) -> str | None:
        """Decoded attribute value (entities resolved)."""
        if self.value is None:
            return None
        return html.unescape(self.value)


# =============================================================================
# Containers
# =============================================================================


class _Container:
    """Child list management shared by Element and Document."""

    __slots__ = ()

    children: list[Node]

    def append(self, *nodes: Node) -> None:
        """Append nodes as last children."""
        for node in nodes:
            node.detach()
            node.parent = self  # type: ignore[assignment]
            self.children.append(node)

    def prepend(self, *nodes: Node) -> None:
        """Insert nodes before the first child, preserving their order."""
        if self.children:
            self.insert_before(self.children[0], *nodes)
        else:
            self.append(*nodes)

    def insert_before(self, ref: Node, *nodes: Node) -> None:
        """Insert nodes immediately before ``ref``, preserving their order."""
        for node in nodes:
            node.detach()
        index = self._index_of(ref)
        for offset, node in enumerate(nodes):
            node.parent = self  # type: ignore[assignment]
            self.children.insert(index + offset, node)

    def insert_after(self, ref: Node, *nodes: Node) -> None:
        """Insert nodes immediately after ``ref``, preserving their order."""
        for node in nodes:
            node.detach()
        index = self._index_of(ref) + 1
        for offset, node in enumerate(nodes):
            node.parent = self  # type: ignore[assignment]
            self.children.insert(index + offset, node)

    def remove_child(self, node: Node) -> None:
        """Remove a direct child and clear its parent reference."""
        del self.children[self._index_of(node)]
        node.parent = None

    def replace_children(self, *nodes: Node) -> None:
        """Drop all children and adopt the given nodes."""
        for child in self.children:
            child.parent = None
        self.children = []
        self.append(*nodes)

    def _index_of(self, node: Node) -> int:
        for index, child in enumerate(self.children):
            if child is node:
                return index
        msg = "Node is not a child of this container"
        raise ValueError(msg)

    def iter_elements(self) -> Iterator[Element]:
        """Yield descendant elements in document order."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter_elements()

    def text_content(self) -> str:
        """Concatenated raw text of all descendant text nodes."""
        parts: list[str] = []
        for child in self.children:
            if isinstance(child, Text):
                parts.append(child.content)
            elif isinstance(child, Element):
                parts.append(child.text_content())
        return "".join(parts)


@dataclass(slots=True, eq=False, kw_only=True)
class Document(_Container, Node):
    """Root of a parsed template. Serializes as its children only."""

    name: str | None = None
    children: list[Node] = field(default_factory=list)


@dataclass(slots=True, eq=False, kw_only=True)
class Element(_Container, Node):
    """Markup element.

    Attributes:
        tag: Tag name as written
        attributes: Ordered attributes (names unique, case-insensitive)
        children: Ordered child nodes
        self_closing: Start tag was written ``<x/>``
        tag_end: Raw whitespace between the last attribute and ``>``/``/>``
        end_tag: Raw end tag text, or None when the element had none
        omit_tag: Serialize children only (unwrapped by a directive)
        state: Dispatch progress

    """

    tag: str
    attributes: list[Attribute] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)
    self_closing: bool = False
    tag_end: str = ""
    end_tag: str | None = None
    omit_tag: bool = False
    state: ElementState = ElementState.UNVISITED

    @property
    def name(self) -> str:
        """Lower-cased tag name."""
        return self.tag.lower()

    @property
    def is_void(self) -> bool:
        return self.name in VOID_ELEMENTS

    def get_attribute(self, name: str) -> Attribute | None:
        """Return the attribute called ``name`` (case-insensitive)."""
        wanted = name.lower()
        for attr in self.attributes:
            if attr.name.lower() == wanted:
                return attr
        return None

    def has_attribute(self, name: str) -> bool:
        return self.get_attribute(name) is not None

    def attribute_text(self, name: str, default: str | None = None) -> str | None:
        """Decoded value of an attribute, or ``default`` when absent/valueless."""
        attr = self.get_attribute(name)
        if attr is None or attr.value is None:
            return default
        return attr.text

    def set_attribute(self, name: str, value: str | None) -> None:
        """Set a static attribute, escaping ``value``.

        An existing attribute keeps its position and spacing.
        """
        raw = None if value is None else escape_html(value)
        attr = self.get_attribute(name)
        if attr is None:
            self.attributes.append(Attribute(name, raw))
            return
        attr.value = raw
        attr.dynamic = False
        if raw is not None and not attr.quote:
            attr.quote = '"'

    def set_dynamic_attribute(self, name: str, marker: str) -> None:
        """Replace or add ``name`` with a marker that renders the whole attribute."""
        attr = self.get_attribute(name)
        if attr is None:
            self.attributes.append(Attribute(name, marker, dynamic=True))
            return
        attr.value = marker
        attr.dynamic = True

    def remove_attribute(self, name: str) -> Attribute | None:
        """Remove and return the attribute called ``name``."""
        attr = self.get_attribute(name)
        if attr is not None:
            self.attributes.remove(attr)
        return attr


def iter_nodes(nodes: Iterable[Node]) -> Iterator[Node]:
    """Yield nodes and all their descendants in document order."""
    for node in nodes:
        yield node
        if isinstance(node, (Element, Document)):
            yield from iter_nodes(node.children)


__all__ = [
    "Attribute",
    "Comment",
    "Document",
    "Element",
    "ElementState",
    "Node",
    "Text",
    "VOID_ELEMENTS",
    "iter_nodes",
]
