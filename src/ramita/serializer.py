"""Serializer: writes a document tree back to template text.

Nodes untouched by directives come out byte-for-byte as parsed: raw
attribute spacing, quotes, entity spelling and end-tag spelling are all
kept on the nodes. Dynamic attributes serialize as their marker only; the
rendered attribute supplies its own leading space.

Thread Safety:
Stateless functions over a tree that belongs to a single compile.

"""

from __future__ import annotations

from ramita.errors import TemplateStructureError
from ramita.nodes import Comment, Document, Element, ElementState, Node, Text
from ramita.stringbuilder import StringBuilder


def serialize(root: Document | Element, *, require_done: bool = False) -> str:
    """Serialize a tree to text.

    Args:
        root: Document or element to write
        require_done: Reject elements that the dispatcher has not finished

    Raises:
        TemplateStructureError: If ``require_done`` and an element is not Done.
    """
    sb = StringBuilder()
    if isinstance(root, Document):
        _write_children(root.children, sb, require_done)
    else:
        _write_node(root, sb, require_done)
    return sb.build()


def _write_children(children: list[Node], sb: StringBuilder, require_done: bool) -> None:
    for child in children:
        _write_node(child, sb, require_done)


def _write_node(node: Node, sb: StringBuilder, require_done: bool) -> None:
    if isinstance(node, Text):
        sb.append(node.content)
    elif isinstance(node, Comment):
        sb.append("<!--").append(node.content)
        if node.terminated:
            sb.append("-->")
    elif isinstance(node, Element):
        _write_element(node, sb, require_done)
    elif isinstance(node, Document):
        _write_children(node.children, sb, require_done)


def _write_element(element: Element, sb: StringBuilder, require_done: bool) -> None:
    if require_done and element.state is not ElementState.DONE:
        raise TemplateStructureError(
            f"<{element.tag}> was serialized before directive processing finished",
            lineno=element.location.lineno or None,
            source_file=element.location.source_file,
        )

    if element.omit_tag:
        _write_children(element.children, sb, require_done)
        return

    sb.append("<").append(element.tag)
    for attr in element.attributes:
        if attr.dynamic:
            sb.append(attr.value or "")
            continue
        sb.append(attr.prefix).append(attr.name)
        if attr.value is not None:
            sb.append(attr.equals or "=").append(attr.quote).append(attr.value).append(attr.quote)
    sb.append(element.tag_end)
    sb.append("/>" if element.self_closing else ">")

    _write_children(element.children, sb, require_done)

    if element.end_tag is not None:
        sb.append(element.end_tag)


__all__ = ["serialize"]
