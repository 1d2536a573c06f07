"""Tests for the document parser and serializer.

The central property: a tree no directive touched serializes back to the
exact input.
"""

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from ramita import render_string
from ramita.errors import TemplateStructureError, TemplateSyntaxError
from ramita.nodes import Comment, Element, ElementState, Text
from ramita.parser import parse_document
from ramita.serializer import serialize


def roundtrip(source: str) -> str:
    return serialize(parse_document(source))


class TestTreeShape:
    """Structure of parsed trees."""

    def test_element_with_attributes(self) -> None:
        doc = parse_document('<a href="/x" class=big disabled>go</a>')
        link = doc.children[0]
        assert isinstance(link, Element)
        assert link.tag == "a"
        assert [attr.name for attr in link.attributes] == ["href", "class", "disabled"]
        assert link.attribute_text("href") == "/x"
        assert link.attribute_text("class") == "big"
        assert link.get_attribute("disabled").value is None
        assert link.text_content() == "go"

    def test_attribute_text_decodes_entities(self) -> None:
        doc = parse_document('<p title="a &amp; b"></p>')
        element = doc.children[0]
        assert isinstance(element, Element)
        assert element.attribute_text("title") == "a & b"

    def test_void_elements_have_no_children(self) -> None:
        doc = parse_document("<p><br>text</p>")
        paragraph = doc.children[0]
        assert isinstance(paragraph, Element)
        assert [type(child) for child in paragraph.children] == [Element, Text]

    def test_implicit_close_of_list_items(self) -> None:
        doc = parse_document("<ul><li>a<li>b</ul>")
        items = [el for el in doc.iter_elements() if el.name == "li"]
        assert len(items) == 2
        assert items[0].parent is items[1].parent

    def test_script_body_is_verbatim(self) -> None:
        doc = parse_document("<script>if (a < b) { x() }</script>")
        script = doc.children[0]
        assert isinstance(script, Element)
        body = script.children[0]
        assert isinstance(body, Text)
        assert body.verbatim
        assert body.content == "if (a < b) { x() }"

    def test_comment_node(self) -> None:
        doc = parse_document("<!-- note -->")
        comment = doc.children[0]
        assert isinstance(comment, Comment)
        assert comment.content == " note "

    def test_locations(self) -> None:
        doc = parse_document("<div>\n  <p>x</p>\n</div>", "page")
        paragraph = next(el for el in doc.iter_elements() if el.name == "p")
        assert paragraph.location.lineno == 2
        assert paragraph.location.col_offset == 3
        assert paragraph.location.source_file == "page"


class TestRejections:
    """Inputs the parser refuses."""

    def test_duplicate_attribute(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="Duplicate attribute"):
            parse_document('<p class="a" CLASS="b"></p>')

    def test_reserved_marker_sequence(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="reserved sequence") as exc_info:
            parse_document("ok\n<!--@ramita:echo:MQ==-->", "page")
        assert exc_info.value.lineno == 2


class TestRoundTrip:
    """Byte-for-byte serialization of untouched trees."""

    @pytest.mark.parametrize(
        "source",
        [
            "",
            "plain text",
            '<!DOCTYPE html>\n<html lang="en"><head><meta charset=utf-8></head></html>',
            "<p  class = 'x'   id=y\n  hidden >text</p >",
            "<img src='a.png'/><br/>",
            "<ul><li>one<li>two</ul>",
            "<p>unclosed <b>bold",
            "</div> stray end tag",
            "a < b and c > d",
            "<!-- unterminated",
            "<![CDATA[ <x> ]]>",
            "<?xml version='1.0'?>",
            "<style>p > a { color: red }</style>",
            '<p title="a &amp; b">&lt;tag&gt;</p>',
            "<input value=\"it's\">",
            '<p "stray">x</p>',
            "<p a='<'>x</p>",
            "<Div CLASS=x></div>",
        ],
    )
    def test_examples(self, source: str) -> None:
        assert roundtrip(source) == source

    @given(st.text(alphabet="<>/=\"' abpliscrt-!?\n", max_size=200))
    @settings(max_examples=300)
    def test_random_markup(self, source: str) -> None:
        """Any directive-free markup survives parse + serialize unchanged."""
        try:
            document = parse_document(source)
        except TemplateSyntaxError:
            assume(False)
        assert serialize(document) == source

    @given(st.text(alphabet="<>/=\"' abpliscrt-!?\n", max_size=200))
    @settings(max_examples=150)
    def test_random_markup_renders_unchanged(self, source: str) -> None:
        """Compiling and rendering directive-free markup reproduces it."""
        try:
            parse_document(source)
        except TemplateSyntaxError:
            assume(False)
        assert render_string(source) == source


class TestSerializer:
    """Serializer details."""

    def test_omit_tag_writes_children_only(self) -> None:
        doc = parse_document("<div><p>x</p></div>")
        outer = doc.children[0]
        assert isinstance(outer, Element)
        outer.omit_tag = True
        assert serialize(doc) == "<p>x</p>"

    def test_set_attribute_escapes(self) -> None:
        doc = parse_document("<p></p>")
        element = doc.children[0]
        assert isinstance(element, Element)
        element.set_attribute("title", 'say "hi"')
        assert serialize(doc) == '<p title="say &quot;hi&quot;"></p>'

    def test_require_done_rejects_unprocessed(self) -> None:
        doc = parse_document("<p>x</p>")
        with pytest.raises(TemplateStructureError, match="before directive processing"):
            serialize(doc, require_done=True)

    def test_require_done_accepts_finished(self) -> None:
        doc = parse_document("<p>x</p>")
        element = doc.children[0]
        assert isinstance(element, Element)
        element.state = ElementState.DONE
        assert serialize(doc, require_done=True) == "<p>x</p>"

    def test_serialize_single_element(self) -> None:
        doc = parse_document("<div><p>x</p><p>y</p></div>")
        second = [el for el in doc.iter_elements() if el.name == "p"][1]
        assert serialize(second) == "<p>y</p>"
