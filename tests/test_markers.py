"""Tests for the generated-code marker protocol."""

import pytest

from ramita.errors import TemplateStructureError
from ramita.markers import (
    MarkerKind,
    decode_payload,
    encode_marker,
    expand_markers,
    is_marker,
    marker_comment,
)
from ramita.nodes import Document
from ramita.serializer import serialize


class TestEncoding:
    """Marker text encoding."""

    def test_encode(self) -> None:
        assert encode_marker(MarkerKind.ECHO, "1") == "<!--@ramita:echo:MQ==-->"

    def test_payload_survives_markup_characters(self) -> None:
        payload = "_w('-->')\nif x < 1:"
        text = encode_marker(MarkerKind.STMT, payload)
        assert "-->" not in text[len("<!--") : -len("-->")]
        assert decode_payload(text.split(":")[2][: -len("-->")]) == payload

    def test_is_marker(self) -> None:
        assert is_marker(encode_marker(MarkerKind.CLOSE))
        assert not is_marker("<!-- plain comment -->")
        assert not is_marker(encode_marker(MarkerKind.STMT, "x") + " ")

    def test_marker_comment_serializes_to_marker(self) -> None:
        document = Document()
        document.append(marker_comment(MarkerKind.OPEN, "if x:"))
        assert serialize(document) == encode_marker(MarkerKind.OPEN, "if x:")


class TestExpansion:
    """Expansion into render-function body lines."""

    def test_static_text_is_literal_write(self) -> None:
        assert expand_markers("<p>it's</p>") == ['_w("<p>it\'s</p>")']

    def test_echo_between_text(self) -> None:
        text = "<p>" + encode_marker(MarkerKind.ECHO, "_e(x)") + "</p>"
        assert expand_markers(text) == ["_w('<p>')", "_w(_e(x))", "_w('</p>')"]

    def test_blocks_indent(self) -> None:
        text = (
            encode_marker(MarkerKind.OPEN, "if x:")
            + "yes"
            + encode_marker(MarkerKind.CLOSE)
            + "after"
        )
        assert expand_markers(text) == ["if x:", "    _w('yes')", "_w('after')"]

    def test_empty_block_gets_pass(self) -> None:
        text = encode_marker(MarkerKind.OPEN, "for i in x:") + encode_marker(MarkerKind.CLOSE)
        assert expand_markers(text) == ["for i in x:", "    pass"]

    def test_comment_only_block_gets_pass(self) -> None:
        text = (
            encode_marker(MarkerKind.OPEN, "if x:")
            + encode_marker(MarkerKind.STMT, "# note")
            + encode_marker(MarkerKind.CLOSE)
        )
        assert expand_markers(text) == ["if x:", "    # note", "    pass"]

    def test_close_payload_runs_after_dedent(self) -> None:
        text = (
            encode_marker(MarkerKind.OPEN, "try:")
            + "a"
            + encode_marker(MarkerKind.CLOSE, "finally_done = True")
        )
        assert expand_markers(text) == ["try:", "    _w('a')", "finally_done = True"]

    def test_multiline_statement_payload(self) -> None:
        text = encode_marker(MarkerKind.STMT, "a = 1\n\nb = 2\n")
        assert expand_markers(text) == ["a = 1", "b = 2"]

    def test_nested_blocks(self) -> None:
        text = (
            encode_marker(MarkerKind.OPEN, "if a:")
            + encode_marker(MarkerKind.OPEN, "if b:")
            + "x"
            + encode_marker(MarkerKind.CLOSE)
            + encode_marker(MarkerKind.CLOSE)
        )
        assert expand_markers(text) == ["if a:", "    if b:", "        _w('x')"]


class TestUnbalanced:
    """Malformed marker streams."""

    def test_unclosed_block(self) -> None:
        with pytest.raises(TemplateStructureError, match="never closed"):
            expand_markers(encode_marker(MarkerKind.OPEN, "if x:"), "page")

    def test_close_without_open(self) -> None:
        with pytest.raises(TemplateStructureError, match="without a matching open"):
            expand_markers(encode_marker(MarkerKind.CLOSE))

    def test_malformed_marker(self) -> None:
        with pytest.raises(TemplateStructureError, match="Malformed"):
            expand_markers("<!--@ramita:bogus:xx-->")
