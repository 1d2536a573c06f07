"""Tests for Ramita utility modules."""


class TestEscapeHtml:
    """Tests for escape_html function."""

    def test_special_characters(self) -> None:
        from ramita.utils.text import escape_html

        assert escape_html("<b>\"Tom\" & 'Jerry'</b>") == (
            "&lt;b&gt;&quot;Tom&quot; &amp; &#x27;Jerry&#x27;&lt;/b&gt;"
        )

    def test_empty_string(self) -> None:
        from ramita.utils.text import escape_html

        assert escape_html("") == ""


class TestSplitTopLevel:
    """Tests for split_top_level function."""

    def test_nested_delimiters_are_kept(self) -> None:
        from ramita.utils.text import split_top_level

        assert split_top_level("a=f(1, 2), b='x,y'") == ["a=f(1, 2)", " b='x,y'"]

    def test_escaped_quote_does_not_close(self) -> None:
        from ramita.utils.text import split_top_level

        assert split_top_level(r"'a\',b', c") == [r"'a\',b'", " c"]

    def test_custom_delimiter(self) -> None:
        from ramita.utils.text import split_top_level

        assert split_top_level("a=1; b=(2;3)", ";") == ["a=1", " b=(2;3)"]

    def test_empty_string(self) -> None:
        from ramita.utils.text import split_top_level

        assert split_top_level("") == []


class TestUnquote:
    """Tests for unquote and is_identifier."""

    def test_unquote(self) -> None:
        from ramita.utils.text import unquote

        assert unquote(" 'POST' ") == "POST"
        assert unquote('"x"') == "x"
        assert unquote("'x\"") == "'x\""
        assert unquote("'") == "'"

    def test_is_identifier(self) -> None:
        from ramita.utils.text import is_identifier

        assert is_identifier("showActions")
        assert is_identifier("_x1")
        assert not is_identifier("1x")
        assert not is_identifier("a.b")


class TestHashStr:
    """Tests for hash_str function."""

    def test_known_digest(self) -> None:
        from ramita.utils.hashing import hash_str

        assert hash_str("hello") == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"

    def test_truncate(self) -> None:
        from ramita.utils.hashing import hash_str

        assert hash_str("hello", truncate=16) == "2cf24dba5fb0a30e"


class TestGetLogger:
    """Tests for get_logger function."""

    def test_prefix_added(self) -> None:
        from ramita.utils.logger import get_logger

        assert get_logger("mymodule").name == "ramita.mymodule"

    def test_prefix_not_doubled(self) -> None:
        from ramita.utils.logger import get_logger

        assert get_logger("ramita.engine").name == "ramita.engine"
        assert get_logger("ramita").name == "ramita"
