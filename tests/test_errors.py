"""Tests for the exception hierarchy and error formatting."""

import logging

import pytest

from ramita import CompilerConfig, render_string
from ramita.errors import (
    RamitaError,
    RenderError,
    ResolutionError,
    TemplateError,
    TemplateNotFound,
    TemplateStructureError,
    TemplateSyntaxError,
)
from ramita.utils.logger import get_logger, warn_at


class TestHierarchy:
    """Every error derives from RamitaError."""

    @pytest.mark.parametrize(
        "cls",
        [TemplateError, TemplateSyntaxError, TemplateStructureError, ResolutionError, TemplateNotFound, RenderError],
    )
    def test_base(self, cls: type) -> None:
        assert issubclass(cls, RamitaError)

    def test_template_errors(self) -> None:
        assert issubclass(TemplateSyntaxError, TemplateError)
        assert issubclass(TemplateStructureError, TemplateError)


class TestFormatting:
    """Messages carry file, line, directive and expression."""

    def test_full_location(self) -> None:
        error = TemplateSyntaxError(
            "Unexpected end of expression",
            expression="a ==",
            directive="th:if",
            lineno=3,
            source_file="pages/home",
        )
        assert str(error) == 'pages/home:3: Unexpected end of expression (in th:if="a ==")'

    def test_message_only(self) -> None:
        assert str(TemplateStructureError("bad")) == "bad"

    def test_expression_without_directive(self) -> None:
        assert str(TemplateSyntaxError("bad", expression="x y")) == 'bad (in expression "x y")'

    def test_line_without_file(self) -> None:
        assert str(TemplateSyntaxError("bad", lineno=7)) == "7: bad"

    def test_locate_fills_missing_fields_only(self) -> None:
        inner = TemplateSyntaxError("bad", expression="a b", col_offset=3)
        located = inner.locate(directive="th:text", lineno=4, source_file="page", expression="ignored")
        assert isinstance(located, TemplateSyntaxError)
        assert located.expression == "a b"
        assert located.col_offset == 3
        assert located.lineno == 4
        assert str(located) == 'page:4: bad (in th:text="a b")'

    def test_not_found_lists_locations(self) -> None:
        error = TemplateNotFound("home", ("/a/home.html", "/b/home.html"))
        assert str(error) == "Template 'home' not found. Searched in:\n  - /a/home.html\n  - /b/home.html"

    def test_render_and_resolution_messages(self) -> None:
        assert str(RenderError("home", "boom")) == "Error rendering template 'home': boom"
        assert str(ResolutionError("card", "gone")) == "Cannot resolve 'card': gone"


class TestStrictAndPermissive:
    """Tolerated structural problems warn, or raise in strict mode."""

    CASES = [
        '<li th:repeat="nonsense">x</li>',
        '<div th:switch="r"><p>x</p></div>',
        '<p th:case="a">x</p>',
        '<p th:if="a" th:unless="b">x</p>',
        "<p>{a b}</p>",
    ]

    @pytest.mark.parametrize("source", CASES)
    def test_permissive_warns(self, source: str, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="ramita"):
            render_string(source, name="page")
        assert any(record.levelno == logging.WARNING for record in caplog.records)
        assert "page:1:" in caplog.text

    @pytest.mark.parametrize("source", CASES)
    def test_strict_raises(self, source: str) -> None:
        with pytest.raises(TemplateError) as exc_info:
            render_string(source, name="page", config=CompilerConfig(strict=True))
        assert exc_info.value.source_file == "page"

    def test_syntax_errors_are_never_tolerated(self) -> None:
        with pytest.raises(TemplateSyntaxError):
            render_string('<p th:text="a +">x</p>')

    def test_warning_prefix(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("tests")
        with caplog.at_level(logging.WARNING, logger="ramita"):
            warn_at(logger, None, 4, "odd %s", "markup")
        assert caplog.records[-1].getMessage() == "<string>:4: odd markup"
        assert caplog.records[-1].name == "ramita.tests"
