"""Tests for layouts: extend, section and yield."""

import pytest

from ramita import DictLoader, Environment, render_string
from ramita.errors import RenderError, TemplateNotFound, TemplateSyntaxError


def make_env(**templates: str) -> Environment:
    return Environment(DictLoader(templates))


class TestSections:
    """Section capture and yield."""

    def test_child_section_fills_layout(self) -> None:
        env = make_env(
            layout="<html><main th:yield=\"content\"></main><footer>F</footer></html>",
            page='<div th:extend="layout"><p th:section="content">Hi {name}</p></div>',
        )
        assert env.render("page", {"name": "Ada"}) == "<html><main>Hi Ada</main><footer>F</footer></html>"

    def test_child_markup_outside_sections_is_dropped(self) -> None:
        env = make_env(
            layout='<main th:yield="content"></main>',
            page='<h1>lost</h1><div th:extend="layout"><b th:section="content">kept</b></div><p>lost</p>',
        )
        assert env.render("page") == "<main>kept</main>"

    def test_yield_default(self) -> None:
        env = make_env(
            layout="<title th:yield=\"title, 'Default'\"></title><main th:yield=\"content\">x</main>",
            page='<div th:extend="layout"></div>',
        )
        assert env.render("page") == "<title>Default</title><main></main>"

    def test_yield_default_is_escaped_calculation(self) -> None:
        env = make_env(
            layout="<title th:yield=\"title, site + ' <home>'\"></title>",
            page='<div th:extend="layout"></div>',
        )
        assert env.render("page", {"site": "Acme"}) == "<title>Acme &lt;home&gt;</title>"

    def test_layout_section_is_fallback(self) -> None:
        layout = '<div th:section="side">Side</div><title th:yield="title, \'Default\'"></title><aside th:yield="side"></aside>'
        env = make_env(layout=layout, page='<div th:extend="layout"></div>')
        assert env.render("page") == "<title>Default</title><aside>Side</aside>"

        env = make_env(
            layout=layout,
            page='<div th:extend="layout"><i th:section="side">Child side</i></div>',
        )
        assert env.render("page") == "<title>Default</title><aside>Child side</aside>"

    def test_nested_same_name_section_innermost_wins(self) -> None:
        env = make_env(
            layout='<main th:yield="s"></main>',
            page=(
                '<div th:extend="layout">'
                '<b th:section="s">outer<span th:section="s"><i>inner</i></span></b>'
                "</div>"
            ),
        )
        assert env.render("page") == "<main><i>inner</i></main>"

    def test_nested_sections_capture_separately(self) -> None:
        env = make_env(
            layout='<main th:yield="a"></main><aside th:yield="b"></aside>',
            page='<div th:extend="layout"><b th:section="a">A<i th:section="b">B</i>!</b></div>',
        )
        assert env.render("page") == "<main>A!</main><aside>B</aside>"

    def test_two_level_layout(self) -> None:
        env = make_env(
            base='<main th:yield="body"></main>',
            mid='<div th:extend="base"><div th:section="body"><h1>Mid</h1><div th:yield="content"></div></div></div>',
            page='<div th:extend="mid"><p th:section="content">Hi</p></div>',
        )
        assert env.render("page") == "<main><h1>Mid</h1><div>Hi</div></main>"

    def test_conditional_section(self) -> None:
        env = make_env(
            layout="<aside th:yield=\"side, 'none'\"></aside>",
            page='<div th:extend="layout"><div th:if="show"><p th:section="side">S</p></div></div>',
        )
        assert env.render("page", {"show": True}) == "<aside>S</aside>"
        assert env.render("page", {"show": False}) == "<aside>none</aside>"

    def test_sections_without_layout_render_nothing(self) -> None:
        assert render_string('<p th:section="content">x</p><b>y</b>') == "<b>y</b>"

    def test_missing_section_name(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="Missing section name"):
            render_string('<p th:section="">x</p>')


class TestExtend:
    """Layout selection."""

    def test_last_extend_wins(self) -> None:
        env = make_env(
            a="<p>A</p>",
            b="<p>B</p>",
            page='<div th:extend="a"></div><div th:extend="b"></div>',
        )
        assert env.render("page") == "<p>B</p>"

    def test_conditional_extend(self) -> None:
        env = make_env(
            layout="<main>L</main>",
            page='<div th:if="framed"><div th:extend="layout"></div></div><p>bare</p>',
        )
        assert env.render("page", {"framed": True}) == "<main>L</main>"
        assert env.render("page", {"framed": False}) == "<p>bare</p>"

    def test_layout_path_with_extension(self) -> None:
        env = Environment(
            DictLoader(
                {
                    "layouts/app.th.html": '<main th:yield="content"></main>',
                    "home": '<div th:extend="\'layouts/app\'"><b th:section="content">x</b></div>',
                }
            )
        )
        assert env.render("home") == "<main>x</main>"

    def test_missing_layout(self) -> None:
        env = make_env(page='<div th:extend="nowhere"></div>')
        with pytest.raises(TemplateNotFound, match="nowhere"):
            env.render("page")

    def test_recursive_layout_hits_depth_limit(self) -> None:
        env = make_env(loop='<div th:extend="loop"></div>')
        with pytest.raises(RenderError, match="maximum render depth"):
            env.render("loop")

    def test_depth_limit_is_configurable(self) -> None:
        templates = {"one": '<div th:extend="two"></div>', "two": '<div th:extend="three"></div>', "three": "3"}
        assert Environment(DictLoader(templates)).render("one") == "3"
        with pytest.raises(RenderError):
            Environment(DictLoader(templates), max_render_depth=1).render("one")
