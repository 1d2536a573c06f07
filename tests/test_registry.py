"""Tests for the processor registry and the declared processing order."""

from typing import ClassVar

import pytest

from ramita import CompilerConfig, render_string
from ramita.directives.builtins import TextDirective
from ramita.directives.protocol import DirectiveProcessor
from ramita.directives.registry import (
    ATTRIBUTE_STYLE,
    ProcessorRegistryBuilder,
    create_registry_with_defaults,
    get_default_registry,
)

EXPECTED_ORDER = (
    (10, "extend"),
    (20, "fragment"),
    (30, "section"),
    (40, "repeat"),
    (50, "if"),
    (50, "unless"),
    (60, "case"),
    (60, "default"),
    (60, "switch"),
    (70, "with"),
    (100, "replace"),
    (110, "include"),
    (120, "yield"),
    (130, "method"),
    (140, "csrf"),
    (150, "field"),
    (160, "errors"),
    (170, "html"),
    (170, "raw"),
    (170, "text"),
    (180, "attr"),
    (190, ATTRIBUTE_STYLE),
)


class UpperDirective:
    """Uppercased, escaped text content."""

    names: ClassVar[tuple[str, ...]] = ("upper",)
    priority: ClassVar[int] = 175
    structural: ClassVar[bool] = False
    replaces_content: ClassVar[bool] = True
    contract = None

    def process(self, node, expression, context) -> None:
        code = context.compile(expression)
        context.replace_content(node, *context.echo(f"_e(_s({code}).upper())"))


class TestOrderTable:
    """The processing order is declared, not incidental."""

    def test_default_order(self) -> None:
        assert get_default_registry().order_table() == EXPECTED_ORDER

    def test_structural_directives_come_first(self) -> None:
        registry = get_default_registry()
        structural = [p.priority for p in registry.processors if p.structural]
        content = [p.priority for p in registry.processors if not p.structural]
        assert max(structural) < min(content)

    def test_with_binding_visible_to_later_directives(self) -> None:
        source = '<p th:text="label" th:with="label=\'x\'" th:if="on">y</p>'
        assert render_string(source, {"on": True}) == "<p>x</p>"

    def test_attribute_order_does_not_matter(self) -> None:
        first = render_string('<p th:text="a" th:repeat="a xs">x</p>', {"xs": [1, 2]})
        second = render_string('<p th:repeat="a xs" th:text="a">x</p>', {"xs": [1, 2]})
        assert first == second == "<p>1</p><p>2</p>"


class TestRegistry:
    """Lookup and construction."""

    def test_lookup_is_case_insensitive(self) -> None:
        registry = get_default_registry()
        assert registry.get("IF") is registry.get("if")
        assert "Repeat" in registry
        assert registry.get("href") is None
        assert registry.fallback is not None

    def test_vocabulary(self) -> None:
        registry = get_default_registry()
        assert len(registry) == 21
        assert "csrf" in registry.names

    def test_default_registry_is_cached(self) -> None:
        assert get_default_registry() is get_default_registry()

    def test_processors_satisfy_protocol(self) -> None:
        for processor in get_default_registry().processors:
            assert isinstance(processor, DirectiveProcessor)

    def test_duplicate_name_rejected(self) -> None:
        builder = ProcessorRegistryBuilder().register(TextDirective())
        with pytest.raises(ValueError, match="already registered"):
            builder.register(TextDirective())

    def test_missing_attribute_rejected(self) -> None:
        class Incomplete:
            names = ("x",)

            def process(self, node, expression, context) -> None:
                pass

        with pytest.raises(TypeError, match="missing 'priority'"):
            ProcessorRegistryBuilder().register(Incomplete())

    def test_custom_directive(self) -> None:
        builder = create_registry_with_defaults()
        builder.register(UpperDirective())
        config = CompilerConfig(registry=builder.build())
        assert render_string('<p th:upper="name">x</p>', {"name": "ada"}, config=config) == "<p>ADA</p>"
        assert (175, "upper") in config.registry.order_table()

    def test_custom_directive_unknown_without_registration(self) -> None:
        html = render_string('<p th:upper="name">x</p>', {"name": "ada"})
        assert html == '<p upper="ada">x</p>'

    def test_register_all(self) -> None:
        registry = ProcessorRegistryBuilder().register_all([TextDirective(), UpperDirective()]).build()
        assert registry.order_table() == ((170, "html"), (170, "raw"), (170, "text"), (175, "upper"))
