"""Tests for the compile pipeline and the shape of generated modules."""

import pytest

from ramita import CompilerConfig, TemplateCompiler, compile_template
from ramita.compiler import RUNTIME_IMPORTS, CompiledTemplate, assemble_module
from ramita.errors import TemplateStructureError, TemplateSyntaxError
from ramita.runtime import RenderContext
from ramita.utils.hashing import hash_str


@pytest.fixture
def compiler() -> TemplateCompiler:
    return TemplateCompiler(CompilerConfig())


class TestModuleShape:
    """Generated module layout."""

    def test_header_and_function(self, compiler: TemplateCompiler) -> None:
        code = compiler.compile('<p th:text="name">x</p>', "greeting")
        lines = code.splitlines()
        assert lines[0] == "# Compiled from template 'greeting'"
        assert lines[1] == "from ramita.runtime import ("
        assert "def render(ctx):" in lines
        assert "    _w = ctx.write" in lines

    def test_trace_comment_precedes_dynamic_code(self, compiler: TemplateCompiler) -> None:
        code = compiler.compile('<p th:text="name">x</p>', "greeting")
        body = code.split("def render(ctx):\n", 1)[1].splitlines()
        assert body[-4:] == [
            "    _w('<p>')",
            '    # greeting:1 th:text="name"',
            "    _w(_e(_lookup('name')))",
            "    _w('</p>')",
        ]

    def test_static_markup_is_verbatim(self, compiler: TemplateCompiler) -> None:
        code = compiler.compile('<div class="a">\n  it\'s\n</div>', "page")
        assert repr('<div class="a">\n  it\'s\n</div>') in code

    def test_block_structure(self, compiler: TemplateCompiler) -> None:
        code = compiler.compile('<ul><li th:repeat="item items" th:text="item">x</li></ul>', "page")
        loop = next(line for line in code.splitlines() if line.lstrip().startswith("for "))
        assert loop.startswith("    for _k_")
        assert "in _iter(_lookup('items')):" in loop
        assert "        _w('<li>')" in code.splitlines()

    def test_empty_template(self, compiler: TemplateCompiler) -> None:
        code = compiler.compile("", "empty")
        assert code.rstrip().endswith("_helper = ctx.helper")
        compile(code, "<test>", "exec")

    def test_assemble_module_imports_every_helper(self) -> None:
        code = assemble_module("x", ["_w('a')"])
        for helper, alias in RUNTIME_IMPORTS:
            assert f"    {helper} as {alias}," in code
        assert code.endswith("    _w('a')\n")

    def test_long_expressions_are_shortened_in_trace(self, compiler: TemplateCompiler) -> None:
        expression = " || ".join(f"flag{i}" for i in range(30))
        code = compiler.compile(f'<p th:if="{expression}">x</p>', "page")
        trace = next(line for line in code.splitlines() if line.lstrip().startswith("# page:1"))
        assert trace.endswith('..."')


class TestCompiledTemplate:
    """CompiledTemplate execution."""

    def test_render(self) -> None:
        template = compile_template('<b th:text="who">x</b>')
        ctx = RenderContext({"who": "you"})
        template.render(ctx)
        assert ctx.getvalue() == "<b>you</b>"

    def test_source_hash(self) -> None:
        source = "<p>x</p>"
        assert compile_template(source, "p").source_hash == hash_str(source, truncate=16)

    def test_render_function_is_created_once(self) -> None:
        template = compile_template("<p>x</p>", "p")
        assert template.render_function is template.render_function

    def test_repr(self) -> None:
        template = CompiledTemplate("home", "def render(ctx):\n    pass\n", "abc")
        assert repr(template) == "CompiledTemplate(name='home', source_hash='abc')"


class TestCompileErrors:
    """Compile-time failures carry their location."""

    def test_expression_error_location(self, compiler: TemplateCompiler) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            compiler.compile('<p>\n<b th:if="a ==">x</b></p>', "page")
        error = exc_info.value
        assert error.lineno == 2
        assert error.directive == "th:if"
        assert error.source_file == "page"
        assert error.expression == "a =="
        assert str(error).startswith("page:2: ")

    def test_markup_error(self, compiler: TemplateCompiler) -> None:
        with pytest.raises(TemplateSyntaxError, match="Duplicate attribute"):
            compiler.compile('<p th:if="a" th:if="b">x</p>', "page")

    def test_strict_structure_error(self) -> None:
        with pytest.raises(TemplateStructureError) as exc_info:
            TemplateCompiler(CompilerConfig(strict=True)).compile(
                '<ul>\n<li th:repeat="">x</li></ul>', "page"
            )
        assert exc_info.value.lineno == 2
        assert exc_info.value.directive == "th:repeat"

    @pytest.mark.parametrize(
        "source",
        [
            '<div th:switch="r"><p th:case="a" th:if="x">A</p><p th:default th:repeat="i xs">D</p></div>',
            '<form th:method="verb" th:csrf th:if="show"><input th:field="u.e" th:errors="e"></form>',
            '<i th:fragment="f(a)" th:repeat="x xs" th:with="y=a"><b th:replace="f(y)"></b></i>',
            '<p th:section="s" th:if="a" th:with="n=1 + 1" th:attr="title=n" th:text="n">x</p>',
        ],
    )
    def test_generated_code_is_valid_python(self, compiler: TemplateCompiler, source: str) -> None:
        compile(compiler.compile(source, "page"), "<test>", "exec")
