"""Tests for loaders, compile caches and the Environment."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from ramita import (
    CompilerConfig,
    DictCompileCache,
    DictLoader,
    DiskCompileCache,
    Environment,
    FileSystemLoader,
    TemplateSource,
    hash_config,
    hash_template,
)
from ramita.errors import RenderError, TemplateNotFound
from ramita.loaders import candidate_names


class TestLoaders:
    """DictLoader and FileSystemLoader."""

    def test_candidate_names(self) -> None:
        assert candidate_names("layouts/app") == ["layouts/app", "layouts/app.th.html", "layouts/app.html"]
        assert candidate_names("cards.th.html") == ["cards.th.html", "cards"]

    def test_dict_loader_extensions(self) -> None:
        loader = DictLoader({"home.th.html": "<p>Hi</p>"})
        source = loader.get_source("home")
        assert source == TemplateSource("home", "<p>Hi</p>")

    def test_dict_loader_missing(self) -> None:
        with pytest.raises(TemplateNotFound, match="Searched in") as exc_info:
            DictLoader({}).get_source("nope")
        assert exc_info.value.searched[0] == "<dict>/nope"

    def test_filesystem_loader(self, tmp_path: Path) -> None:
        (tmp_path / "layouts").mkdir()
        path = tmp_path / "layouts" / "app.th.html"
        path.write_text("<main></main>", encoding="utf-8")

        source = FileSystemLoader(tmp_path).get_source("layouts/app")
        assert source.text == "<main></main>"
        assert source.filename == str(path.resolve())
        assert source.mtime == path.stat().st_mtime

    def test_search_path_order(self, tmp_path: Path) -> None:
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (second / "a.html").write_text("second", encoding="utf-8")
        (second / "b.html").write_text("b", encoding="utf-8")
        (first / "a.html").write_text("first", encoding="utf-8")

        loader = FileSystemLoader([first, str(second)])
        assert loader.get_source("a").text == "first"
        assert loader.get_source("b").text == "b"
        assert loader.search_path == [first.resolve(), second.resolve()]

    def test_traversal_is_refused(self, tmp_path: Path) -> None:
        views = tmp_path / "views"
        views.mkdir()
        (tmp_path / "secret.th.html").write_text("secret", encoding="utf-8")

        with pytest.raises(TemplateNotFound) as exc_info:
            FileSystemLoader(views).get_source("../secret")
        assert all(str(views.resolve()) in path for path in exc_info.value.searched)


class TestCaches:
    """Compile cache implementations."""

    def test_dict_cache(self) -> None:
        cache = DictCompileCache()
        assert cache.get("k", "c") is None
        cache.put("k", "c", "code")
        assert cache.get("k", "c") == "code"
        assert cache.get("k", "other") is None
        assert len(cache) == 1

    def test_disk_cache(self, tmp_path: Path) -> None:
        cache = DiskCompileCache(tmp_path / "cache" / "nested")
        assert cache.get("k", "c") is None
        cache.put("k", "c", "code")
        cache.put("k", "c", "newer")
        assert cache.get("k", "c") == "newer"
        files = sorted(p.name for p in cache.directory.iterdir())
        assert len(files) == 1
        assert files[0].endswith(".py")
        assert not files[0].startswith(".tmp-")

    def test_disk_cache_shared_between_instances(self, tmp_path: Path) -> None:
        DiskCompileCache(tmp_path).put("k", "c", "code")
        assert DiskCompileCache(tmp_path).get("k", "c") == "code"

    def test_template_key_uses_mtime_when_known(self) -> None:
        with_mtime = TemplateSource("home", "x", filename="/t/home.html", mtime=1.5)
        assert hash_template(with_mtime) == "/t/home.html@1.5"
        key = hash_template(TemplateSource("home", "x"))
        assert key.startswith("home#")
        assert key != hash_template(TemplateSource("home", "y"))

    def test_config_hash(self) -> None:
        assert hash_config(CompilerConfig()) == hash_config(CompilerConfig())
        assert hash_config(CompilerConfig()) != hash_config(CompilerConfig(strict=True))
        assert hash_config(CompilerConfig()) != hash_config(CompilerConfig(prefix="data-th-"))


class TestEnvironment:
    """Loading, caching and rendering."""

    def test_render(self) -> None:
        env = Environment(DictLoader({"home": "<p>Hi {name}</p>"}))
        assert env.render("home", {"name": "Ada"}) == "<p>Hi Ada</p>"

    def test_template_object(self) -> None:
        env = Environment(DictLoader({"home": "<p th:text=\"name\">x</p>"}))
        template = env.get_template("home")
        assert template.name == "home"
        assert "def render(ctx):" in template.code
        assert template.render({"name": "x"}) == "<p>x</p>"
        assert repr(template) == "Template('home')"

    def test_templates_are_reused(self) -> None:
        env = Environment(DictLoader({"home": "<p>Hi</p>"}))
        assert env.get_template("home") is env.get_template("home")

    def test_from_string(self) -> None:
        env = Environment(DictLoader({}), helpers={"shout": lambda s: s.upper()})
        assert env.from_string("<p>{shout(word)}</p>").render({"word": "hey"}) == "<p>HEY</p>"

    def test_compile_cache_is_consulted(self, caplog: pytest.LogCaptureFixture) -> None:
        cache = DictCompileCache()
        loader = DictLoader({"home": "<p>Hi</p>"})
        assert Environment(loader, cache=cache).render("home") == "<p>Hi</p>"
        assert len(cache) == 1

        caplog.set_level(logging.DEBUG, logger="ramita")
        assert Environment(loader, cache=cache).render("home") == "<p>Hi</p>"
        assert "Compile cache hit for home" in caplog.text

    def test_disk_cache_round_trip(self, tmp_path: Path) -> None:
        cache = DiskCompileCache(tmp_path / "cache")
        loader = DictLoader({"home": '<p th:text="n">x</p>'})
        Environment(loader, cache=cache).render("home", {"n": 1})
        assert Environment(loader, cache=cache).render("home", {"n": 2}) == "<p>2</p>"
        assert not list(cache.directory.glob(".tmp-*"))

    def test_changed_file_is_recompiled(self, tmp_path: Path) -> None:
        path = tmp_path / "home.th.html"
        path.write_text("<p>one</p>", encoding="utf-8")
        env = Environment(FileSystemLoader(tmp_path), cache=DiskCompileCache(tmp_path / "cache"))
        assert env.render("home") == "<p>one</p>"

        path.write_text("<p>two</p>", encoding="utf-8")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert env.render("home") == "<p>two</p>"

    def test_config_change_is_recompiled(self) -> None:
        cache = DictCompileCache()
        loader = DictLoader({"home": "<p>{x}</p>"})
        assert Environment(loader, cache=cache).render("home", {"x": 1}) == "<p>1</p>"
        plain = Environment(loader, config=CompilerConfig(interpolate_text=False), cache=cache)
        assert plain.render("home", {"x": 1}) == "<p>{x}</p>"
        assert len(cache) == 2

    def test_shared_data(self) -> None:
        env = Environment(DictLoader({"p": "<p>{site} {year}</p>"}), globals={"site": "Acme"})
        assert env.share("year", 2026) is env
        assert env.render("p") == "<p>Acme 2026</p>"
        assert env.render("p", {"site": "Local"}) == "<p>Local 2026</p>"
        env.share({"site": "Other", "year": 1})
        assert env.render("p") == "<p>Other 1</p>"

    def test_shared_data_reaches_layouts(self) -> None:
        env = Environment(
            DictLoader(
                {
                    "layout": '<title>{site}</title><main th:yield="content"></main>',
                    "page": '<div th:extend="layout"><p th:section="content">{site}</p></div>',
                }
            )
        ).share("site", "Acme")
        assert env.render("page") == "<title>Acme</title><main>Acme</main>"

    def test_missing_template(self) -> None:
        with pytest.raises(TemplateNotFound):
            Environment(DictLoader({})).render("nope")

    def test_helper_errors_are_wrapped(self) -> None:
        def boom() -> str:
            raise ValueError("bad")

        env = Environment(DictLoader({"p": '<p th:text="boom()">x</p>'}), helpers={"boom": boom})
        with pytest.raises(RenderError, match="ValueError: bad") as exc_info:
            env.render("p")
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.template == "p"

    def test_unknown_helper_is_none(self) -> None:
        env = Environment(DictLoader({"p": "<p>[{nothing(1)}]</p>"}))
        assert env.render("p") == "<p>[]</p>"

    def test_concurrent_renders(self) -> None:
        env = Environment(
            DictLoader(
                {
                    "layout": '<main th:yield="content"></main>',
                    "page": '<div th:extend="layout"><ul th:section="content"><li th:repeat="x xs">{x}</li></ul></div>',
                }
            )
        )

        def render(n: int) -> str:
            return env.render("page", {"xs": list(range(n))})

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(render, range(20)))

        for n, html in enumerate(results):
            assert html == "<main>" + "".join(f"<li>{i}</li>" for i in range(n)) + "</main>"
