"""Template loaders: where template text comes from.

A loader maps a logical template name (``pages/home``, ``layouts/app``,
``partials/cards.th.html``) to its text. Names are tried as given, then
with each known extension appended, so ``extend="layouts/app"`` finds
``layouts/app.th.html``.

Thread Safety:
DictLoader never mutates its mapping after construction. FileSystemLoader
only reads the filesystem. Both are safe to share across threads.

"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ramita.errors import TemplateNotFound

TEMPLATE_EXTENSIONS: tuple[str, ...] = (".th.html", ".html")


@dataclass(frozen=True, slots=True)
class TemplateSource:
    """Text of one template plus where it came from.

    Attributes:
        name: Logical template name as requested
        text: Template text
        filename: Resolved file path (None for in-memory templates)
        mtime: Modification time of the file (None for in-memory templates)

    """

    name: str
    text: str
    filename: str | None = None
    mtime: float | None = None


class TemplateLoader(Protocol):
    """Protocol for template loaders."""

    def get_source(self, name: str) -> TemplateSource:
        """Return the template's text.

        Raises:
            TemplateNotFound: If no candidate exists.
        """
        ...


def candidate_names(name: str, extensions: Iterable[str] = TEMPLATE_EXTENSIONS) -> list[str]:
    """Names to try for a requested template, in order.

    Example:
        >>> candidate_names("layouts/app")
        ['layouts/app', 'layouts/app.th.html', 'layouts/app.html']
        >>> candidate_names("cards.th.html")
        ['cards.th.html', 'cards']

    """
    candidates = [name]
    suffix = next((ext for ext in extensions if name.endswith(ext)), None)
    if suffix is None:
        candidates.extend(name + ext for ext in extensions)
    else:
        candidates.append(name[: -len(suffix)])
    return candidates


class DictLoader:
    """Loads templates from a mapping of name to text.

    Usage:
        >>> loader = DictLoader({"home.th.html": "<p>Hi</p>"})
        >>> loader.get_source("home").text
        '<p>Hi</p>'

    """

    __slots__ = ("_templates", "_extensions")

    def __init__(
        self,
        templates: Mapping[str, str],
        extensions: Iterable[str] = TEMPLATE_EXTENSIONS,
    ) -> None:
        self._templates = dict(templates)
        self._extensions = tuple(extensions)

    def get_source(self, name: str) -> TemplateSource:
        candidates = candidate_names(name, self._extensions)
        for candidate in candidates:
            text = self._templates.get(candidate)
            if text is not None:
                return TemplateSource(name, text)
        raise TemplateNotFound(name, tuple(f"<dict>/{candidate}" for candidate in candidates))


class FileSystemLoader:
    """Loads templates from one or more directories.

    Directories are searched in order; names resolving outside a search
    directory are never read.

    Usage:
        >>> loader = FileSystemLoader(["resources/views"])
        >>> source = loader.get_source("layouts/app")  # layouts/app.th.html

    """

    __slots__ = ("_search_path", "_extensions")

    def __init__(
        self,
        search_path: str | Path | Iterable[str | Path],
        extensions: Iterable[str] = TEMPLATE_EXTENSIONS,
    ) -> None:
        if isinstance(search_path, (str, Path)):
            search_path = [search_path]
        self._search_path = [Path(directory).resolve() for directory in search_path]
        self._extensions = tuple(extensions)

    @property
    def search_path(self) -> list[Path]:
        return list(self._search_path)

    def get_source(self, name: str) -> TemplateSource:
        searched: list[str] = []
        for directory in self._search_path:
            for candidate in candidate_names(name, self._extensions):
                path = (directory / candidate).resolve()
                if not path.is_relative_to(directory):
                    continue
                searched.append(str(path))
                if path.is_file():
                    return TemplateSource(
                        name,
                        path.read_text(encoding="utf-8"),
                        filename=str(path),
                        mtime=path.stat().st_mtime,
                    )
        raise TemplateNotFound(name, tuple(searched))


__all__ = [
    "DictLoader",
    "FileSystemLoader",
    "TEMPLATE_EXTENSIONS",
    "TemplateLoader",
    "TemplateSource",
    "candidate_names",
]
