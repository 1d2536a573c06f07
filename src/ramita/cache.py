"""Compile caches for Ramita.

Provides (template_key, config_hash) -> compiled Python source caching so
unchanged templates are not recompiled. The template key is the name plus
the file's mtime when the loader knows it, else the name plus a hash of
the text.

Thread Safety:
    DictCompileCache is not thread-safe. For parallel compiles, wrap it with a
    lock. DiskCompileCache writes through a temp file and ``os.replace``, so
    concurrent readers see either the old entry or the new one, never a
    partial file.

Example:
    >>> from ramita import DictCompileCache, DictLoader, Environment
    >>> env = Environment(DictLoader({"home": "<p>Hi</p>"}), cache=DictCompileCache())
    >>> env.render("home")
    '<p>Hi</p>'
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ramita.utils.hashing import hash_str
from ramita.utils.logger import get_logger

if TYPE_CHECKING:
    from ramita.config import CompilerConfig
    from ramita.loaders import TemplateSource

logger = get_logger(__name__)


class CompileCache(Protocol):
    """Protocol for compile caches.

    Cache key is (template_key, config_hash). Cached value is the compiled
    Python source, an immutable string safe to share across threads.
    """

    def get(self, template_key: str, config_hash: str) -> str | None:
        """Return cached source if present, else None."""
        ...

    def put(self, template_key: str, config_hash: str, code: str) -> None:
        """Store compiled source in cache."""
        ...


class DictCompileCache:
    """In-memory compile cache using a dict.

    Not thread-safe. For parallel compiles, wrap with a lock or use a
    thread-safe implementation.
    """

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}

    def get(self, template_key: str, config_hash: str) -> str | None:
        """Return cached source if present, else None."""
        return self._data.get((template_key, config_hash))

    def put(self, template_key: str, config_hash: str, code: str) -> None:
        """Store compiled source in cache."""
        self._data[(template_key, config_hash)] = code

    def __len__(self) -> int:
        return len(self._data)


class DiskCompileCache:
    """Compile cache storing one ``.py`` file per entry in a directory.

    File names are derived from the key hash, so a changed mtime or config
    produces a new file instead of overwriting the old one.
    """

    __slots__ = ("_directory",)

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, template_key: str, config_hash: str) -> Path:
        return self._directory / f"{hash_str(template_key + '|' + config_hash, truncate=32)}.py"

    def get(self, template_key: str, config_hash: str) -> str | None:
        """Return cached source if present, else None."""
        path = self._path(template_key, config_hash)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def put(self, template_key: str, config_hash: str, code: str) -> None:
        """Store compiled source atomically (temp file, then rename)."""
        path = self._path(template_key, config_hash)
        fd, temp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=".py")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(code)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote compiled template to %s", path)


def hash_template(source: TemplateSource) -> str:
    """Compute the template part of a cache key.

    Args:
        source: Loaded template

    Returns:
        ``name@mtime`` when the loader reports an mtime, else ``name#hash``
        of the text
    """
    if source.mtime is not None:
        return f"{source.filename or source.name}@{source.mtime!r}"
    return f"{source.name}#{hash_str(source.text, truncate=16)}"


def hash_config(config: CompilerConfig) -> str:
    """Compute hash of CompilerConfig for cache key.

    A custom registry contributes its identity, so entries compiled with a
    different registry never collide (they also never survive a restart).

    Args:
        config: CompilerConfig to hash

    Returns:
        Hex digest of config hash
    """
    parts = (
        config.prefix,
        str(config.strict),
        str(config.interpolate_text),
        config.template_suffix,
        str(id(config.registry)) if config.registry is not None else "default",
    )
    return hash_str("|".join(parts))


__all__ = [
    "CompileCache",
    "DictCompileCache",
    "DiskCompileCache",
    "hash_config",
    "hash_template",
]
