"""Utility modules for Ramita.

Provides:
- text: escape_html, split_top_level for directive argument handling
- hashing: hash_str for compile-cache keys
- logger: get_logger, warn_at for located template warnings
"""

from ramita.utils.hashing import hash_str
from ramita.utils.logger import get_logger, warn_at
from ramita.utils.text import escape_html, is_identifier, split_top_level, unquote

__all__ = [
    "escape_html",
    "get_logger",
    "hash_str",
    "is_identifier",
    "split_top_level",
    "unquote",
    "warn_at",
]
