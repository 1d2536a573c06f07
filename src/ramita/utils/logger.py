"""Logging helpers for Ramita.

Loggers live under the "ramita" namespace so applications can tune the
compiler and runtime separately from their own logging. Template warnings
carry the template name and line of the offending markup.

Example:
    >>> from ramita.utils.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Compiling template")
"""

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given name.

    Returns a standard library logger with the "ramita." prefix.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger instance

    Example:
        >>> logger = get_logger("mymodule")
        >>> logger.name
        'ramita.mymodule'
    """
    if not (name == "ramita" or name.startswith("ramita.")):
        name = f"ramita.{name}"
    return logging.getLogger(name)


def warn_at(
    logger: logging.Logger,
    template: str | None,
    lineno: int | None,
    message: str,
    *args: object,
) -> None:
    """Log a warning prefixed with ``template:line:``.

    Used for tolerated template problems, so permissive-mode warnings read
    like the strict-mode errors they stand in for.
    """
    logger.warning("%s:%s: " + message, template or "<string>", lineno, *args)
