"""Logging for ``site_ledger``: one handler on the package logger, set up by the entrypoint.

Every module obtains its logger with ``get_logger("site_ledger.<module>")`` and
logs ``"area:event key=value"`` style messages (``parse:row_skipped line=7``,
``store:saved inserted=3``). Nothing is printed until an entrypoint calls
:func:`configure_logging`; the CLI does so from its root callback, a host web
application would do it at startup.

Environment
-----------
``SITE_LEDGER_LOG_LEVEL``
    Level name or number used when ``configure_logging`` gets no level.
``SITE_LEDGER_LOG_FORMAT``
    ``logging.Formatter`` format string overriding :data:`DEFAULT_FORMAT`.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "site_ledger"
LEVEL_ENV_VAR = "SITE_LEDGER_LOG_LEVEL"
FORMAT_ENV_VAR = "SITE_LEDGER_LOG_FORMAT"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None) -> int:
    """Turn ``level`` (or the environment, or ``INFO``) into a numeric level.

    Unknown names fall through to the next source instead of raising, so a
    typo in ``.env`` never stops a statement import.
    """

    candidates: list[int | str | None] = [level, os.getenv(LEVEL_ENV_VAR)]
    for cand in candidates:
        if isinstance(cand, int):
            return cand
        if not cand or not cand.strip():
            continue
        name = cand.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach the package handler; later calls only adjust the level.

    Parameters
    ----------
    level:
        ``int`` or level name; ``None`` defers to ``SITE_LEDGER_LOG_LEVEL``
        and then ``INFO``.
    fmt:
        Format string; defaults to ``SITE_LEDGER_LOG_FORMAT`` or
        :data:`DEFAULT_FORMAT`.
    stream:
        Destination of the ``StreamHandler`` (``sys.stderr`` when omitted).
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = resolve_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(
            logging.Formatter(fmt or os.getenv(FORMAT_ENV_VAR) or DEFAULT_FORMAT)
        )
        logger.addHandler(_handler)
        # Records stop at the package logger; the root logger never sees them
        logger.propagate = False

    _handler.setLevel(resolved)
    logger.setLevel(resolved)


def reset_logging() -> None:
    """Detach the package handler and restore propagation (used by tests)."""

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler = None
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, silent until logging is configured."""

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_FORMAT",
    "configure_logging",
    "get_logger",
    "reset_logging",
    "resolve_level",
]
