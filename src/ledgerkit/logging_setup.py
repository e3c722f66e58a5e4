"""Centralized logging configuration for the ``ledgerkit`` package.

- ``configure_logging(...)`` attaches a single ``StreamHandler`` to the
  package root logger. Entry points (the CLI) call it once at startup.
- ``get_logger(name)`` returns a logger and makes sure the package root
  logger has a ``NullHandler`` when nothing has been configured, so library
  use stays silent.

Library modules never attach their own handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledgerkit"
_CONFIGURED = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        numeric = _level_from_name(level)
        if numeric is not None:
            return numeric
    env_val = os.getenv("LEDGERKIT_LOG_LEVEL")
    if env_val:
        numeric = _level_from_name(env_val)
        if numeric is not None:
            return numeric
    return logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    Args:
        level: Level as int or name. Falls back to LEDGERKIT_LOG_LEVEL,
            then WARNING.
        fmt: Optional format string
        stream: Output stream for the handler (defaults to stderr)
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    numeric_level = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(numeric_level)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with library-safe defaults."""
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
