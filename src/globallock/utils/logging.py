"""Rich console logging for the lock service."""

from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler

from .env import get_str_env


LOG_LEVEL_ENV = "GLOBALLOCK_LOG_LEVEL"


def resolve_level(level: Optional[int] = None) -> int:
    """Explicit level, else ``GLOBALLOCK_LOG_LEVEL``, else INFO."""
    if level is not None:
        return level
    name = get_str_env(LOG_LEVEL_ENV, default="INFO").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"{LOG_LEVEL_ENV} must be a logging level name, got {name!r}")
    return resolved


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Configure and return a logger; handlers are attached only once."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = resolve_level(level)
    logger.setLevel(resolved)
    # Keys are user data; markup would interpret brackets in them.
    handler = RichHandler(
        level=resolved,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger
