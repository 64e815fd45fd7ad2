"""Environment helper utilities."""

from __future__ import annotations

import os
from typing import Optional


_FALSE_VALUES = {"0", "false", "no", "off"}


def get_bool_env(name: str, *, default: bool = False) -> bool:
    """Return True/False for an environment flag."""
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if not value:
        return default
    return value not in _FALSE_VALUES


def get_float_env(name: str, *, default: float) -> float:
    """Read a number of seconds from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def get_str_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty value among ``names``."""
    for name in names:
        raw = os.getenv(name)
        if raw and raw.strip():
            return raw.strip()
    return default
