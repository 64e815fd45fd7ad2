"""Exceptions raised by the global lock service."""

from __future__ import annotations

from typing import Optional


class GlobalLockError(Exception):
    """Base class for lock service errors."""


class LockConfigurationError(GlobalLockError, ValueError):
    """Invalid settings, key or acquisition options."""


class LockTimeoutError(GlobalLockError):
    """The lock did not become available within ``wait_max`` seconds."""

    def __init__(self, key: str, wait_max: Optional[float]) -> None:
        self.key = key
        self.wait_max = wait_max
        super().__init__(
            f"waited {wait_max}s for lock {key!r} but it did not become available"
        )
