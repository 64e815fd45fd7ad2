"""Named global lock backed by Redis, with an in-process fallback."""

from .core import (
    GlobalLock,
    LockSettings,
    LockTimeoutError,
    aacquire,
    acquire,
    ahold,
    configure,
    get_global_lock,
    hold,
)

__all__ = [
    "GlobalLock",
    "LockSettings",
    "LockTimeoutError",
    "__version__",
    "aacquire",
    "acquire",
    "ahold",
    "configure",
    "get_global_lock",
    "hold",
]

__version__ = "0.1.0"
