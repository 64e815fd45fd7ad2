"""Core lock primitives: backends, settings and the façade."""

from .errors import GlobalLockError, LockConfigurationError, LockTimeoutError
from .facade import GlobalLock, aacquire, acquire, ahold, configure, create_backend, get_global_lock, hold
from .locks import LockBackend
from .locks_local import LocalLockBackend
from .locks_redis import RedisLockBackend
from .models import AcquireOptions, BackendKind, Lease
from .settings import LockSettings

__all__ = [
    "AcquireOptions",
    "BackendKind",
    "GlobalLock",
    "GlobalLockError",
    "Lease",
    "LocalLockBackend",
    "LockBackend",
    "LockConfigurationError",
    "LockSettings",
    "LockTimeoutError",
    "RedisLockBackend",
    "aacquire",
    "acquire",
    "ahold",
    "configure",
    "create_backend",
    "get_global_lock",
    "hold",
]
