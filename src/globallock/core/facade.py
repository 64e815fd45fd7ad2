"""Single entry point that routes lock requests to the configured backend.

Use sparingly. Before reaching for a global lock, check whether the
operation can be made idempotent instead.

    from globallock import acquire

    def find_or_create():
        ...

    record = acquire(f"user:{email}", find_or_create, wait_max=5)
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager, contextmanager
from typing import (
    AsyncContextManager,
    AsyncIterator,
    Awaitable,
    Callable,
    ContextManager,
    Iterator,
    Optional,
    TypeVar,
)

from .locks import LockBackend
from .locks_local import LocalLockBackend
from .locks_redis import RedisLockBackend
from .models import BackendKind, Duration, Lease
from .settings import LockSettings
from ..utils.logging import get_logger


T = TypeVar("T")

logger = get_logger("GlobalLock")


def create_backend(settings: LockSettings) -> LockBackend:
    kind = settings.resolve_backend_kind()
    common = dict(
        default_expires=settings.default_expires_seconds,
        poll_interval=settings.poll_interval_seconds,
    )
    if kind is BackendKind.REDIS:
        logger.info("Using Redis lock backend (prefix %r)", settings.key_prefix)
        return RedisLockBackend(settings.redis_url, key_prefix=settings.key_prefix, **common)
    logger.info("Using in-process lock backend")
    return LocalLockBackend(**common)


class GlobalLock:
    """Named lock routed to a backend that is resolved once and cached."""

    def __init__(
        self,
        settings: Optional[LockSettings] = None,
        *,
        backend: Optional[LockBackend] = None,
    ) -> None:
        self.settings = settings or LockSettings()
        self._backend = backend
        self._resolve_lock = threading.Lock()

    @property
    def backend(self) -> LockBackend:
        if self._backend is None:
            with self._resolve_lock:
                if self._backend is None:
                    self._backend = create_backend(self.settings)
        return self._backend

    def acquire(
        self,
        key: str,
        guarded: Callable[[], T],
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> T:
        """Run ``guarded`` while holding ``key``.

        ``expires`` bounds how long a crashed holder can keep the key
        (distributed backend only). With ``wait_max`` unset this blocks for
        as long as needed; otherwise ``LockTimeoutError`` is raised once
        ``wait_max`` seconds pass without getting the lock.
        """
        return self.backend.acquire(key, guarded, expires=expires, wait_max=wait_max)

    async def aacquire(
        self,
        key: str,
        guarded: Callable[[], Awaitable[T]],
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> T:
        return await self.backend.aacquire(key, guarded, expires=expires, wait_max=wait_max)

    @contextmanager
    def hold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> Iterator[Lease]:
        with self.backend.hold(key, expires=expires, wait_max=wait_max) as lease:
            yield lease

    @asynccontextmanager
    async def ahold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> AsyncIterator[Lease]:
        async with self.backend.ahold(key, expires=expires, wait_max=wait_max) as lease:
            yield lease

    def locked(self, key: str) -> bool:
        return self.backend.locked(key)


_default: Optional[GlobalLock] = None
_default_lock = threading.Lock()


def configure(
    settings: Optional[LockSettings] = None,
    *,
    backend: Optional[LockBackend] = None,
) -> GlobalLock:
    """Install the process-wide lock. Call once at startup."""
    global _default
    with _default_lock:
        _default = GlobalLock(settings or LockSettings.from_env(), backend=backend)
        return _default


def get_global_lock() -> GlobalLock:
    global _default
    with _default_lock:
        if _default is None:
            _default = GlobalLock(LockSettings.from_env())
        return _default


def acquire(
    key: str,
    guarded: Callable[[], T],
    *,
    expires: Optional[Duration] = None,
    wait_max: Optional[Duration] = None,
) -> T:
    return get_global_lock().acquire(key, guarded, expires=expires, wait_max=wait_max)


async def aacquire(
    key: str,
    guarded: Callable[[], Awaitable[T]],
    *,
    expires: Optional[Duration] = None,
    wait_max: Optional[Duration] = None,
) -> T:
    return await get_global_lock().aacquire(key, guarded, expires=expires, wait_max=wait_max)


def hold(
    key: str, *, expires: Optional[Duration] = None, wait_max: Optional[Duration] = None
) -> ContextManager[Lease]:
    return get_global_lock().hold(key, expires=expires, wait_max=wait_max)


def ahold(
    key: str, *, expires: Optional[Duration] = None, wait_max: Optional[Duration] = None
) -> AsyncContextManager[Lease]:
    return get_global_lock().ahold(key, expires=expires, wait_max=wait_max)
