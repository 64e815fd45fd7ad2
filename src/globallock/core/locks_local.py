"""In-process lock backend for single-process deployments and tests."""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, ClassVar, Dict, Iterator, Optional

from .locks import LockBackend
from .models import Duration, Lease


class LocalLockBackend(LockBackend):
    """Serializes threads and tasks of this process with one mutex per key.

    The registry is shared by every instance and never shrinks: a process
    that locks unboundedly many distinct keys keeps one mutex per key.
    ``expires`` is validated but has no effect here.
    """

    name = "local"

    _registry: ClassVar[Dict[str, threading.Lock]] = {}
    _registry_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def mutex_for(cls, key: str) -> threading.Lock:
        with cls._registry_lock:
            mutex = cls._registry.get(key)
            if mutex is None:
                mutex = cls._registry[key] = threading.Lock()
            return mutex

    @classmethod
    def registry_size(cls) -> int:
        with cls._registry_lock:
            return len(cls._registry)

    def locked(self, key: str) -> bool:
        with self._registry_lock:
            mutex = self._registry.get(key)
        return mutex is not None and mutex.locked()

    def _try_lock(self, key: str, mutex: threading.Lock) -> Optional[Lease]:
        if mutex.acquire(blocking=False):
            return Lease(key=key)
        return None

    @contextmanager
    def hold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> Iterator[Lease]:
        options = self.options(key, expires=expires, wait_max=wait_max)
        mutex = self.mutex_for(key)
        if options.wait_max is None:
            mutex.acquire()
            lease = Lease(key=key)
        else:
            lease = self._wait_for(options, lambda: self._try_lock(key, mutex))
        try:
            self.logger.debug("Acquired local lock %r", key)
            yield lease
        finally:
            mutex.release()
            self.logger.debug("Released local lock %r", key)

    @asynccontextmanager
    async def ahold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> AsyncIterator[Lease]:
        options = self.options(key, expires=expires, wait_max=wait_max)
        mutex = self.mutex_for(key)

        async def attempt() -> Optional[Lease]:
            return self._try_lock(key, mutex)

        # Always polled: a blocking acquire would stall the event loop.
        lease = await self._await_for(options, attempt)
        try:
            self.logger.debug("Acquired local lock %r", key)
            yield lease
        finally:
            mutex.release()
            self.logger.debug("Released local lock %r", key)
