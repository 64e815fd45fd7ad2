"""Abstract interface shared by the lock backends."""

from __future__ import annotations

import abc
import logging
from typing import (
    AsyncContextManager,
    Awaitable,
    Callable,
    ContextManager,
    Optional,
    TypeVar,
)

from tenacity import (
    AsyncRetrying,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_delay,
    stop_never,
    wait_fixed,
)

from .errors import LockTimeoutError
from .models import DEFAULT_EXPIRES_SECONDS, AcquireOptions, Duration, Lease
from ..utils.logging import get_logger


T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 0.1


def _not_acquired(lease: Optional[Lease]) -> bool:
    return lease is None


class LockBackend(abc.ABC):
    """Mutual exclusion keyed by name.

    Subclasses implement ``hold``/``ahold``; ``acquire``/``aacquire`` run a
    guarded callable inside them. No reentrancy: a holder asking for the
    same key again waits like any other contender.
    """

    name: str = "abstract"

    def __init__(
        self,
        *,
        default_expires: float = DEFAULT_EXPIRES_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.default_expires = default_expires
        self.poll_interval = poll_interval
        self.logger = logger or get_logger(self.__class__.__name__)

    def options(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> AcquireOptions:
        return AcquireOptions.build(
            key, expires=expires, wait_max=wait_max, default_expires=self.default_expires
        )

    @abc.abstractmethod
    def hold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> ContextManager[Lease]:  # pragma: no cover - interface
        """Return a context manager that holds ``key`` for its body."""
        raise NotImplementedError

    @abc.abstractmethod
    def ahold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> AsyncContextManager[Lease]:  # pragma: no cover - interface
        """Async counterpart of :meth:`hold`."""
        raise NotImplementedError

    @abc.abstractmethod
    def locked(self, key: str) -> bool:  # pragma: no cover - interface
        """Whether ``key`` is currently held. Diagnostic only."""
        raise NotImplementedError

    def acquire(
        self,
        key: str,
        guarded: Callable[[], T],
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> T:
        """Run ``guarded`` while holding ``key`` and return its result.

        Raises ``LockTimeoutError`` if ``wait_max`` elapses first, in which
        case ``guarded`` is never called.
        """
        with self.hold(key, expires=expires, wait_max=wait_max):
            return guarded()

    async def aacquire(
        self,
        key: str,
        guarded: Callable[[], Awaitable[T]],
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> T:
        async with self.ahold(key, expires=expires, wait_max=wait_max):
            return await guarded()

    def _wait_for(self, options: AcquireOptions, attempt: Callable[[], Optional[Lease]]) -> Lease:
        """Poll ``attempt`` until it yields a lease or ``wait_max`` runs out.

        The deadline is only checked between attempts, so a timeout may be
        raised up to one poll interval after ``wait_max``.
        """
        retrying = Retrying(
            stop=self._stop(options),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(_not_acquired),
        )
        try:
            return retrying(attempt)
        except RetryError as exc:
            self.logger.warning("Timed out after %ss waiting for lock %r", options.wait_max, options.key)
            raise LockTimeoutError(options.key, options.wait_max) from exc

    async def _await_for(
        self, options: AcquireOptions, attempt: Callable[[], Awaitable[Optional[Lease]]]
    ) -> Lease:
        retrying = AsyncRetrying(
            stop=self._stop(options),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(_not_acquired),
        )
        try:
            return await retrying(attempt)
        except RetryError as exc:
            self.logger.warning("Timed out after %ss waiting for lock %r", options.wait_max, options.key)
            raise LockTimeoutError(options.key, options.wait_max) from exc

    @staticmethod
    def _stop(options: AcquireOptions):
        if options.wait_max is None:
            return stop_never
        return stop_after_delay(options.wait_max)
