"""Redis-backed lease lock shared by every process using the same store.

A lease is stored as ``"<stale_at_ms>:<owner>"`` under ``key_prefix + key``.
Acquisition is one atomic script: write the lease if the key is absent or
its ``stale_at`` has passed. The key also carries a hard TTL of twice
``expires`` so Redis drops leases of crashed holders on its own; the gap
between the two absorbs clock skew between clients and long pauses.
Release deletes the key only if it still holds our owner value.
"""

from __future__ import annotations

import datetime as dt
import os
import time
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, Optional, Union

from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from .errors import LockConfigurationError
from .locks import LockBackend
from .models import Duration, Lease, new_owner_id


_ACQUIRE_LUA = """
local current = redis.call('get', KEYS[1])
if current then
    local sep = string.find(current, ':', 1, true)
    local stale_at = sep and tonumber(string.sub(current, 1, sep - 1))
    if stale_at and stale_at > tonumber(ARGV[1]) then
        return 0
    end
end
redis.call('set', KEYS[1], ARGV[2], 'PX', ARGV[3])
return 1
"""

_RELEASE_LUA = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode(stale_at_ms: int, owner: str) -> str:
    return f"{stale_at_ms}:{owner}"


def _stale_at_ms(raw: Union[bytes, str, None]) -> Optional[int]:
    if raw is None:
        return None
    value = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    head, sep, _ = value.partition(":")
    if not sep:
        return None
    try:
        return int(head)
    except ValueError:
        return None


def _lease_value(lease: Lease) -> str:
    if lease.expires_at is None:
        raise LockConfigurationError(f"lease on {lease.key!r} has no expiry; it was not issued by Redis")
    return _encode(round(lease.expires_at.timestamp() * 1000), lease.owner)


class RedisLockBackend(LockBackend):
    """Lease lock coordinated through one Redis instance.

    Connection errors from Redis are not retried here; they surface to the
    caller as ``redis.exceptions`` errors.
    """

    name = "redis"

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        key_prefix: str = "lock:",
        client: Optional[Redis] = None,
        async_client: Optional[AsyncRedis] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.url = url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL)
        self.key_prefix = key_prefix
        self._redis = client
        self._async_redis = async_client
        self._acquire_script = None
        self._release_script = None
        self._async_acquire_script = None
        self._async_release_script = None

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(self.url)
        return self._redis

    @property
    def async_redis(self) -> AsyncRedis:
        if self._async_redis is None:
            self._async_redis = AsyncRedis.from_url(self.url)
        return self._async_redis

    def store_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _new_lease(self, key: str, expires: float) -> tuple[Lease, list[str]]:
        now_ms = _now_ms()
        stale_at_ms = now_ms + int(expires * 1000)
        lease = Lease(
            key=key,
            owner=new_owner_id(),
            acquired_at=dt.datetime.fromtimestamp(now_ms / 1000, dt.timezone.utc),
            expires_at=dt.datetime.fromtimestamp(stale_at_ms / 1000, dt.timezone.utc),
        )
        hard_ttl_ms = max(1, int(expires * 2 * 1000))
        args = [str(now_ms), _encode(stale_at_ms, lease.owner), str(hard_ttl_ms)]
        return lease, args

    def try_claim(self, key: str, expires: Optional[Duration] = None) -> Optional[Lease]:
        """One atomic acquisition attempt; returns the lease or None if held."""
        options = self.options(key, expires=expires)
        if self._acquire_script is None:
            self._acquire_script = self.redis.register_script(_ACQUIRE_LUA)
        lease, args = self._new_lease(key, options.expires)
        if self._acquire_script(keys=[self.store_key(key)], args=args):
            return lease
        return None

    def release(self, lease: Lease) -> bool:
        """Delete the lease if we still own it. False means it was lost."""
        if self._release_script is None:
            self._release_script = self.redis.register_script(_RELEASE_LUA)
        released = bool(self._release_script(keys=[self.store_key(lease.key)], args=[_lease_value(lease)]))
        if not released:
            self._log_lost(lease)
        return released

    async def atry_claim(self, key: str, expires: Optional[Duration] = None) -> Optional[Lease]:
        options = self.options(key, expires=expires)
        if self._async_acquire_script is None:
            self._async_acquire_script = self.async_redis.register_script(_ACQUIRE_LUA)
        lease, args = self._new_lease(key, options.expires)
        if await self._async_acquire_script(keys=[self.store_key(key)], args=args):
            return lease
        return None

    async def arelease(self, lease: Lease) -> bool:
        if self._async_release_script is None:
            self._async_release_script = self.async_redis.register_script(_RELEASE_LUA)
        released = bool(
            await self._async_release_script(keys=[self.store_key(lease.key)], args=[_lease_value(lease)])
        )
        if not released:
            self._log_lost(lease)
        return released

    def _log_lost(self, lease: Lease) -> None:
        if lease.is_stale():
            self.logger.warning("Lease on %r expired before release; it may be held by another owner", lease.key)
        else:
            self.logger.warning("Lease on %r was removed by someone else before release", lease.key)

    def locked(self, key: str) -> bool:
        stale_at = _stale_at_ms(self.redis.get(self.store_key(key)))
        return stale_at is not None and stale_at > _now_ms()

    @contextmanager
    def hold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> Iterator[Lease]:
        options = self.options(key, expires=expires, wait_max=wait_max)
        lease = self._wait_for(options, lambda: self.try_claim(key, options.expires))
        try:
            self.logger.debug("Acquired lease on %r until %s", key, lease.expires_at)
            yield lease
        finally:
            self.release(lease)

    @asynccontextmanager
    async def ahold(
        self,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
    ) -> AsyncIterator[Lease]:
        options = self.options(key, expires=expires, wait_max=wait_max)

        async def attempt() -> Optional[Lease]:
            return await self.atry_claim(key, options.expires)

        lease = await self._await_for(options, attempt)
        try:
            self.logger.debug("Acquired lease on %r until %s", key, lease.expires_at)
            yield lease
        finally:
            await self.arelease(lease)

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()

    async def aclose(self) -> None:
        if self._async_redis is not None:
            await self._async_redis.aclose()
