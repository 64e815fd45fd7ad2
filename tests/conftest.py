from __future__ import annotations

import uuid

import fakeredis
import fakeredis.aioredis
import pytest

from globallock.core import facade
from globallock.core.locks_local import LocalLockBackend
from globallock.core.locks_redis import RedisLockBackend


@pytest.fixture
def key() -> str:
    # The local registry is process-wide, so every test gets its own key.
    return f"test-{uuid.uuid4().hex}"


@pytest.fixture
def local_backend() -> LocalLockBackend:
    return LocalLockBackend(poll_interval=0.1)


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def make_redis_backend(fake_server):
    """Build backends that share one fake Redis, like separate processes would."""

    def factory(**kwargs) -> RedisLockBackend:
        kwargs.setdefault("poll_interval", 0.02)
        return RedisLockBackend(
            "redis://fake",
            client=fakeredis.FakeRedis(server=fake_server),
            async_client=fakeredis.aioredis.FakeRedis(server=fake_server),
            **kwargs,
        )

    return factory


@pytest.fixture
def redis_backend(make_redis_backend) -> RedisLockBackend:
    return make_redis_backend()


@pytest.fixture
def reset_default(monkeypatch):
    monkeypatch.setattr(facade, "_default", None)
    yield
    monkeypatch.setattr(facade, "_default", None)
