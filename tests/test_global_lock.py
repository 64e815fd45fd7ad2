from __future__ import annotations

import pytest

import globallock
from globallock.core.errors import LockConfigurationError, LockTimeoutError
from globallock.core.facade import GlobalLock, configure, create_backend, get_global_lock
from globallock.core.locks_local import LocalLockBackend
from globallock.core.locks_redis import RedisLockBackend
from globallock.core.models import BackendKind
from globallock.core.settings import LockSettings


_ENV_VARS = (
    "GLOBALLOCK_BACKEND",
    "GLOBALLOCK_REDIS_URL",
    "REDIS_URL",
    "GLOBALLOCK_SINGLE_PROCESS",
    "GLOBALLOCK_KEY_PREFIX",
    "GLOBALLOCK_DEFAULT_EXPIRES",
    "GLOBALLOCK_POLL_INTERVAL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.parametrize(
    "settings, expected",
    [
        (LockSettings(), BackendKind.LOCAL),
        (LockSettings(redis_url="redis://cache:6379/0"), BackendKind.REDIS),
        (LockSettings(redis_url="redis://cache:6379/0", single_process=True), BackendKind.LOCAL),
        (LockSettings(backend="local", redis_url="redis://cache:6379/0"), BackendKind.LOCAL),
        (LockSettings(backend="redis", redis_url="redis://cache:6379/0", single_process=True), BackendKind.REDIS),
    ],
)
def test_backend_selection(settings, expected):
    assert settings.resolve_backend_kind() is expected


def test_redis_backend_requires_url():
    with pytest.raises(LockConfigurationError):
        LockSettings(backend="redis").resolve_backend_kind()


def test_settings_from_env(clean_env):
    clean_env.setenv("GLOBALLOCK_BACKEND", "Redis")
    clean_env.setenv("REDIS_URL", "redis://shared:6379/1")
    clean_env.setenv("GLOBALLOCK_DEFAULT_EXPIRES", "30")
    clean_env.setenv("GLOBALLOCK_POLL_INTERVAL", "0.05")
    clean_env.setenv("GLOBALLOCK_KEY_PREFIX", "svc:")

    settings = LockSettings.from_env()

    assert settings.backend is BackendKind.REDIS
    assert settings.redis_url == "redis://shared:6379/1"
    assert settings.default_expires_seconds == 30
    assert settings.poll_interval_seconds == 0.05
    assert settings.key_prefix == "svc:"
    assert settings.single_process is False


def test_settings_from_env_prefers_specific_redis_url(clean_env):
    clean_env.setenv("REDIS_URL", "redis://generic:6379/0")
    clean_env.setenv("GLOBALLOCK_REDIS_URL", "redis://locks:6379/0")
    clean_env.setenv("GLOBALLOCK_SINGLE_PROCESS", "yes")

    settings = LockSettings.from_env()

    assert settings.redis_url == "redis://locks:6379/0"
    assert settings.resolve_backend_kind() is BackendKind.LOCAL


@pytest.mark.parametrize(
    "name, value",
    [
        ("GLOBALLOCK_DEFAULT_EXPIRES", "soon"),
        ("GLOBALLOCK_POLL_INTERVAL", "0"),
        ("GLOBALLOCK_BACKEND", "zookeeper"),
    ],
)
def test_invalid_env_settings(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(LockConfigurationError):
        LockSettings.from_env()


def test_settings_from_file(tmp_path):
    path = tmp_path / "locks.yml"
    path.write_text(
        "backend: auto\n"
        "redis_url: redis://cache:6379/2\n"
        "default_expires_seconds: 60\n"
    )

    settings = LockSettings.from_file(path)

    assert settings.redis_url == "redis://cache:6379/2"
    assert settings.default_expires_seconds == 60
    assert settings.resolve_backend_kind() is BackendKind.REDIS


@pytest.mark.parametrize("content", ["- just\n- a list\n", "poll_interval_seconds: -1\n", "backend: [\n"])
def test_invalid_settings_file(tmp_path, content):
    path = tmp_path / "locks.yml"
    path.write_text(content)
    with pytest.raises(LockConfigurationError):
        LockSettings.from_file(path)


def test_create_backend_passes_settings_through():
    local = create_backend(LockSettings(default_expires_seconds=12, poll_interval_seconds=0.5))
    assert isinstance(local, LocalLockBackend)
    assert local.default_expires == 12
    assert local.poll_interval == 0.5

    remote = create_backend(LockSettings(redis_url="redis://cache:6379/0", key_prefix="x:"))
    assert isinstance(remote, RedisLockBackend)
    assert remote.url == "redis://cache:6379/0"
    assert remote.key_prefix == "x:"


def test_backend_is_resolved_once():
    lock = GlobalLock(LockSettings())
    assert lock.backend is lock.backend


def test_global_lock_routes_to_backend(redis_backend, key):
    lock = GlobalLock(backend=redis_backend)

    with lock.hold(key, expires=5) as lease:
        assert lease.key == key
        assert lock.locked(key)
        with pytest.raises(LockTimeoutError):
            lock.acquire(key, lambda: None, wait_max=0.05)

    assert lock.acquire(key, lambda: "done") == "done"


@pytest.mark.asyncio
async def test_global_lock_async_surface(redis_backend, key):
    lock = GlobalLock(backend=redis_backend)

    async def guarded() -> str:
        assert lock.locked(key)
        return "async"

    assert await lock.aacquire(key, guarded) == "async"
    async with lock.ahold(key) as lease:
        assert lease.expires_at is not None
    assert not lock.locked(key)


def test_module_level_acquire_uses_configured_lock(reset_default, local_backend, key):
    configured = configure(LockSettings(), backend=local_backend)

    assert get_global_lock() is configured
    assert globallock.acquire(key, lambda: "ok", wait_max=1) == "ok"
    with globallock.hold(key):
        assert local_backend.locked(key)


def test_default_lock_is_built_from_env(reset_default, clean_env):
    clean_env.setenv("GLOBALLOCK_BACKEND", "local")

    lock = get_global_lock()

    assert isinstance(lock.backend, LocalLockBackend)
    assert get_global_lock() is lock
