"""Lock service settings loader."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import LockConfigurationError
from .models import DEFAULT_EXPIRES_SECONDS, BackendKind
from ..utils.env import get_bool_env, get_float_env, get_str_env


class LockSettings(BaseModel):
    backend: BackendKind = BackendKind.AUTO
    redis_url: Optional[str] = None
    # Set for deployments known to run as one process (tests, single-instance apps).
    single_process: bool = False
    key_prefix: str = "lock:"
    default_expires_seconds: float = Field(default=DEFAULT_EXPIRES_SECONDS, gt=0)
    poll_interval_seconds: float = Field(default=0.1, gt=0)

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise LockConfigurationError(f"Invalid lock settings file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise LockConfigurationError(f"Lock settings file {path} must contain a mapping")
        return cls._validate(data)

    @classmethod
    def from_env(cls) -> "LockSettings":
        try:
            data = {
                "backend": get_str_env("GLOBALLOCK_BACKEND", default=BackendKind.AUTO.value).lower(),
                "redis_url": get_str_env("GLOBALLOCK_REDIS_URL", "REDIS_URL"),
                "single_process": get_bool_env("GLOBALLOCK_SINGLE_PROCESS"),
                "key_prefix": get_str_env("GLOBALLOCK_KEY_PREFIX", default="lock:"),
                "default_expires_seconds": get_float_env(
                    "GLOBALLOCK_DEFAULT_EXPIRES", default=DEFAULT_EXPIRES_SECONDS
                ),
                "poll_interval_seconds": get_float_env("GLOBALLOCK_POLL_INTERVAL", default=0.1),
            }
        except ValueError as exc:
            raise LockConfigurationError(str(exc)) from exc
        return cls._validate(data)

    @classmethod
    def _validate(cls, data: dict) -> "LockSettings":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise LockConfigurationError(f"Invalid lock settings: {exc}") from exc

    def resolve_backend_kind(self) -> BackendKind:
        """Pick ``local`` or ``redis`` for these settings."""
        if self.backend is BackendKind.REDIS:
            if not self.redis_url:
                raise LockConfigurationError("backend 'redis' requires redis_url")
            return BackendKind.REDIS
        if self.backend is BackendKind.LOCAL:
            return BackendKind.LOCAL
        if self.redis_url and not self.single_process:
            return BackendKind.REDIS
        return BackendKind.LOCAL
