"""Data models shared by the lock backends."""

from __future__ import annotations

import datetime as dt
import os
import socket
import uuid
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import LockConfigurationError


Duration = Union[float, int, dt.timedelta]

DEFAULT_EXPIRES_SECONDS = 300.0


class BackendKind(str, Enum):
    """Which lock implementation the façade should use."""

    AUTO = "auto"
    LOCAL = "local"
    REDIS = "redis"


def new_owner_id() -> str:
    """Unique identity for one lease holder."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex}"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Lease(BaseModel):
    """Ownership record for a held key."""

    key: str
    owner: str = Field(default_factory=new_owner_id)
    acquired_at: dt.datetime = Field(default_factory=utcnow)
    # Point after which another caller may claim the key; None for in-process locks.
    expires_at: Optional[dt.datetime] = None

    def is_stale(self, now: Optional[dt.datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at


class AcquireOptions(BaseModel):
    """Validated options for a single acquisition attempt."""

    key: str = Field(min_length=1)
    expires: float = Field(default=DEFAULT_EXPIRES_SECONDS, gt=0)
    wait_max: Optional[float] = Field(default=None, ge=0)

    @field_validator("expires", "wait_max", mode="before")
    @classmethod
    def _duration_to_seconds(cls, value: Any) -> Any:
        if isinstance(value, dt.timedelta):
            return value.total_seconds()
        return value

    @classmethod
    def build(
        cls,
        key: str,
        *,
        expires: Optional[Duration] = None,
        wait_max: Optional[Duration] = None,
        default_expires: float = DEFAULT_EXPIRES_SECONDS,
    ) -> "AcquireOptions":
        try:
            return cls(
                key=key,
                expires=default_expires if expires is None else expires,
                wait_max=wait_max,
            )
        except ValidationError as exc:
            raise LockConfigurationError(f"Invalid lock options for {key!r}: {exc}") from exc
