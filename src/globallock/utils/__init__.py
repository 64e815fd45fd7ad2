"""Shared helpers."""

from .env import get_bool_env, get_float_env, get_str_env
from .logging import get_logger

__all__ = ["get_bool_env", "get_float_env", "get_str_env", "get_logger"]
