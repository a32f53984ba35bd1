"""Environment-backed configuration for the notes service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

from core.logging import get_logger

load_dotenv()

logger = get_logger(__name__)

N = TypeVar("N", int, float)

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the trimmed value of ``key``; blank values count as unset."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_number(key: str, default: N, cast: Callable[[str], N], minimum: Optional[N]) -> N:
    raw = env_str(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %s.", key, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s=%s is below the minimum of %s. Falling back to %s.", key, raw, minimum, default)
        return default
    return value


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    return _env_number(key, default, int, minimum)


def env_float(key: str, default: float, *, minimum: Optional[float] = None) -> float:
    return _env_number(key, default, float, minimum)


def env_bool(key: str, default: bool) -> bool:
    raw = env_str(key)
    if raw is None:
        return default
    normalized = raw.lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    logger.warning("Invalid boolean env %s='%s'. Using default=%s.", key, raw, default)
    return default


@dataclass(frozen=True)
class Settings:
    revision_max_attempts: int
    eventlog_url: Optional[str]
    eventlog_timeout: float
    eventlog_retries: int
    notes_default_limit: int
    notes_max_limit: int


def load_settings() -> Settings:
    """Read the service settings from the environment (and ``.env``)."""
    max_limit = env_int("NOTES_MAX_LIMIT", 1000, minimum=1)
    default_limit = env_int("NOTES_DEFAULT_LIMIT", 100, minimum=1)
    if default_limit > max_limit:
        logger.warning("NOTES_DEFAULT_LIMIT=%s exceeds NOTES_MAX_LIMIT=%s; capping.", default_limit, max_limit)
        default_limit = max_limit
    eventlog_url = env_str("EVENTLOG_URL")
    return Settings(
        revision_max_attempts=env_int("REVISION_MAX_ATTEMPTS", 5, minimum=1),
        eventlog_url=eventlog_url.rstrip("/") if eventlog_url else None,
        eventlog_timeout=env_float("EVENTLOG_TIMEOUT", 5.0, minimum=0.1),
        eventlog_retries=env_int("EVENTLOG_RETRIES", 3, minimum=1),
        notes_default_limit=default_limit,
        notes_max_limit=max_limit,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = [
    "Settings",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "get_settings",
    "load_settings",
]
