"""Configuration helpers and .env loading for timedsend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Mapping, Optional

from dotenv import load_dotenv

from .scheduler import DEFAULT_POLL_INTERVAL

DEFAULT_ENV_FILES: tuple[Path, ...] = (
    Path(".env"),
    Path("config/.env"),
)

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_SIZE = 65536

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off"}


@lru_cache(maxsize=1)
def load_environment(*, extra_files: Iterable[Path] | None = None) -> dict[str, str]:
    """Load environment variables from .env files once per process."""

    candidates = list(DEFAULT_ENV_FILES)
    if extra_files:
        candidates = [*candidates, *extra_files]

    for path in candidates:
        try:
            if path.exists():
                load_dotenv(path, override=False)
        except OSError:
            continue

    load_dotenv(override=False)
    return dict(os.environ)


def _float_setting(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _bool_setting(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in TRUTHY:
        return True
    if raw in FALSY:
        return False
    raise ValueError(f"{name} must be true or false, got {raw!r}")


@dataclass(frozen=True)
class TransmitterSettings:
    """Knobs of the transport and the timed release of request bytes."""

    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    response_timeout: Optional[float] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    verify_tls: bool = False
    read_size: int = DEFAULT_READ_SIZE

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.response_timeout is not None and self.response_timeout <= 0:
            raise ValueError("response_timeout must be positive when set")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.read_size <= 0:
            raise ValueError("read_size must be positive")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "TransmitterSettings":
        if env is None:
            load_environment()
            env = os.environ
        read_size = _float_setting(env, "TIMEDSEND_READ_SIZE", DEFAULT_READ_SIZE)
        return cls(
            connect_timeout=_float_setting(env, "TIMEDSEND_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            response_timeout=_float_setting(env, "TIMEDSEND_RESPONSE_TIMEOUT", None),
            poll_interval=_float_setting(env, "TIMEDSEND_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            verify_tls=_bool_setting(env, "TIMEDSEND_VERIFY_TLS", False),
            read_size=int(read_size or DEFAULT_READ_SIZE),
        )


__all__ = ["DEFAULT_ENV_FILES", "TransmitterSettings", "load_environment"]
