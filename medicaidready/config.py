"""Application configuration resolved once at startup.

Route handlers receive an :class:`AppConfig` through FastAPI dependencies and
never consult the process environment directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

_TRUE_VALUES = {"true"}


def _flag(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name) or "").strip().lower() in _TRUE_VALUES


def _origins(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ("http://localhost:3000", "http://127.0.0.1:3000")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class AppConfig:
    """Feature toggles and service settings for the readiness API."""

    read_only_mode: bool = False
    access_control_enabled: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: Tuple[str, ...] = field(default_factory=lambda: _origins(None))
    service_name: str = "medicaidready-api"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        source = os.environ if env is None else env
        return cls(
            read_only_mode=_flag(source, "READ_ONLY_MODE"),
            access_control_enabled=_flag(source, "ACCESS_CONTROL_ENABLED"),
            environment=(source.get("ENVIRONMENT") or "development").strip().lower(),
            log_level=(source.get("LOG_LEVEL") or "INFO").strip().upper(),
            allowed_origins=_origins(source.get("ALLOWED_ORIGINS")),
        )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Return the process configuration, loading a ``.env`` file when present."""

    load_dotenv()
    return AppConfig.from_env()


__all__ = ["AppConfig", "get_app_config"]
