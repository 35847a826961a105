"""Database settings for the readiness store.

The URL comes from ``MEDICAIDREADY_DATABASE_URL`` (or the hosting platform's
``DATABASE_URL``).  Without one the service keeps a SQLite file in the user's
data directory, relocatable with ``MEDICAIDREADY_DB_PATH``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional

from platformdirs import user_data_dir

from medicaidready import APP_NAME

SQLITE_FILENAME = "readiness.db"

# engine keyword -> environment variable
_POOL_ENV = {
    "pool_size": "DB_POOL_SIZE",
    "max_overflow": "DB_MAX_OVERFLOW",
    "pool_timeout": "DB_POOL_TIMEOUT",
}

_PSYCOPG_PREFIXES = ("postgres://", "postgresql://")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith("postgres")

    def engine_options(self) -> Dict[str, object]:
        """Keyword arguments for :func:`sqlalchemy.create_engine`."""

        if self.is_sqlite:
            return {"echo": self.echo, "connect_args": {"check_same_thread": False}}

        options: Dict[str, object] = {"echo": self.echo, "pool_pre_ping": True}
        for keyword, env_name in _POOL_ENV.items():
            value = _get_int_env(env_name)
            if value is not None:
                options[keyword] = value
        if self.is_postgres:
            options["connect_args"] = _postgres_connect_args()
        return options

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DatabaseSettings":
        source = os.environ if env is None else env
        echo = (source.get("DB_ECHO") or "").strip().lower() == "true"
        url = source.get("MEDICAIDREADY_DATABASE_URL") or source.get("DATABASE_URL")
        if url:
            return cls(url=_psycopg_url(url), echo=echo)
        override = source.get("MEDICAIDREADY_DB_PATH")
        db_path = _sqlite_file(Path(override).expanduser()) if override else _default_sqlite_path()
        return cls(url=f"sqlite:///{db_path}", echo=echo)


def _postgres_connect_args() -> Dict[str, object]:
    # Sessions always run in UTC; the statement timeout is optional.
    server_options = ["-c timezone=UTC"]
    statement_timeout = _get_int_env("STATEMENT_TIMEOUT_MS")
    if statement_timeout is not None:
        server_options.append(f"-c statement_timeout={statement_timeout}")
    connect_args: Dict[str, object] = {"options": " ".join(server_options)}
    connect_timeout = _get_int_env("PGCONNECT_TIMEOUT")
    if connect_timeout is not None:
        connect_args["connect_timeout"] = connect_timeout
    return connect_args


def _psycopg_url(url: str) -> str:
    for prefix in _PSYCOPG_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def _sqlite_file(path: Path) -> Path:
    target = path / SQLITE_FILENAME if path.is_dir() else path
    target.parent.mkdir(parents=True, exist_ok=True)
    return target


def _default_sqlite_path() -> Path:
    return _sqlite_file(Path(user_data_dir(APP_NAME, APP_NAME)) / SQLITE_FILENAME)


def _get_int_env(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    """Return the active database settings derived from the environment."""

    return DatabaseSettings.from_env()


__all__ = ["DatabaseSettings", "get_database_settings"]
