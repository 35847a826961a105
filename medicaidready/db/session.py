"""Engine and session management for the readiness database.

The engine is created lazily from :func:`get_database_settings`.  Tests and
scripts can call :func:`configure_engine` with an explicit URL to redirect every
session to another database.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator, Optional

import sqlalchemy as sa
import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from medicaidready.db.config import get_database_settings
from medicaidready.db.models import Base

logger = structlog.get_logger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own which breaks SAVEPOINT; let SQLAlchemy
    # emit transaction boundaries instead.
    @sa.event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @sa.event.listens_for(engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")


def configure_engine(
    db_url: Optional[str] = None,
    *,
    create_schema: bool = True,
) -> Engine:
    """Configure the SQLAlchemy engine used by every session."""

    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()

    if db_url is not None:
        options: Dict[str, Any] = {"future": True}
        if db_url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
            if db_url in {"sqlite://", "sqlite:///:memory:"}:
                options["poolclass"] = StaticPool
        engine = create_engine(db_url, **options)
    else:
        settings = get_database_settings()
        engine = create_engine(settings.url, future=True, **settings.engine_options())
        if settings.is_postgres:
            @sa.event.listens_for(engine, "connect")
            def _configure_postgres(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
                cursor = dbapi_connection.cursor()
                try:
                    cursor.execute("SET TIME ZONE 'UTC'")
                finally:
                    cursor.close()

    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)

    if create_schema:
        Base.metadata.create_all(engine)

    _engine = engine
    _SessionLocal = sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        future=True,
    )
    logger.debug("engine_configured", url=str(engine.url))
    return engine


def _get_session() -> Session:
    if _SessionLocal is None:
        configure_engine()
    assert _SessionLocal is not None
    return _SessionLocal()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = _get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a request-scoped session."""

    with session_scope() as session:
        yield session
