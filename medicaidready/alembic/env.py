"""Alembic environment for the provider readiness schema."""

from __future__ import annotations

import sys
from pathlib import Path

import sqlalchemy as sa
from alembic import context
from sqlalchemy import pool

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from medicaidready.db.config import DatabaseSettings, get_database_settings  # noqa: E402
from medicaidready.db.models import Base  # noqa: E402

alembic_cfg = context.config
target_metadata = Base.metadata


def _resolve_settings() -> DatabaseSettings:
    """Prefer an explicit ``sqlalchemy.url`` over the environment."""

    explicit = (alembic_cfg.get_main_option("sqlalchemy.url") or "").strip()
    resolved = DatabaseSettings(url=explicit) if explicit else get_database_settings()
    alembic_cfg.set_main_option("sqlalchemy.url", resolved.url)
    return resolved


def _configure_kwargs(settings: DatabaseSettings) -> dict:
    # SQLite cannot ALTER most constraints in place.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": settings.is_sqlite,
    }


def migrate_offline(settings: DatabaseSettings) -> None:
    context.configure(url=settings.url, literal_binds=True, **_configure_kwargs(settings))
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(settings: DatabaseSettings) -> None:
    options = settings.engine_options()
    engine = sa.create_engine(
        settings.url,
        poolclass=pool.NullPool,
        connect_args=options.pop("connect_args", {}),
        echo=options.get("echo", False),
    )
    try:
        with engine.begin() as connection:
            if settings.is_postgres:
                connection.execute(sa.text("SET TIME ZONE 'UTC'"))
            context.configure(
                connection=connection,
                transaction_per_migration=True,
                **_configure_kwargs(settings),
            )
            context.run_migrations()
    finally:
        engine.dispose()


_settings = _resolve_settings()
if context.is_offline_mode():
    migrate_offline(_settings)
else:
    migrate_online(_settings)
