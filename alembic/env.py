"""Alembic environment for the ops database.

Only the ops tables (incidents, components, audit log) are migrated here. The
barkbase product tables belong to the product's own migrations and are never
emitted, even though their models live in the same package.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from backend.config import settings
from backend.database import Base
from backend.models import audit, component, incident  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
OPS_TABLES = frozenset(target_metadata.tables)


def _database_url() -> str:
    # OPS_DATABASE_URL wins so migrations target the same database as the API.
    url = (settings.ops_database_url or config.get_main_option("sqlalchemy.url", "")).strip()
    if not url:
        raise RuntimeError("OPS_DATABASE_URL is not configured for Alembic migrations.")
    return url


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    if type_ == "table":
        return name in OPS_TABLES
    return True


def _configure(**kwargs) -> None:
    url = kwargs.get("url") or _database_url()
    context.configure(
        target_metadata=target_metadata,
        include_object=_include_object,
        compare_type=True,
        # SQLite cannot ALTER most constraints in place.
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
