"""Async SQLAlchemy engines and session management for the ops and barkbase databases."""

from __future__ import annotations

import logging
import time

from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from backend.config import settings

logger = logging.getLogger("barkbase_ops.database")


def _engine_kwargs(url: str, pool_size: int) -> dict:
    kwargs: dict = {"echo": False}
    if "postgresql" in url:
        kwargs.update({
            "pool_size": pool_size,
            "max_overflow": pool_size,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        })
    return kwargs


def install_slow_query_logging(engine: AsyncEngine, label: str, threshold_ms: int) -> None:
    """Warn about statements slower than ``threshold_ms`` on ``engine``."""

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start"] = time.perf_counter()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany):
        started = conn.info.pop("query_start", None)
        if started is None:
            return
        duration_ms = (time.perf_counter() - started) * 1000
        if duration_ms > threshold_ms:
            logger.warning("Slow %s query (%.0fms): %s", label, duration_ms, statement[:100])


# Ops DB: incidents, components, audit log (read-write)
ops_engine = create_async_engine(settings.ops_database_url, **_engine_kwargs(settings.ops_database_url, 10))
ops_session = async_sessionmaker(ops_engine, class_=AsyncSession, expire_on_commit=False)

# BarkBase DB: support lookups and tenant account actions; lighter traffic, smaller pool
barkbase_engine = create_async_engine(
    settings.barkbase_database_url, **_engine_kwargs(settings.barkbase_database_url, 5)
)
barkbase_session = async_sessionmaker(barkbase_engine, class_=AsyncSession, expire_on_commit=False)

install_slow_query_logging(ops_engine, "ops", settings.slow_query_ms)
install_slow_query_logging(barkbase_engine, "barkbase", settings.slow_query_ms)


class Base(DeclarativeBase):
    """Declarative base for tables owned by the ops database."""


class BarkbaseBase(DeclarativeBase):
    """Declarative base for the product tables in the barkbase database."""


async def init_db() -> None:
    """Create ops tables and seed the component catalogue when AUTO_CREATE_SCHEMA is enabled."""
    if not settings.auto_create_schema:
        logger.info("Skipping Base.metadata.create_all (AUTO_CREATE_SCHEMA=false)")
        return

    # Ensure model modules are imported so SQLAlchemy metadata is populated.
    from backend.models import audit, component, incident  # noqa: F401

    async with ops_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with ops_session() as session:
        await seed_components(session)


async def seed_components(session: AsyncSession) -> int:
    """Insert the default component catalogue into an empty table. Returns rows added."""
    from backend.models.component import DEFAULT_COMPONENTS, SystemComponent

    existing = await session.scalar(select(func.count()).select_from(SystemComponent))
    if existing:
        return 0

    session.add_all(
        SystemComponent(name=name, display_name=display_name, display_order=order)
        for order, (name, display_name) in enumerate(DEFAULT_COMPONENTS, start=1)
    )
    await session.commit()
    logger.info("Seeded %d system components", len(DEFAULT_COMPONENTS))
    return len(DEFAULT_COMPONENTS)


async def get_ops_session() -> AsyncSession:  # type: ignore[misc]
    """Dependency yielding an async session on the ops database."""
    async with ops_session() as session:
        yield session


def get_barkbase_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the barkbase session factory (one session per concurrent query)."""
    return barkbase_session
