"""Shared test fixtures for BarkBase Ops backend tests."""

import time

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.api.audit_logs import router as audit_logs_router
from backend.api.auth import ROLE_CLAIM, router as auth_router
from backend.api.incidents import router as incidents_router
from backend.api.status import router as status_router
from backend.api.support import router as support_router
from backend.audit import AuditLog, get_audit_log
from backend.config import settings
from backend.database import Base, BarkbaseBase, get_barkbase_sessionmaker, get_ops_session, seed_components
from backend.errors import register_exception_handlers
from backend.models import audit, component, incident, tenant, user  # noqa: F401


# Databases are files rather than in-memory so that the audit sink and the
# concurrent tenant counts, which open their own sessions, see the same data.

@pytest_asyncio.fixture
async def ops_sessions(tmp_path):
    """Session factory on a fresh, seeded ops database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ops.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_components(session)

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(ops_sessions):
    async with ops_sessions() as session:
        yield session


@pytest_asyncio.fixture
async def barkbase_sessions(tmp_path):
    """Session factory on an empty barkbase database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'barkbase.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BarkbaseBase.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def make_token():
    def _make(role="super_admin", email="admin@barkbase.test", sub="admin-1", expires_in=600, **claims):
        now = int(time.time())
        payload = {"sub": sub, "email": email, ROLE_CLAIM: role, "iat": now, "exp": now + expires_in}
        payload.update(claims)
        return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(role="super_admin", **kwargs):
        return {"Authorization": f"Bearer {make_token(role=role, **kwargs)}"}

    return _headers


@pytest.fixture
def audit_sink(ops_sessions):
    return AuditLog(ops_sessions)


@pytest.fixture
def ops_app(ops_sessions, barkbase_sessions, audit_sink):
    app = FastAPI()
    register_exception_handlers(app)

    async def _override_session():
        async with ops_sessions() as session:
            yield session

    app.dependency_overrides[get_ops_session] = _override_session
    app.dependency_overrides[get_audit_log] = lambda: audit_sink
    app.dependency_overrides[get_barkbase_sessionmaker] = lambda: barkbase_sessions
    app.include_router(auth_router)
    app.include_router(incidents_router)
    app.include_router(support_router)
    app.include_router(audit_logs_router)
    app.include_router(status_router)
    return app


@pytest_asyncio.fixture
async def client(ops_app):
    transport = ASGITransport(app=ops_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
