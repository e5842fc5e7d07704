import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from backend.errors import NotFoundError, ValidationError, register_exception_handlers


@pytest.fixture
def error_app():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/bad")
    async def bad():
        raise ValidationError("Bad input")

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Thing not found")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return app


@pytest.mark.asyncio
async def test_errors_render_as_message_bodies(error_app):
    transport = ASGITransport(app=error_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        bad = await ac.get("/bad")
        missing = await ac.get("/missing")
        boom = await ac.get("/boom")

    assert (bad.status_code, bad.json()) == (400, {"message": "Bad input"})
    assert (missing.status_code, missing.json()) == (404, {"message": "Thing not found"})
    assert (boom.status_code, boom.json()) == (500, {"message": "Internal server error"})
