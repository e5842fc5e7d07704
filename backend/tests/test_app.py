"""Application shell: error bodies, probes and metrics on the assembled app."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from backend.main import app


@pytest.fixture
def main_client():
    return AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test")


@pytest.mark.asyncio
async def test_unknown_route_is_404_with_message(main_client):
    async with main_client as ac:
        resp = await ac.get("/definitely/not/here")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Not found"}


@pytest.mark.asyncio
async def test_liveness_and_security_headers(main_client):
    async with main_client as ac:
        resp = await ac.get("/api/health/live", headers={"X-Request-ID": "req-123"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "alive"
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_metrics_count_requests(main_client):
    async with main_client as ac:
        await ac.get("/api/health/live")
        resp = await ac.get("/api/metrics")
    snapshot = resp.json()["metrics"]
    assert snapshot["requests_total"] >= 1
    assert snapshot["route_counts"]["/api/health/live"] >= 1


@pytest.mark.asyncio
async def test_admin_routes_are_guarded(main_client):
    async with main_client as ac:
        resp = await ac.get("/admin/me")
    assert resp.status_code == 403
