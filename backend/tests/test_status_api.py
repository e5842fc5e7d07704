"""Public status feed and banner."""

from __future__ import annotations

import pytest

from backend.config import settings


async def _open(client, auth_headers, severity, title, components=()):
    resp = await client.post(
        "/admin/incidents",
        json={
            "title": title,
            "severity": severity,
            "status": "investigating",
            "customerMessage": f"{title} message",
            "internalNotes": "on-call only",
            "components": list(components),
        },
        headers=auth_headers("engineer"),
    )
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_status_is_public_and_operational_by_default(client):
    resp = await client.get("/status")
    assert resp.status_code == 200
    assert resp.headers["cache-control"] == f"public, max-age={settings.status_cache_max_age}"

    body = resp.json()
    assert body["status"] == "operational"
    assert body["activeIncidents"] == []
    assert [c["name"] for c in body["components"]] == [
        "api", "auth", "database", "booking", "billing", "notifications", "reports",
    ]
    assert all(c["status"] == "operational" for c in body["components"])
    assert body["components"][4]["displayName"] == "Billing & Payments"


@pytest.mark.asyncio
async def test_status_never_exposes_internal_notes(client, auth_headers):
    await _open(client, auth_headers, "degraded", "Slow reports", ["reports"])

    body = (await client.get("/status")).json()
    incident = body["activeIncidents"][0]
    assert incident["customerMessage"] == "Slow reports message"
    assert incident["components"] == ["reports"]
    assert "internalNotes" not in incident
    assert "createdByEmail" not in incident


@pytest.mark.asyncio
async def test_banner_inactive_without_incidents(client):
    resp = await client.get("/status/banner")
    assert resp.status_code == 200
    assert resp.json() == {"active": False}
    assert "max-age" in resp.headers["cache-control"]


@pytest.mark.asyncio
async def test_banner_shows_most_severe_incident(client, auth_headers):
    await _open(client, auth_headers, "major_outage", "Payments down", ["billing"])
    await _open(client, auth_headers, "degraded", "Slow search", ["api"])

    banner = (await client.get("/status/banner")).json()
    assert banner == {
        "active": True,
        "severity": "major_outage",
        "message": "Payments down message",
        "url": "/status",
    }


@pytest.mark.asyncio
async def test_worst_severity_wins_per_component(client, auth_headers):
    await _open(client, auth_headers, "degraded", "Slow API", ["api"])
    await _open(client, auth_headers, "partial_outage", "API errors", ["api", "auth"])

    body = (await client.get("/status")).json()
    by_name = {c["name"]: c["status"] for c in body["components"]}
    assert body["status"] == "partial_outage"
    assert by_name["api"] == "partial_outage"
    assert by_name["auth"] == "partial_outage"
    assert by_name["database"] == "operational"
    assert [i["title"] for i in body["activeIncidents"]] == ["API errors", "Slow API"]
