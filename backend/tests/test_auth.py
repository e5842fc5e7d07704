"""Token verification and the admin identity endpoint."""

from __future__ import annotations

import pytest
from jose import jwt

from backend.api.auth import admin_from_claims, extract_token
from backend.errors import AuthenticationError


@pytest.mark.asyncio
async def test_missing_token_is_403(client):
    resp = await client.get("/admin/incidents")
    assert resp.status_code == 403
    assert resp.json() == {"message": "No authorization token provided"}


@pytest.mark.asyncio
async def test_garbage_token_is_403(client):
    resp = await client.get("/admin/incidents", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 403
    assert resp.json()["message"].startswith("Token validation failed")


@pytest.mark.asyncio
async def test_expired_token_is_403(client, auth_headers):
    resp = await client.get("/admin/incidents", headers=auth_headers(expires_in=-60))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_wrong_secret_is_403(client, make_token):
    token = jwt.encode(
        {"sub": "x", "email": "x@barkbase.test", "custom:role": "super_admin"}, "some-other-secret", algorithm="HS256"
    )
    resp = await client.get("/admin/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_non_admin_role_is_403(client, auth_headers):
    resp = await client.get("/admin/incidents", headers=auth_headers("owner"))
    assert resp.status_code == 403
    assert resp.json() == {"message": "Access denied. Admin role required."}


@pytest.mark.asyncio
async def test_me_reports_capabilities(client, auth_headers):
    engineer = (await client.get("/admin/me", headers=auth_headers("engineer", name="Eve"))).json()
    assert engineer["role"] == "engineer"
    assert engineer["name"] == "Eve"
    assert engineer["capabilities"]["writeIncidents"] is True
    assert engineer["capabilities"]["suspendTenants"] is False

    support = (await client.get("/admin/me", headers=auth_headers("support"))).json()
    assert support["capabilities"] == {
        "writeIncidents": False,
        "suspendTenants": False,
        "extendTrials": True,
        "manageTenantUsers": True,
    }
    assert support["name"] == "admin@barkbase.test"


def test_claims_need_subject_and_email():
    with pytest.raises(AuthenticationError):
        admin_from_claims({"email": "a@b.test", "custom:role": "engineer"})
    with pytest.raises(AuthenticationError):
        admin_from_claims({"sub": "1", "custom:role": "engineer"})


def test_claims_map_to_admin_user():
    admin = admin_from_claims({"sub": 7, "email": "a@b.test", "custom:role": "support_lead"})
    assert admin.id == "7"
    assert admin.role == "support_lead"
    assert admin.can_write_incidents


@pytest.mark.asyncio
async def test_token_without_bearer_scheme_is_accepted(client, make_token):
    resp = await client.get("/admin/me", headers={"Authorization": make_token(role="support")})
    assert resp.status_code == 200
    assert resp.json()["role"] == "support"


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("abc.def", "abc.def"),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_token(header, expected):
    assert extract_token(header) == expected
