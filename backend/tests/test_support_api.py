"""Support lookups against the barkbase database."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select, text

from backend.models.audit import AdminAuditLog
from backend.models.tenant import ActivityLog, Booking, Pet, Tenant
from backend.models.user import User
from backend.utils.time import as_utc, start_of_month, utc_now

TRIAL_ENDS = datetime(2030, 1, 10, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def seeded(barkbase_sessions):
    now = utc_now()
    async with barkbase_sessions() as session:
        session.add_all(
            [
                Tenant(id="t-1", name="Happy Paws", subdomain="happypaws", status="active", plan="pro",
                       settings={"timezone": "UTC"}, created_at=now - timedelta(days=90)),
                Tenant(id="t-2", name="Bark Avenue", subdomain="barkave", status="trial", plan="free",
                       trial_ends_at=TRIAL_ENDS, created_at=now - timedelta(days=3)),
                User(id="u-1", tenant_id="t-1", email="owner@happypaws.test", name="Olive Owner", role="owner",
                     created_at=now - timedelta(days=90), last_login_at=now - timedelta(days=1)),
                User(id="u-2", tenant_id="t-1", email="staff@happypaws.test", name="Sam Staff", role="staff",
                     created_at=now - timedelta(days=10), last_login_at=now - timedelta(days=45)),
                User(id="u-3", tenant_id="t-2", email="bea@barkave.test", name="Bea", role="owner",
                     created_at=now - timedelta(days=3)),
                Pet(id="p-1", tenant_id="t-1", name="Rex"),
                Pet(id="p-2", tenant_id="t-1", name="Luna"),
                Pet(id="p-3", tenant_id="t-1", name="Milo"),
                Booking(id="b-1", tenant_id="t-1", status="completed", total_amount=120.50, created_at=now),
                Booking(id="b-2", tenant_id="t-1", status="completed", total_amount=79.50,
                        created_at=start_of_month(now) - timedelta(days=1)),
                Booking(id="b-3", tenant_id="t-1", status="cancelled", total_amount=500, created_at=now),
                ActivityLog(id="a-1", tenant_id="t-1", user_id="u-1", action="booking_created",
                            description="Booked Rex for daycare", created_at=now - timedelta(hours=2)),
                ActivityLog(id="a-2", tenant_id="t-1", action="settings_updated", created_at=now - timedelta(hours=1)),
                ActivityLog(id="a-3", tenant_id="t-2", user_id="u-3", action="signup", created_at=now),
            ]
        )
        await session.commit()


@pytest.mark.asyncio
async def test_search_requires_two_characters(client, auth_headers, ops_sessions):
    for params in ({"q": "a"}, {}):
        resp = await client.get("/admin/search", params=params, headers=auth_headers("support"))
        assert resp.status_code == 400
        assert "at least 2 characters" in resp.json()["message"]

    async with ops_sessions() as session:
        assert (await session.execute(select(AdminAuditLog))).scalars().all() == []


@pytest.mark.asyncio
async def test_search_without_matches_is_empty(client, auth_headers):
    resp = await client.get("/admin/search", params={"q": "zz"}, headers=auth_headers("support"))
    assert resp.status_code == 200
    assert resp.json() == {"results": []}


@pytest.mark.asyncio
async def test_search_finds_tenants_and_users(client, auth_headers, seeded, ops_sessions):
    resp = await client.get("/admin/search", params={"q": "HAPPY"}, headers=auth_headers("support"))
    assert resp.status_code == 200
    results = resp.json()["results"]

    tenants = [r for r in results if r["type"] == "tenant"]
    users = [r for r in results if r["type"] == "user"]
    assert [t["id"] for t in tenants] == ["t-1"]
    assert tenants[0]["userCount"] == 2
    assert sorted(u["id"] for u in users) == ["u-1", "u-2"]
    assert all(u["tenantName"] == "Happy Paws" for u in users)

    async with ops_sessions() as session:
        entry = (await session.execute(select(AdminAuditLog))).scalar_one()
    assert entry.action == "search"
    assert entry.details == {"query": "HAPPY"}


@pytest.mark.asyncio
async def test_search_requires_authentication(client):
    resp = await client.get("/admin/search", params={"q": "happy"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_tenant_detail_counts_and_stats(client, auth_headers, seeded):
    resp = await client.get("/admin/tenants/t-1", headers=auth_headers("support"))
    assert resp.status_code == 200
    body = resp.json()

    assert body["name"] == "Happy Paws"
    assert body["settings"] == {"timezone": "UTC"}
    assert (body["userCount"], body["petCount"], body["bookingCount"]) == (2, 3, 3)
    assert body["stats"] == {
        "totalPets": 3,
        "totalBookings": 3,
        "totalRevenue": 200.0,
        "bookingsThisMonth": 2,
        "activeUsers": 1,
    }
    assert [u["id"] for u in body["users"]] == ["u-2", "u-1"]
    assert body["users"][0]["createdAt"].endswith("Z")

    activity = body["recentActivity"]
    assert [a["id"] for a in activity] == ["a-2", "a-1"]
    assert activity[1]["type"] == "booking_created"
    assert activity[1]["description"] == "Booked Rex for daycare"
    assert activity[1]["userName"] == "Olive Owner"
    assert activity[0]["userName"] is None


@pytest.mark.asyncio
async def test_tenant_detail_without_activity_table(client, auth_headers, seeded, barkbase_sessions):
    async with barkbase_sessions() as session:
        await session.execute(text('DROP TABLE "ActivityLog"'))
        await session.commit()

    resp = await client.get("/admin/tenants/t-1", headers=auth_headers("support"))
    assert resp.status_code == 200
    assert resp.json()["recentActivity"] == []
    assert resp.json()["stats"]["totalBookings"] == 3


@pytest.mark.asyncio
async def test_unknown_tenant_is_404(client, auth_headers, seeded):
    resp = await client.get("/admin/tenants/missing", headers=auth_headers("support"))
    assert resp.status_code == 404
    assert resp.json() == {"message": "Tenant not found"}


@pytest.mark.asyncio
async def test_tenant_users_newest_first(client, auth_headers, seeded):
    resp = await client.get("/admin/tenants/t-1/users", headers=auth_headers("support"))
    assert resp.status_code == 200
    users = resp.json()["users"]
    assert [u["email"] for u in users] == ["staff@happypaws.test", "owner@happypaws.test"]
    assert users[0]["lastLoginAt"] is not None


async def _audit_entries(ops_sessions) -> list[AdminAuditLog]:
    async with ops_sessions() as session:
        result = await session.execute(select(AdminAuditLog).order_by(AdminAuditLog.created_at))
        return list(result.scalars())


async def _tenant(barkbase_sessions, tenant_id) -> Tenant:
    async with barkbase_sessions() as session:
        return await session.get(Tenant, tenant_id)


@pytest.mark.asyncio
async def test_support_lead_suspends_and_unsuspends(client, auth_headers, seeded, ops_sessions, barkbase_sessions):
    headers = auth_headers("support_lead")

    resp = await client.post("/admin/tenants/t-1/suspend", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["previousStatus"] == "active"
    assert body["tenant"]["status"] == "suspended"
    assert (await _tenant(barkbase_sessions, "t-1")).status == "suspended"

    resp = await client.post("/admin/tenants/t-1/unsuspend", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["tenant"]["status"] == "active"

    entries = await _audit_entries(ops_sessions)
    assert [(e.action, e.target_type, e.target_id) for e in entries] == [
        ("suspend_tenant", "tenant", "t-1"),
        ("unsuspend_tenant", "tenant", "t-1"),
    ]
    assert entries[0].details == {"previousStatus": "active"}
    assert entries[1].details == {"previousStatus": "suspended", "newStatus": "active"}


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["support", "engineer"])
async def test_suspend_needs_suspend_role(client, auth_headers, seeded, ops_sessions, barkbase_sessions, role):
    resp = await client.post("/admin/tenants/t-1/suspend", headers=auth_headers(role))
    assert resp.status_code == 403
    assert resp.json() == {"message": "You do not have permission to suspend tenants"}

    resp = await client.post("/admin/tenants/t-1/unsuspend", headers=auth_headers(role))
    assert resp.status_code == 403
    assert resp.json() == {"message": "You do not have permission to unsuspend tenants"}

    assert (await _tenant(barkbase_sessions, "t-1")).status == "active"
    assert await _audit_entries(ops_sessions) == []


@pytest.mark.asyncio
async def test_tenant_actions_on_unknown_tenant_are_404(client, auth_headers, seeded, ops_sessions):
    headers = auth_headers("super_admin")
    for action in ("suspend", "unsuspend", "extend-trial"):
        resp = await client.post(f"/admin/tenants/missing/{action}", headers=headers)
        assert resp.status_code == 404
        assert resp.json() == {"message": "Tenant not found"}

    assert await _audit_entries(ops_sessions) == []


@pytest.mark.asyncio
async def test_extend_trial_adds_to_existing_end(client, auth_headers, seeded, ops_sessions, barkbase_sessions):
    resp = await client.post("/admin/tenants/t-2/extend-trial", headers=auth_headers("support"))
    assert resp.status_code == 200
    new_end = datetime.fromisoformat(resp.json()["newEndDate"])
    assert new_end == TRIAL_ENDS + timedelta(days=7)
    assert as_utc((await _tenant(barkbase_sessions, "t-2")).trial_ends_at) == new_end

    entry = (await _audit_entries(ops_sessions))[0]
    assert (entry.action, entry.target_id, entry.details) == ("extend_trial", "t-2", {"days": 7})


@pytest.mark.asyncio
async def test_extend_trial_without_end_counts_from_now(client, auth_headers, seeded, ops_sessions):
    before = utc_now()
    resp = await client.post("/admin/tenants/t-1/extend-trial", json={"days": 14}, headers=auth_headers("support"))
    assert resp.status_code == 200
    new_end = datetime.fromisoformat(resp.json()["newEndDate"])
    assert before + timedelta(days=14) <= new_end <= utc_now() + timedelta(days=14)
    assert (await _audit_entries(ops_sessions))[0].details == {"days": 14}


@pytest.mark.asyncio
async def test_extend_trial_rejects_bad_days_and_engineers(client, auth_headers, seeded, ops_sessions):
    bad = await client.post("/admin/tenants/t-1/extend-trial", json={"days": 0}, headers=auth_headers("support"))
    assert bad.status_code == 400

    denied = await client.post("/admin/tenants/t-1/extend-trial", headers=auth_headers("engineer"))
    assert denied.status_code == 403
    assert denied.json() == {"message": "You do not have permission to extend trials"}

    assert await _audit_entries(ops_sessions) == []


@pytest.mark.asyncio
async def test_reset_password_for_tenant_user(client, auth_headers, seeded, ops_sessions):
    resp = await client.post("/admin/tenants/t-1/users/u-2/reset-password", headers=auth_headers("support"))
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["email"] == "staff@happypaws.test"

    entry = (await _audit_entries(ops_sessions))[0]
    assert (entry.action, entry.target_type, entry.target_id) == ("reset_password", "user", "u-2")
    assert entry.details == {"email": "staff@happypaws.test", "tenantId": "t-1"}


@pytest.mark.asyncio
async def test_reset_password_checks_tenant_and_role(client, auth_headers, seeded, ops_sessions):
    # u-3 belongs to t-2.
    other_tenant = await client.post("/admin/tenants/t-1/users/u-3/reset-password", headers=auth_headers("support"))
    assert other_tenant.status_code == 404
    assert other_tenant.json() == {"message": "User not found in this tenant"}

    denied = await client.post("/admin/tenants/t-1/users/u-2/reset-password", headers=auth_headers("engineer"))
    assert denied.status_code == 403
    assert denied.json() == {"message": "You do not have permission to reset passwords"}

    assert await _audit_entries(ops_sessions) == []
