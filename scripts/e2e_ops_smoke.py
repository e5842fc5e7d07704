#!/usr/bin/env python3
"""End-to-end smoke for the BarkBase Ops API.

Runs an incident lifecycle against a running backend and fails fast on
regressions. Uses SMOKE_TOKEN when set; otherwise mints a shared-secret token
from JWT_SECRET (only valid when the server is not in Cognito mode).
"""

from __future__ import annotations

import json
import os
import sys
import time
from dataclasses import dataclass

import httpx
from jose import jwt

BASE_URL = os.environ.get("OPS_BASE_URL", "http://127.0.0.1:8000")
TIMEOUT = 30.0


@dataclass
class SmokeState:
    incident_id: str | None = None


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def _token() -> str:
    token = os.environ.get("SMOKE_TOKEN")
    if token:
        return token
    secret = os.environ.get("JWT_SECRET", "change-me-in-production-barkbase-ops")
    now = int(time.time())
    return jwt.encode(
        {
            "sub": "smoke-test",
            "email": "smoke@barkbase.test",
            "custom:role": "super_admin",
            "iat": now,
            "exp": now + 600,
        },
        secret,
        algorithm="HS256",
    )


def call(client: httpx.Client, method: str, path: str, expected: int = 200, **kwargs):
    resp = client.request(method, f"{BASE_URL}{path}", **kwargs)
    expect(
        resp.status_code == expected,
        f"{method} {path} -> {resp.status_code} != {expected}; body={resp.text[:500]}",
    )
    return resp


def main() -> int:
    state = SmokeState()
    with httpx.Client(timeout=TIMEOUT) as client:
        # 1) Health
        health = call(client, "GET", "/api/health").json()
        expect(health.get("status") == "healthy", "health status is not healthy")

        # 2) Admin routes reject anonymous callers
        denied = call(client, "GET", "/admin/incidents", expected=403).json()
        expect("message" in denied, "error body missing message")

        client.headers["Authorization"] = f"Bearer {_token()}"
        me = call(client, "GET", "/admin/me").json()
        expect(me["capabilities"]["writeIncidents"], "smoke admin cannot write incidents")

        # 3) Incident lifecycle
        incident = call(
            client,
            "POST",
            "/admin/incidents",
            expected=201,
            json={
                "title": "Smoke test incident",
                "severity": "degraded",
                "status": "investigating",
                "customerMessage": "Synthetic incident from the smoke test",
                "components": ["api"],
            },
        ).json()
        state.incident_id = incident["id"]

        status = call(client, "GET", "/status").json()
        expect(
            any(i["id"] == state.incident_id for i in status["activeIncidents"]),
            "created incident not on the status page",
        )
        banner = call(client, "GET", "/status/banner").json()
        expect(banner.get("active") is True, "banner not active with an open incident")

        call(
            client,
            "POST",
            f"/admin/incidents/{state.incident_id}/updates",
            expected=201,
            json={"message": "Fix deployed, monitoring", "status": "monitoring"},
        )
        resolved = call(
            client,
            "PUT",
            f"/admin/incidents/{state.incident_id}",
            json={"status": "resolved"},
        ).json()
        expect(resolved["resolvedAt"] is not None, "resolved incident has no resolvedAt")

        detail = call(client, "GET", f"/admin/incidents/{state.incident_id}").json()
        expect(len(detail["updates"]) == 1, "timeline update missing from detail")

        status = call(client, "GET", "/status").json()
        expect(
            all(i["id"] != state.incident_id for i in status["activeIncidents"]),
            "resolved incident still on the status page",
        )

        # 4) Audit trail
        logs = call(client, "GET", "/admin/audit-logs?target_type=incident").json()
        expect(logs["pagination"]["total"] >= 3, "incident actions missing from the audit log")

        # 5) Negative test sanity
        call(client, "GET", "/admin/incidents/does-not-exist", expected=404)
        call(client, "GET", "/admin/search?q=a", expected=400)

    print(json.dumps({"ok": True, "message": "BarkBase Ops smoke passed"}))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # noqa: BLE001
        print(json.dumps({"ok": False, "error": str(exc)}))
        sys.exit(1)
