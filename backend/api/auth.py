"""Admin authentication and the capability guards used by admin routes.

When COGNITO_JWKS_URL is configured, bearer tokens are Cognito ID/access
tokens verified as RS256 against the pool's JWKS. Otherwise tokens are HS256
JWTs signed with JWT_SECRET (local development and tests).

Every failure is an ``AuthenticationError``, which renders as 403.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt

from backend.config import settings
from backend.errors import AuthenticationError, AuthorizationError
from backend.logging_config import bind_request_context
from backend.observability.metrics import metrics
from backend.permissions import (
    AdminUser,
    can_extend_trials,
    can_manage_tenant_users,
    can_suspend_tenants,
    can_write_incidents,
    is_admin_role,
)

router = APIRouter(prefix="/admin", tags=["auth"])
logger = logging.getLogger("barkbase_ops.auth")

# Raw header so both "Bearer <token>" and a bare token are accepted.
security = APIKeyHeader(name="Authorization", auto_error=False)

ROLE_CLAIM = "custom:role"
_JWKS_CACHE: dict[str, object] = {"fetched_at": 0.0, "keys": []}
_JWKS_CACHE_TTL_SECONDS = 600


# ── JWT verification ──────────────────────────────────────────

async def _fetch_jwks() -> list[dict]:
    now = time.time()
    cached_at = float(_JWKS_CACHE.get("fetched_at") or 0.0)
    cached_keys = _JWKS_CACHE.get("keys")
    if isinstance(cached_keys, list) and cached_keys and now - cached_at < _JWKS_CACHE_TTL_SECONDS:
        return cached_keys

    try:
        async with httpx.AsyncClient(timeout=5) as client:
            resp = await client.get(settings.cognito_jwks_url)
            resp.raise_for_status()
            payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Unable to fetch signing keys from %s: %s", settings.cognito_jwks_url, exc)
        raise AuthenticationError("Token validation failed: signing keys unavailable")

    keys = payload.get("keys", []) if isinstance(payload, dict) else []
    if not isinstance(keys, list) or not keys:
        raise AuthenticationError("Token validation failed: signing keys unavailable")

    _JWKS_CACHE["keys"] = keys
    _JWKS_CACHE["fetched_at"] = now
    return keys


async def _get_jwk(kid: str) -> dict:
    for key in await _fetch_jwks():
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    raise AuthenticationError("Token validation failed: unknown signing key")


async def _verify_cognito_token(token: str) -> dict:
    try:
        header = jwt.get_unverified_header(token)
        kid = str(header.get("kid") or "").strip()
        if not kid:
            raise AuthenticationError("Token validation failed: missing key id")
        payload = jwt.decode(
            token,
            await _get_jwk(kid),
            algorithms=["RS256"],
            issuer=settings.cognito_issuer_url or None,
            options={"verify_aud": False, "verify_at_hash": False},
        )
    except JWTError as exc:
        raise AuthenticationError(f"Token validation failed: {exc}")

    if payload.get("token_use") not in {"id", "access"}:
        raise AuthenticationError("Invalid token type")
    return payload


def _verify_shared_secret_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise AuthenticationError(f"Token validation failed: {exc}")


def admin_from_claims(payload: dict) -> AdminUser:
    """Map verified claims to an ``AdminUser``; only admin roles are accepted."""
    subject = payload.get("sub")
    email = payload.get("email")
    role = payload.get(ROLE_CLAIM)
    if not subject or not email:
        raise AuthenticationError("Token validation failed: missing subject or email")
    if not is_admin_role(role):
        raise AuthenticationError("Access denied. Admin role required.")
    return AdminUser(id=str(subject), email=str(email), role=role, name=payload.get("name") or email)


# ── Dependencies ──────────────────────────────────────────────

def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an Authorization header value, with or without the ``Bearer`` scheme."""
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return authorization.strip() or None


async def get_current_admin(authorization: Optional[str] = Depends(security)) -> AdminUser:
    """Strict auth dependency for every ``/admin`` route."""
    token = extract_token(authorization)
    if not token:
        raise AuthenticationError("No authorization token provided")

    if settings.cognito_enabled:
        payload = await _verify_cognito_token(token)
    else:
        payload = _verify_shared_secret_token(token)

    admin = admin_from_claims(payload)
    bind_request_context(admin_email=admin.email)
    return admin


def require_capability(check: Callable[[Optional[str]], bool], denied_message: str):
    """Factory for capability-checking dependencies."""

    async def _check(admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        if not check(admin.role):
            logger.info("Denied %s (%s): %s", admin.email, admin.role, denied_message)
            metrics.observe_denied(admin.role)
            raise AuthorizationError(denied_message)
        return admin

    return _check


def require_incident_writer(verb: str):
    return require_capability(can_write_incidents, f"You do not have permission to {verb}")


def require_tenant_suspender(verb: str):
    return require_capability(can_suspend_tenants, f"You do not have permission to {verb}")


require_trial_extender = require_capability(can_extend_trials, "You do not have permission to extend trials")
require_tenant_user_manager = require_capability(
    can_manage_tenant_users, "You do not have permission to reset passwords"
)


# ── Endpoints ─────────────────────────────────────────────────

@router.get("/me")
async def get_me(admin: AdminUser = Depends(get_current_admin)):
    """Return the signed-in admin and the capabilities the console should offer."""
    return {
        "id": admin.id,
        "email": admin.email,
        "name": admin.name,
        "role": admin.role,
        "capabilities": admin.capabilities,
    }
