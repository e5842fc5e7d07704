"""BarkBase Ops — FastAPI application entry point."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from backend.config import DEFAULT_JWT_SECRET, settings
from backend.database import barkbase_engine, init_db, ops_engine
from backend.errors import register_exception_handlers
from backend.logging_config import reset_request_context, setup_logging, start_request_context

from backend.api.auth import router as auth_router
from backend.api.incidents import router as incidents_router
from backend.api.support import router as support_router
from backend.api.audit_logs import router as audit_logs_router
from backend.api.status import router as status_router
from backend.observability.metrics import metrics

logger = logging.getLogger("barkbase_ops")

SERVICE = "barkbase-ops"
VERSION = "0.3.0"

# Rate limiter
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])


def _startup_checks() -> None:
    """Log warnings for misconfigured or missing settings."""
    startup_errors: list[str] = []

    if not settings.cognito_enabled and settings.jwt_secret == DEFAULT_JWT_SECRET:
        msg = "JWT_SECRET is using the default value; set a strong secret or configure COGNITO_JWKS_URL"
        logger.warning(msg)
        if settings.is_production:
            startup_errors.append(msg)

    if settings.is_production and not settings.cognito_enabled:
        msg = "APP_ENV=production but COGNITO_JWKS_URL is empty (shared-secret tokens in use)"
        logger.warning(msg)
        startup_errors.append(msg)

    if settings.cognito_enabled and not settings.cognito_issuer_url:
        logger.warning("COGNITO_ISSUER_URL is empty; token issuer will not be checked")

    if settings.is_production and not settings.cors_origins_list:
        msg = "APP_ENV=production but CORS_ORIGINS is empty"
        logger.warning(msg)
        startup_errors.append(msg)

    if settings.is_production and "sqlite" in settings.ops_database_url:
        logger.warning("APP_ENV=production with SQLite for the ops database; use PostgreSQL")

    if settings.strict_startup_validation and startup_errors:
        raise RuntimeError("Startup validation failed: " + " | ".join(startup_errors))

    logger.info("Auth mode: %s", "Cognito JWKS" if settings.cognito_enabled else "shared-secret JWT")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    setup_logging(settings.log_level, as_json=settings.is_production)
    _startup_checks()

    await init_db()
    logger.info("BarkBase Ops API started (env=%s)", settings.app_env)

    yield

    await ops_engine.dispose()
    await barkbase_engine.dispose()
    logger.info("BarkBase Ops API shutting down")


app = FastAPI(
    title="BarkBase Ops",
    description="Internal operations API: incidents, public status and support lookups",
    version=VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request tracing + access log middleware
@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = start_request_context(request_id=request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        route = request.scope.get("route")
        metrics.observe_request(getattr(route, "path", request.url.path), response.status_code, duration_ms)
        logger.info(
            "request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
    finally:
        reset_request_context(token)


# Security headers middleware
@app.middleware("http")
async def security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# Routers
app.include_router(auth_router)
app.include_router(incidents_router)
app.include_router(support_router)
app.include_router(audit_logs_router)
app.include_router(status_router)


@app.get("/")
async def root():
    return JSONResponse(
        {
            "service": SERVICE,
            "status": "ok",
            "endpoints": {
                "health": "/api/health",
                "status": "/status",
                "docs": "/docs",
            },
        }
    )


async def _db_ready(engine: AsyncEngine, label: str) -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("%s database readiness check failed", label)
        return False


@app.get("/api/health")
async def health_check():
    ops_ready = await _db_ready(ops_engine, "ops")
    barkbase_ready = await _db_ready(barkbase_engine, "barkbase")

    return {
        "status": "healthy" if ops_ready and barkbase_ready else "degraded",
        "service": SERVICE,
        "version": VERSION,
        "databases": {"ops": ops_ready, "barkbase": barkbase_ready},
    }


@app.get("/api/health/live")
async def liveness_check():
    return {"status": "alive", "service": SERVICE}


@app.get("/api/health/ready")
async def readiness_check(response: Response):
    ops_ready = await _db_ready(ops_engine, "ops")
    barkbase_ready = await _db_ready(barkbase_engine, "barkbase")
    ready = ops_ready and barkbase_ready

    if not ready:
        response.status_code = 503

    return {
        "status": "ready" if ready else "not_ready",
        "checks": {
            "ops_database": ops_ready,
            "barkbase_database": barkbase_ready,
        },
    }


@app.get("/api/metrics")
async def get_metrics():
    return {
        "service": SERVICE,
        "version": VERSION,
        "metrics": metrics.snapshot(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
