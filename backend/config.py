"""BarkBase Ops configuration loaded from environment variables."""

from __future__ import annotations

import json
from pydantic_settings import BaseSettings
from pydantic import Field, AliasChoices


DEFAULT_JWT_SECRET = "change-me-in-production-barkbase-ops"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Databases
    ops_database_url: str = Field(
        default="sqlite+aiosqlite:///./barkbase_ops.db",
        validation_alias=AliasChoices("OPS_DATABASE_URL", "DATABASE_URL"),
    )
    barkbase_database_url: str = Field(
        default="sqlite+aiosqlite:///./barkbase.db",
        alias="BARKBASE_DATABASE_URL",
    )
    auto_create_schema: bool = Field(default=True, alias="AUTO_CREATE_SCHEMA")
    slow_query_ms: int = Field(default=1000, alias="SLOW_QUERY_MS")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default='["http://localhost:5173"]', alias="CORS_ORIGINS")
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    strict_startup_validation: bool = Field(default=False, alias="STRICT_STARTUP_VALIDATION")
    rate_limit_default: str = Field(default="120/minute", alias="RATE_LIMIT_DEFAULT")

    # Cognito (RS256 via JWKS). Empty means shared-secret mode.
    cognito_jwks_url: str = Field(default="", alias="COGNITO_JWKS_URL")
    cognito_issuer_url: str = Field(default="", alias="COGNITO_ISSUER_URL")

    # Shared-secret JWT (dev/test)
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Support lookups
    search_result_limit: int = Field(default=20, alias="SEARCH_RESULT_LIMIT")
    tenant_user_limit: int = Field(default=50, alias="TENANT_USER_LIMIT")

    # Public status
    status_cache_max_age: int = Field(default=60, alias="STATUS_CACHE_MAX_AGE")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def cognito_enabled(self) -> bool:
        return bool(self.cognito_jwks_url)

    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        # Supports JSON list format and comma-separated format.
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(origin).strip() for origin in parsed if str(origin).strip()]
            except json.JSONDecodeError:
                pass

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore", "populate_by_name": True}


settings = Settings()
