from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_JWT_SECRET = "dev-only-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="dev", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Supabase
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_ROLE_KEY")
    supabase_storage_bucket: str = Field(default="logos", alias="SUPABASE_STORAGE_BUCKET")

    # Sessions
    jwt_secret: str = Field(default=_DEV_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    session_ttl_hours: int = Field(default=12, alias="SESSION_TTL_HOURS")
    bcrypt_rounds: int = Field(default=10, alias="BCRYPT_ROUNDS")

    # Billing defaults for new clients
    default_call_rate: float = Field(default=2.0, alias="DEFAULT_CALL_RATE")
    monthly_minute_limit: int = Field(default=5000, alias="MONTHLY_MINUTE_LIMIT")

    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    @property
    def is_production(self) -> bool:
        return (self.app_env or "").lower() in {"prod", "production"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in (self.cors_allow_origins or "").split(",") if o.strip()]


settings = Settings()


def require_secrets() -> None:
    missing: list[str] = []
    if not settings.supabase_url:
        missing.append("SUPABASE_URL")
    if not settings.supabase_service_role_key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if settings.is_production and settings.jwt_secret == _DEV_JWT_SECRET:
        missing.append("JWT_SECRET")

    if missing:
        raise RuntimeError("Missing required env vars: " + ", ".join(missing))
