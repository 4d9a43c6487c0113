from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_AUTH_SECRET_KEY = "change-me-barberflow-session-secret"
_PROD_ENV_NAMES = {"prod", "production"}


class Settings(BaseSettings):
    app_name: str = Field(default="BarberFlow")
    app_env: str = Field(default="dev")
    app_version: str = Field(default="0.1.0")

    database_url: str = Field(default="")

    log_level: str = Field(default="INFO")
    log_file: str = Field(default="data/app.log")
    log_db_queries: bool = Field(default=True)
    log_db_query_params: bool = Field(default=False)
    log_sql_max_length: int = Field(default=400)

    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    auth_secret_key: str = Field(default=DEFAULT_AUTH_SECRET_KEY)
    auth_cookie_secure: bool = Field(default=False)
    booking_session_ttl_seconds: int = Field(default=1800)
    booking_token_ttl_minutes: int = Field(default=15)
    frontend_url: str = Field(default="http://localhost:3000")
    business_timezone: str = Field(default="America/Sao_Paulo")
    metrics_enabled: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in _PROD_ENV_NAMES

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        if not self.database_url:
            raise ValueError("DATABASE_URL must be set in .env or environment variables.")
        try:
            ZoneInfo(self.business_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"BUSINESS_TIMEZONE '{self.business_timezone}' is not a known IANA zone."
            ) from exc
        if self.is_production:
            issues: list[str] = []
            if self.auth_secret_key == DEFAULT_AUTH_SECRET_KEY:
                issues.append("AUTH_SECRET_KEY must not use the default placeholder in production.")
            if len(self.auth_secret_key) < 32:
                issues.append("AUTH_SECRET_KEY must be at least 32 characters in production.")
            if not self.auth_cookie_secure:
                issues.append("AUTH_COOKIE_SECURE must be true in production.")
            if issues:
                raise ValueError(" ".join(issues))
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
