"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from barberflow.config import DEFAULT_AUTH_SECRET_KEY, Settings

DB_URL = "sqlite+aiosqlite:///./data/test.db"


def make_settings(**overrides) -> Settings:
    values = {"database_url": DB_URL}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_defaults(self):
        settings = make_settings()
        assert settings.booking_token_ttl_minutes == 15
        assert settings.booking_session_ttl_seconds == 1800
        assert settings.tzinfo.key == "America/Sao_Paulo"
        assert not settings.is_production

    def test_database_url_required(self):
        with pytest.raises(ValidationError):
            make_settings(database_url="")

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(business_timezone="Mars/Olympus_Mons")

    def test_production_rejects_placeholder_secret(self):
        with pytest.raises(ValidationError):
            make_settings(
                app_env="production",
                auth_secret_key=DEFAULT_AUTH_SECRET_KEY,
                auth_cookie_secure=True,
            )

    def test_production_requires_secure_cookie(self):
        with pytest.raises(ValidationError):
            make_settings(app_env="prod", auth_secret_key="x" * 48, auth_cookie_secure=False)

    def test_production_accepts_hardened_settings(self):
        settings = make_settings(
            app_env="production", auth_secret_key="x" * 48, auth_cookie_secure=True
        )
        assert settings.is_production
