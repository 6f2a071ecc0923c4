"""Tests for configuration module."""

from __future__ import annotations

import pytest

from core.config import Settings, _ENV_PROFILES, get_database_url, get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_dataclass():
    s = Settings(database_url="postgresql+psycopg://localhost/test")
    assert s.database_url == "postgresql+psycopg://localhost/test"
    assert s.app_env == "dev"
    assert s.session_cookie_name == "auth-token"
    assert s.default_max_participants == 4
    assert s.import_default_max_participants == 20
    assert s.calendar_location == "Crossfit Gym"
    assert s.email_enabled is False


def test_settings_frozen():
    s = Settings(database_url="x")
    with pytest.raises(AttributeError):
        s.database_url = "y"


def test_settings_is_production():
    s = Settings(database_url="x", app_env="production")
    assert s.is_production is True
    assert Settings(database_url="x", app_env="dev").is_production is False


def test_get_database_url_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://from-env/db")
    assert get_database_url() == "postgresql+psycopg://from-env/db"


def test_get_database_url_default(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert get_database_url() == "sqlite+pysqlite:///./wodboard.db"


def test_get_settings_uses_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://test/db")
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "super-secret")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.setenv("RESEND_API_KEY", "re_live")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    s = get_settings()
    assert s.database_url == "postgresql+psycopg://test/db"
    assert s.app_env == "production"
    assert s.secret_key == "super-secret"
    # The signing secret follows SECRET_KEY unless set on its own.
    assert s.jwt_secret == "super-secret"
    assert s.email_enabled is True
    assert s.cors_origins == ("https://a.example", "https://b.example")


def test_env_profiles_exist():
    for name in ("dev", "test", "staging", "production"):
        assert name in _ENV_PROFILES


def test_rate_limit_profile_defaults(monkeypatch):
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)
    monkeypatch.setenv("APP_ENV", "test")
    assert get_settings().rate_limit_enabled is False
    get_settings.cache_clear()
    monkeypatch.setenv("APP_ENV", "production")
    assert get_settings().rate_limit_enabled is True


def test_dev_profile_debug_logging(monkeypatch):
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    assert _ENV_PROFILES["dev"]["log_level"] == "DEBUG"
    assert get_settings().log_level == "DEBUG"


def test_unknown_env_falls_back_to_dev_profile(monkeypatch):
    monkeypatch.setenv("APP_ENV", "qa")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "yes")
    s = get_settings()
    assert s.app_env == "qa"
    assert s.log_level == "DEBUG"
    assert s.rate_limit_enabled is True
