"""Application configuration with environment-specific profiles.

Supports dev, test, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    secret_key: str = "change-me"
    jwt_secret: str = "jwt-change-me"
    session_cookie_name: str = "auth-token"
    session_max_age_seconds: int = 60 * 60 * 24 * 7
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)
    request_id_header_name: str = "X-Request-ID"

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    login_rate_limit: str = "10/minute"

    # Outbound email (Resend-compatible HTTP API)
    resend_api_key: str = ""
    email_api_url: str = "https://api.resend.com/emails"
    email_from: str = "noreply@wodboard.app"
    email_timeout_seconds: float = 10.0

    # Calendar invites
    calendar_domain: str = "wodboard.app"
    calendar_location: str = "Crossfit Gym"
    display_timezone: str = "Europe/Zurich"

    # Workout defaults
    default_max_participants: int = 4
    import_default_max_participants: int = 20

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def email_enabled(self) -> bool:
        return bool(self.resend_api_key)


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "rate_limit_enabled": False,
    },
    "test": {
        "log_level": "WARNING",
        "rate_limit_enabled": False,
    },
    "staging": {
        "log_level": "INFO",
        "rate_limit_enabled": True,
    },
    "production": {
        "log_level": "WARNING",
        "rate_limit_enabled": True,
        "session_max_age_seconds": 60 * 60 * 24 * 7,
    },
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def get_database_url() -> str:
    """Resolve database URL from DATABASE_URL, falling back to a local SQLite file."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "sqlite+pysqlite:///./wodboard.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])
    secret_key = os.getenv("SECRET_KEY", "change-me")

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        secret_key=secret_key,
        jwt_secret=os.getenv("JWT_SECRET", secret_key if "SECRET_KEY" in os.environ else "jwt-change-me"),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "auth-token"),
        session_max_age_seconds=int(os.getenv("SESSION_MAX_AGE_SECONDS", str(profile.get("session_max_age_seconds", 604800)))),
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        cors_origins=_env_list("CORS_ORIGINS", ("http://localhost:3000",)),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER_NAME", "X-Request-ID"),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", profile.get("rate_limit_enabled", True)),
        rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        login_rate_limit=os.getenv("LOGIN_RATE_LIMIT", "10/minute"),
        resend_api_key=os.getenv("RESEND_API_KEY", ""),
        email_api_url=os.getenv("EMAIL_API_URL", "https://api.resend.com/emails"),
        email_from=os.getenv("EMAIL_FROM", "noreply@wodboard.app"),
        email_timeout_seconds=float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10")),
        calendar_domain=os.getenv("CALENDAR_DOMAIN", "wodboard.app"),
        calendar_location=os.getenv("CALENDAR_LOCATION", "Crossfit Gym"),
        display_timezone=os.getenv("DISPLAY_TIMEZONE", "Europe/Zurich"),
        default_max_participants=int(os.getenv("DEFAULT_MAX_PARTICIPANTS", "4")),
        import_default_max_participants=int(os.getenv("IMPORT_DEFAULT_MAX_PARTICIPANTS", "20")),
    )
