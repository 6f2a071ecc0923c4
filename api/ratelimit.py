from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.config import Settings, get_settings


def _limiter_enabled(settings: Settings) -> bool:
    if str(settings.app_env).lower() == "test":
        return False
    return bool(settings.rate_limit_enabled)


def _login_limit() -> str:
    return get_settings().login_rate_limit


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_settings().rate_limit_storage_uri,
    enabled=False,
    headers_enabled=True,
)


def configure_limiter(settings: Settings) -> Limiter:
    """Enable or disable the shared limiter for the app being built."""
    limiter.enabled = _limiter_enabled(settings)
    return limiter


login_limit = limiter.limit(_login_limit)


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    retry_after: Optional[str] = None
    if isinstance(exc, RateLimitExceeded):
        retry_after = getattr(exc, "retry_after", None)
    headers = {}
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=429, content={"error": "Rate limit exceeded"}, headers=headers)
