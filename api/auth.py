"""Session cookie auth.

The session is an HS256-signed token stored in the ``auth-token`` cookie.
Handlers depend on ``get_session_user`` or ``require_admin``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, Response

from core.config import get_settings
from core.db import session_scope
from core.errors import AuthenticationError, AuthorizationError
from core.models import User


@dataclass(frozen=True)
class SessionUser:
    id: int
    email: str
    name: str
    is_admin: bool
    exp: int = 0

    @classmethod
    def from_user(cls, user: User) -> "SessionUser":
        return cls(id=user.id, email=user.email, name=user.name, is_admin=bool(user.is_admin))

    def as_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.name, "is_admin": self.is_admin}


class InvalidToken(Exception):
    pass


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - (len(data) % 4)) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("ascii"))


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def issue_session_token(user: SessionUser, expires_in_seconds: Optional[int] = None) -> str:
    settings = get_settings()
    ttl = settings.session_max_age_seconds if expires_in_seconds is None else expires_in_seconds
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        "sub": int(user.id),
        "email": user.email,
        "name": user.name,
        "is_admin": bool(user.is_admin),
        "exp": int(time.time()) + int(ttl),
    }
    header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}"
    return f"{signing_input}.{_sign(signing_input, settings.jwt_secret)}"


def decode_session_token(token: str) -> SessionUser:
    settings = get_settings()
    try:
        header_b64, payload_b64, signature = token.split(".", 2)
    except ValueError as exc:
        raise InvalidToken("malformed token") from exc

    expected = _sign(f"{header_b64}.{payload_b64}", settings.jwt_secret)
    if not hmac.compare_digest(signature, expected):
        raise InvalidToken("bad signature")

    try:
        payload = json.loads(_b64url_decode(payload_b64))
        exp = int(payload.get("exp") or 0)
        user = SessionUser(
            id=int(payload["sub"]),
            email=str(payload["email"]),
            name=str(payload["name"]),
            is_admin=bool(payload.get("is_admin")),
            exp=exp,
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise InvalidToken("bad payload") from exc

    if exp <= int(time.time()):
        raise InvalidToken("expired")
    return user


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().session_cookie_name, path="/")


def get_session_user(request: Request) -> SessionUser:
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        raise AuthenticationError("Not authenticated")
    try:
        claims = decode_session_token(token)
    except InvalidToken as exc:
        raise AuthenticationError("Invalid session") from exc
    # Accounts deleted after login lose their session; role changes apply at once.
    with session_scope() as s:
        user = s.get(User, claims.id)
        if user is None:
            raise AuthenticationError("Invalid session")
        return SessionUser(id=user.id, email=user.email, name=user.name, is_admin=bool(user.is_admin), exp=claims.exp)


def require_admin(user: SessionUser = Depends(get_session_user)) -> SessionUser:
    if not user.is_admin:
        raise AuthorizationError("Unauthorized")
    return user
