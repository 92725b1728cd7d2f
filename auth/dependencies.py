"""
auth/dependencies.py -- Request authentication for route dependencies.

Credentials are checked in this order (a cookie, when present, shadows the
Bearer header):
  1. "access_token" cookie   -- minted by the OIDC callback for browsers
  2. Authorization: Bearer   -- the same JWT, sent by API clients
  3. X-API-Key               -- the static key, for scripts and scheduled uploads

No imports from api/ or cmdb/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import COOKIE_NAME, decode_access_token, verify_api_key


def try_get_current_user(request: Request) -> User | None:
    """Return the caller, or None when no credential checks out. Never raises."""
    # 1. Cookie (browser session)
    token: str | None = request.cookies.get(COOKIE_NAME)

    # 2. Authorization: Bearer header (API clients)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if token:
        payload = decode_access_token(token)
        if payload:
            return User(
                subject=payload["sub"],
                provider=payload["provider"],
                email=payload.get("email"),
                name=payload.get("name"),
            )

    # 3. X-API-Key header (scripts)
    if verify_api_key(request.headers.get("X-API-Key", "")):
        return User(subject="api-key", provider="api_key", name="API key")

    return None


def get_current_user(request: Request) -> User:
    """Dependency for protected routes: the caller, or a 401 ErrorResponse."""
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
