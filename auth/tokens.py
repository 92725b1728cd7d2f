"""
auth/tokens.py -- Session JWTs, the static API key, and the session cookie.

Session JWT: HS256 via python-jose, signed with SECRET_KEY. Claims are sub
(the provider's subject), provider, email, name and exp. Anything that
fails to verify decodes to None.

API key: Settings.api_key, compared with hmac.compare_digest. Unset means
no request can authenticate by key.

No imports from api/ or cmdb/.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("fleetadvisor.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_SECRET_KEY = _settings.secret_key
_ALGORITHM = "HS256"

COOKIE_NAME = "access_token"

# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    subject: str,
    provider: str,
    email: str | None = None,
    name: str | None = None,
    expire_seconds: int = 0,
) -> str:
    """Encode a signed session JWT for an identity the provider has verified.

    expire_seconds of 0 (default) uses Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": subject,
        "provider": provider,
        "email": email,
        "name": name,
        "exp": expire,
    }
    return jwt.encode(payload, _SECRET_KEY, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _SECRET_KEY, algorithms=[_ALGORITHM])
    except JWTError as exc:
        logger.debug("Session token rejected: %s", exc)
        return None
    if not payload.get("sub") or not payload.get("provider"):
        return None
    return payload


# ---------------------------------------------------------------------------
# API key
# ---------------------------------------------------------------------------


def verify_api_key(raw_key: str) -> bool:
    """Constant-time comparison against the configured API key."""
    expected = get_settings().api_key
    if not expected or not raw_key:
        return False
    return hmac.compare_digest(raw_key.encode(), expected.encode())


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Set the session cookie. Lifetime matches the JWT's; Secure follows SECURE_COOKIES.

    httponly keeps it away from page scripts; samesite=lax keeps it off
    cross-site POSTs.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME)
