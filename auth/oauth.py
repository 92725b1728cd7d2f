"""
auth/oauth.py -- OIDC sign-in through authlib.

A provider is registered only when its client credentials are configured;
with none configured the API is reachable by API key alone. The registry is
built once at import from get_settings().

Who may sign in:
  The provider must assert email_verified. A missing claim counts as
  unverified. When ALLOWED_EMAIL_DOMAINS is set the email domain must be on
  it. Both checks happen in get_oauth_user_info(), before any session token
  exists.

authlib keeps the OAuth state value in the Starlette session between the
authorization redirect and the callback and rejects a callback whose state
does not match.

Providers:
  google -- accounts.google.com discovery document
  oidc   -- any discovery URL (Entra ID, Okta, Keycloak, Authentik, ...)

No imports from api/ or cmdb/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from authlib.integrations.starlette_client import OAuth

from core.config import get_settings

logger = logging.getLogger("fleetadvisor.auth.oauth")

# ---------------------------------------------------------------------------
# Provider registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

# Google
if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")

# Generic OIDC -- Entra ID, Okta, Keycloak, Authentik, etc.
if _cfg.oidc_client_id and _cfg.oidc_client_secret and _cfg.oidc_discovery_url:
    oauth.register(
        name="oidc",
        client_id=_cfg.oidc_client_id,
        client_secret=_cfg.oidc_client_secret,
        server_metadata_url=_cfg.oidc_discovery_url,
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Generic OIDC provider registered (display name: %s)", _cfg.oidc_display_name)


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers() -> list[dict]:
    """Return {"name", "label"} for every provider with credentials configured."""
    cfg = get_settings()
    providers: list[dict] = []
    if cfg.google_client_id and cfg.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    if cfg.oidc_client_id and cfg.oidc_client_secret and cfg.oidc_discovery_url:
        providers.append({"name": "oidc", "label": cfg.oidc_display_name})
    return providers


# ---------------------------------------------------------------------------
# Identity extraction
# ---------------------------------------------------------------------------


@dataclass
class OAuthIdentity:
    subject: str
    email: str
    name: str | None = None


def is_email_allowed(email: str, domains: list[str] | None = None) -> bool:
    """True when email's domain is on the allow-list, or the list is empty."""
    allowed = get_settings().email_domains() if domains is None else domains
    if not allowed:
        return True
    _, _, domain = email.rpartition("@")
    return domain.lower() in allowed


def get_oauth_user_info(provider: str, token: dict) -> OAuthIdentity:
    """Extract the verified identity from a Google/OIDC token response.

    Both providers return an id_token whose claims authlib exposes as
    token["userinfo"]: email, email_verified, sub and usually name.

    The email claim is only accepted when email_verified is True. Some OIDC
    providers omit email_verified entirely -- that is treated as unverified.

    Raises:
        ValueError: unknown provider, unverified or missing email, missing
            subject, or an email outside the allowed domains.
    """
    if provider not in ("google", "oidc"):
        raise ValueError(f"Unknown OAuth provider: {provider!r}")

    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(f"{provider} OAuth: {userinfo.get('email')!r} is not a verified email")

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError(f"{provider} OAuth: missing email or sub claim in userinfo")

    if not is_email_allowed(email):
        raise ValueError(f"{provider} OAuth: {email} is not in an allowed domain")

    return OAuthIdentity(subject=str(subject), email=email, name=userinfo.get("name"))
