"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  GET  /api/v1/auth/providers            -- list enabled OIDC providers (public)
  GET  /api/v1/auth/login/{provider}     -- redirect to the provider's authorization page
  GET  /api/v1/auth/callback/{provider}  -- code exchange; sets the session JWT cookie
  POST /api/v1/auth/logout               -- clears cookie; 200
  GET  /api/v1/auth/me                   -- current identity (requires auth)

There is no local user table. The identity provider vouches for the email;
the app checks it is verified and in an allowed domain, then mints its own
short-lived session JWT.

Security:
  Login redirects are rate-limited to 10 requests/minute per IP.
  The post-login ?next target is validated as a relative path (open-redirect guard).
  Cache-Control: no-store on the callback response.
"""

from __future__ import annotations

import logging
from typing import Optional

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.limiter import limiter
from api.models import ErrorDetail, MeResponse, OAuthProvider
from auth.dependencies import get_current_user
from auth.models import User
from auth.oauth import get_enabled_providers, get_oauth_user_info
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie

logger = logging.getLogger("fleetadvisor.api.auth")

# Auth policy:
# - GET  /auth/providers, /auth/login/*, /auth/callback/*: public -- these start a session
# - POST /auth/logout: public -- clearing a cookie needs no prior auth
# - GET  /auth/me: requires auth (get_current_user)
router = APIRouter()

_DEFAULT_NEXT = "/api/v1/auth/me"


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative "//host" URLs, both of which
    would redirect off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return _DEFAULT_NEXT


def _auth_failed(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=ErrorDetail(code="oauth_failed", message=message).model_dump(),
    )


def _check_provider(provider: str) -> None:
    # Only configured providers; a spoofed name must not reach create_client().
    if provider not in {p["name"] for p in get_enabled_providers()}:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="unknown_provider", message=f"Provider {provider!r} is not enabled.").model_dump(),
        )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProvider])
async def list_providers() -> list[OAuthProvider]:
    """Return the configured identity providers. Empty when none are set."""
    return [OAuthProvider(**p) for p in get_enabled_providers()]


@limiter.limit("10/minute")
@router.get("/auth/login/{provider}")
async def login(request: Request, provider: str, next: Optional[str] = None):
    """Redirect the browser to the provider's authorization page.

    The validated ?next target is kept in the session until the callback.
    """
    _check_provider(provider)
    request.session["next"] = _safe_next(next)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/callback/{provider}", name="oauth_callback")
async def callback(request: Request, provider: str) -> RedirectResponse:
    """Handle the provider callback and issue the session JWT cookie.

    Flow:
      1. Exchange the authorization code (authlib checks the session state).
      2. Extract the verified identity -- ValueError if unverified or off-domain.
      3. Mint the session JWT, set the cookie, redirect to the saved next target.
    """
    _check_provider(provider)
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        raise _auth_failed("Sign-in with the identity provider failed.")

    try:
        identity = get_oauth_user_info(provider, token)
    except ValueError as exc:
        logger.warning("OAuth login rejected: %s", exc)
        raise _auth_failed("Your account is not allowed to sign in.")

    session_token = create_access_token(identity.subject, provider, identity.email, identity.name)
    resp = RedirectResponse(_safe_next(request.session.pop("next", None)), status_code=302)
    set_auth_cookie(resp, session_token)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("Signed in %s via %s", identity.email, provider)
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated caller."""
    return MeResponse(
        subject=current_user.subject,
        provider=current_user.provider,
        email=current_user.email,
        name=current_user.name,
    )
