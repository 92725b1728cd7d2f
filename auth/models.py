"""
auth/models.py -- Domain dataclass for an authenticated identity.

Pattern: Data class (pure data container, zero logic). Mirrors core/models.py
and cmdb/models.py.

Layer rule: no imports from api/, core/ or cmdb/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """The caller behind a request.

    There is no local user table: for browser sessions every field comes from
    the signed session token minted after the identity provider's callback.
    Requests authenticated with the static API key get provider "api_key".
    """

    subject: str  # provider's stable user ID, or "api-key"
    provider: str  # "google", "oidc", "api_key"
    email: str | None = None
    name: str | None = None
