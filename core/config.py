"""
core/config.py -- Application settings via pydantic-settings.

Every environment variable FleetAdvisor reads is a field on Settings; other
modules call get_settings() instead of touching os.environ.

  get_settings() is wrapped in lru_cache, so Settings is built once per
  process. Tests that change the environment call get_settings.cache_clear().

  Field names map to env vars case-insensitively (database_url ->
  DATABASE_URL) and a .env file in the working directory is read too.

  The after-validator settles SECRET_KEY: generated with a warning when
  DEBUG=true, mandatory otherwise.

core/ imports nothing from api/, auth/ or cmdb/.
"""

import logging
import secrets
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.os_policy import DEFAULT_POLICY, OsFamilyPolicy, OsPolicy

logger = logging.getLogger("fleetadvisor.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'fleetadvisor.db'}"


def now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Settings(BaseSettings):
    """FleetAdvisor configuration. Every field has a working default except
    SECRET_KEY outside debug mode.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key replaces or rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth (identity is delegated to an external OIDC provider)
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 8 * 3600

    google_client_id: str = ""
    google_client_secret: str = ""

    # Generic OIDC (Okta, Azure AD / Entra ID, Keycloak, Authentik, etc.)
    oidc_client_id: str = ""
    oidc_client_secret: str = ""
    oidc_discovery_url: str = ""
    oidc_display_name: str = "SSO"

    # Comma-separated list, e.g. "example.edu,example.org". Empty allows any
    # verified email the provider returns.
    allowed_email_domains: str = ""

    # Static key for scripts and scheduled uploads. Empty disables key auth.
    api_key: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    upload_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Lifecycle policy
    # ------------------------------------------------------------------

    # "static" uses the versions below; "endoflife" refreshes them from
    # endoflife.date at API startup and falls back to these on failure.
    os_policy_source: str = "static"
    macos_min_supported: str = DEFAULT_POLICY.families["macOS"].min_supported
    macos_min_current: str = DEFAULT_POLICY.families["macOS"].min_current
    windows_min_supported: str = DEFAULT_POLICY.families["Windows"].min_supported
    windows_min_current: str = DEFAULT_POLICY.families["Windows"].min_current

    # Flat per-device cost used by the replacement budget projection.
    replacement_unit_cost: int = 1500

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key in debug mode, require one otherwise.

        Keys shorter than 32 characters are rejected in both modes. A
        generated key changes on every restart, logging everyone out.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; generated a temporary key (DEBUG=true). Sessions end on restart.")
            else:
                raise ValueError(
                    "SECRET_KEY must be set (environment or .env). Set DEBUG=true to run with a generated key."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    def email_domains(self) -> list[str]:
        """Return the configured email domain allow-list, lowercased."""
        return [d.strip().lower() for d in self.allowed_email_domains.split(",") if d.strip()]

    def os_policy(self) -> OsPolicy:
        """Build the static OS currency policy from the configured versions."""
        return OsPolicy(
            families={
                "macOS": OsFamilyPolicy(
                    min_supported=self.macos_min_supported,
                    min_current=self.macos_min_current,
                ),
                "Windows": OsFamilyPolicy(
                    min_supported=self.windows_min_supported,
                    min_current=self.windows_min_current,
                ),
            }
        )


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings, built on first call."""
    return Settings()
