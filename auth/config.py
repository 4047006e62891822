"""
Authentication configuration.

All secrets are sourced from environment variables. This module validates
presence of required settings and exposes a single `init_auth(app)` entrypoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from flask import Flask

STYTCH_ENVIRONMENTS = {
    "test": "https://test.stytch.com",
    "live": "https://api.stytch.com",
}


@dataclass(frozen=True)
class AuthSettings:
    """Configuration needed for Stytch B2B auth."""

    project_id: str
    secret: str
    public_token: str
    environment: str = "test"
    app_url: str = ""
    session_duration_minutes: int = 60
    cookie_secure: bool = True
    cookie_domain: str | None = None

    @property
    def api_base_url(self) -> str:
        return STYTCH_ENVIRONMENTS[self.environment]


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


def load_auth_settings() -> AuthSettings:
    """
    Load auth settings from environment variables.

    Required:
      - STYTCH_PROJECT_ID
      - STYTCH_SECRET
      - STYTCH_PUBLIC_TOKEN

    Optional:
      - STYTCH_PROJECT_ENV (default: 'test'; 'test' or 'live')
      - APP_URL (default: '' -> redirects stay root-relative)
      - STYTCH_SESSION_DURATION_MINUTES (default: 60)
      - FLASK_COOKIE_SECURE (default: 'true')
      - COOKIE_DOMAIN
    """

    project_id = os.environ.get("STYTCH_PROJECT_ID", "").strip()
    secret = os.environ.get("STYTCH_SECRET", "").strip()
    public_token = os.environ.get("STYTCH_PUBLIC_TOKEN", "").strip()

    missing = [
        k
        for k, v in [
            ("STYTCH_PROJECT_ID", project_id),
            ("STYTCH_SECRET", secret),
            ("STYTCH_PUBLIC_TOKEN", public_token),
        ]
        if not v
    ]
    if missing:
        raise RuntimeError(
            "Missing required auth environment variables: "
            + ", ".join(missing)
            + ". Copy them from the Stytch dashboard into your environment (or .env) before starting the app."
        )

    environment = os.environ.get("STYTCH_PROJECT_ENV", "test").strip().lower()
    if environment not in STYTCH_ENVIRONMENTS:
        raise RuntimeError(f"STYTCH_PROJECT_ENV must be 'test' or 'live', got {environment!r}.")

    duration_raw = os.environ.get("STYTCH_SESSION_DURATION_MINUTES", "60").strip()
    try:
        duration = int(duration_raw)
    except ValueError:
        duration = 0
    if duration <= 0:
        raise RuntimeError(f"STYTCH_SESSION_DURATION_MINUTES must be a positive integer, got {duration_raw!r}.")

    return AuthSettings(
        project_id=project_id,
        secret=secret,
        public_token=public_token,
        environment=environment,
        app_url=os.environ.get("APP_URL", "").strip().rstrip("/"),
        session_duration_minutes=duration,
        cookie_secure=_env_flag("FLASK_COOKIE_SECURE", "true"),
        cookie_domain=os.environ.get("COOKIE_DOMAIN", "").strip() or None,
    )


def init_auth(app: Flask) -> AuthSettings:
    """
    Validate and attach auth settings to Flask `app.config`.

    Returns the parsed `AuthSettings` for convenience.
    """

    settings = load_auth_settings()
    app.config["AUTH_SETTINGS"] = settings
    return settings
