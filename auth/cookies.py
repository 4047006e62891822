"""
Cookie helpers for the auth flow.

Three cookies carry all of the auth state. Their values are opaque strings
issued by Stytch (plus a JSON summary of discovered organizations); the app
never inspects the tokens themselves.
"""

from __future__ import annotations

import json
from typing import Any

from flask import Request, Response

from .config import AuthSettings

SESSION_COOKIE = "stytch_session"
INTERMEDIATE_COOKIE = "intermediate_token"
DISCOVERED_ORGS_COOKIE = "discovered_orgs"

AUTH_COOKIES = (SESSION_COOKIE, INTERMEDIATE_COOKIE, DISCOVERED_ORGS_COOKIE)


def cookie_options(settings: AuthSettings) -> dict[str, Any]:
    return {
        "path": "/",
        "httponly": True,
        "samesite": "Lax",
        "secure": settings.cookie_secure,
        "domain": settings.cookie_domain,
        "max_age": settings.session_duration_minutes * 60,
    }


def set_auth_cookie(response: Response, settings: AuthSettings, name: str, value: str) -> None:
    response.set_cookie(name, value, **cookie_options(settings))


def clear_auth_cookie(response: Response, settings: AuthSettings, name: str) -> None:
    # Path and domain must match the ones used when setting, or browsers keep the cookie.
    response.delete_cookie(name, path="/", domain=settings.cookie_domain)


def clear_all_auth_cookies(response: Response, settings: AuthSettings) -> None:
    for name in AUTH_COOKIES:
        clear_auth_cookie(response, settings, name)


def read_discovered_orgs(request: Request) -> list[dict[str, Any]]:
    """Return the discovered organizations stored by the redirect handler, or []."""

    raw = request.cookies.get(DISCOVERED_ORGS_COOKIE)
    if not raw:
        return []
    try:
        orgs = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(orgs, list):
        return []
    return [o for o in orgs if isinstance(o, dict) and o.get("id")]
