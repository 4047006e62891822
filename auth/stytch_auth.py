"""
Stytch helpers.

This wraps the Stytch B2B client SDK for the discovery flow: building the
client, starting OAuth discovery, exchanging intermediate tokens and
authenticating member sessions.

@see https://stytch.com/docs/b2b/guides/what-is-stytch-b2b-auth
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlencode, urlsplit

import stytch
from flask import Flask, Response, current_app, g, request, session
from stytch.core.response_base import StytchError

from .config import AuthSettings
from .cookies import (
    DISCOVERED_ORGS_COOKIE,
    INTERMEDIATE_COOKIE,
    SESSION_COOKIE,
    clear_auth_cookie,
    set_auth_cookie,
)

logger = logging.getLogger(__name__)

DISCOVERY_METHODS = ("google", "microsoft")

_SLUG_DASH = re.compile(r"[\s+~/]")
_SLUG_DROP = re.compile(r"[().`,%·'\"!?¿:@*]")


class UnsupportedDiscoveryMethod(ValueError):
    """Raised for OAuth discovery providers this app doesn't offer."""


@dataclass(frozen=True)
class MemberInfo:
    """Result of authenticating a session cookie."""

    member: Any
    organization: Any
    member_session: Any
    session_token: str


def _settings(app: Flask | None = None) -> AuthSettings:
    app = app or current_app  # type: ignore[assignment]
    settings = app.config.get("AUTH_SETTINGS")
    if not isinstance(settings, AuthSettings):
        raise RuntimeError("Auth settings not initialized. Call auth.config.init_auth(app) during app startup.")
    return settings


def build_stytch_client(settings: AuthSettings) -> stytch.B2BClient:
    """Create a Stytch B2B API client."""

    return stytch.B2BClient(
        project_id=settings.project_id,
        secret=settings.secret,
        environment=settings.environment,
    )


def get_stytch_client(app: Flask | None = None) -> stytch.B2BClient:
    """Return the app's Stytch client, creating it on first use."""

    app = app or current_app  # type: ignore[assignment]
    client = app.extensions.get("stytch")
    if client is None:
        client = build_stytch_client(_settings(app))
        app.extensions["stytch"] = client
    return client


def app_url(path: str) -> str:
    """Absolute URL under APP_URL when configured, else the bare path."""

    base = _settings().app_url
    return f"{base}{path}" if base else path


POST_LOGIN_REDIRECT_KEY = "post_login_redirect"


def safe_next_path(next_url: str | None) -> str | None:
    """
    Path (plus query) of `next_url` when it points back into this app, else None.

    Absolute URLs are accepted only for the current host.
    """

    if not next_url:
        return None
    parts = urlsplit(next_url)
    if parts.scheme not in ("", "http", "https"):
        return None
    if parts.netloc and parts.netloc != request.host:
        return None
    if not parts.path.startswith("/") or parts.path.startswith("//") or "\\" in parts.path:
        return None
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


def remember_post_login_redirect(next_url: str | None) -> None:
    """Keep where the member was headed so the auth flow can return there."""

    path = safe_next_path(next_url)
    if path:
        session[POST_LOGIN_REDIRECT_KEY] = path


def post_login_url() -> str:
    """Where to send a member once a full session exists (default: the dashboard)."""

    return app_url(session.pop(POST_LOGIN_REDIRECT_KEY, None) or "/dashboard")


def discovery_start_url(method: str, settings: AuthSettings | None = None) -> str:
    """
    URL of Stytch's hosted OAuth discovery start endpoint for `method`.

    @see https://stytch.com/docs/b2b/guides/oauth/discovery
    """

    if method not in DISCOVERY_METHODS:
        raise UnsupportedDiscoveryMethod(f"method {method} is unsupported")
    s = settings or _settings()
    query = urlencode({"public_token": s.public_token})
    return f"{s.api_base_url}/v1/b2b/public/oauth/{method}/discovery/start?{query}"


def summarize_discovered_orgs(discovered: Iterable[Any]) -> list[dict[str, Any]]:
    """Reduce Stytch `DiscoveredOrganization`s to what the select-team page needs."""

    orgs = []
    for item in discovered or []:
        organization = getattr(item, "organization", None)
        membership = getattr(item, "membership", None)
        orgs.append(
            {
                "id": getattr(organization, "organization_id", None),
                "name": getattr(organization, "organization_name", None),
                "status": getattr(membership, "type", None),
            }
        )
    return orgs


def organization_slug(name: str) -> str:
    """Derive an organization slug from a display name."""

    slug = _SLUG_DASH.sub("-", name.strip().lower())
    return _SLUG_DROP.sub("", slug)


def exchange_intermediate_token(
    response: Response,
    *,
    intermediate_session_token: str,
    organization_id: str,
) -> Any:
    """
    Exchange an intermediate session for a full session in `organization_id`.

    Sets the session cookie on `response` and drops the discovery cookies,
    which are only meaningful before an organization is chosen.

    @see https://stytch.com/docs/b2b/api/exchange-intermediate-session
    """

    s = _settings()
    result = get_stytch_client().discovery.intermediate_sessions.exchange(
        intermediate_session_token=intermediate_session_token,
        organization_id=organization_id,
        session_duration_minutes=s.session_duration_minutes,
    )

    set_auth_cookie(response, s, SESSION_COOKIE, result.session_token)
    clear_auth_cookie(response, s, INTERMEDIATE_COOKIE)
    clear_auth_cookie(response, s, DISCOVERED_ORGS_COOKIE)

    logger.info("Member %s logged into organization %s", result.member.member_id, organization_id)
    return result


def get_authenticated_member_info(session_token: str | None) -> MemberInfo | None:
    """
    Validate a session token with Stytch.

    Returns None when there is no token or Stytch rejects it.

    @see https://stytch.com/docs/b2b/api/authenticate-session
    """

    if not session_token:
        return None
    try:
        result = get_stytch_client().sessions.authenticate(session_token=session_token)
    except StytchError as err:
        logger.warning("Session authentication failed: %s", err)
        return None
    return MemberInfo(
        member=result.member,
        organization=result.organization,
        member_session=result.member_session,
        session_token=result.session_token or session_token,
    )


def is_authorized(resource_id: str, action: str) -> bool:
    """
    RBAC check for the member authenticated by `login_required`.

    Stytch rejects the session authentication when the member's roles don't
    grant `action` on `resource_id`.

    @see https://stytch.com/docs/b2b/guides/rbac/overview
    """

    cache = g.setdefault("authorization_cache", {})
    key = (resource_id, action)
    if key in cache:
        return cache[key]

    session_token = g.get("session_token")
    organization = g.get("organization")
    if not session_token or organization is None:
        return False

    try:
        get_stytch_client().sessions.authenticate(
            session_token=session_token,
            authorization_check={
                "organization_id": organization.organization_id,
                "resource_id": resource_id,
                "action": action,
            },
        )
        allowed = True
    except StytchError as err:
        logger.debug("Authorization check %s/%s denied: %s", resource_id, action, err)
        allowed = False

    cache[key] = allowed
    return allowed
