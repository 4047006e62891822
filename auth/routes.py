"""
Auth routes (Stytch B2B discovery flow).

Endpoints:
  - GET  /auth/discovery/<method>
  - POST /auth/discovery/email
  - GET  /auth/redirect
  - GET  /auth/select-team
  - POST /auth/switch-team
  - POST /auth/register
  - GET  /auth/logout

Implementation notes:
  - Discovery lets each member pick the organization they log into after
    proving who they are (OAuth or email magic link).
  - Tokens are kept in cookies exactly as Stytch issued them.
  - Provider errors not handled here fall through to the app's StytchError
    handler, which sends the browser back to the login page.
"""

from __future__ import annotations

import json
import logging

from flask import Blueprint, current_app, jsonify, redirect, request
from stytch.core.response_base import StytchError

from .config import AuthSettings
from .cookies import (
    DISCOVERED_ORGS_COOKIE,
    INTERMEDIATE_COOKIE,
    SESSION_COOKIE,
    clear_all_auth_cookies,
    clear_auth_cookie,
    set_auth_cookie,
)
from .stytch_auth import (
    UnsupportedDiscoveryMethod,
    app_url,
    discovery_start_url,
    exchange_intermediate_token,
    get_authenticated_member_info,
    get_stytch_client,
    organization_slug,
    post_login_url,
    summarize_discovered_orgs,
)

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _settings() -> AuthSettings:
    settings = current_app.config.get("AUTH_SETTINGS")
    if not isinstance(settings, AuthSettings):
        raise RuntimeError("Auth settings not initialized. Call auth.config.init_auth(app) at startup.")
    return settings


@auth_bp.get("/discovery/<method>")
def discovery_start(method: str):
    """
    Send the member to Stytch's hosted OAuth discovery (Google or Microsoft).

    @see https://stytch.com/docs/b2b/guides/oauth/discovery
    """

    try:
        url = discovery_start_url(method)
    except UnsupportedDiscoveryMethod as err:
        return str(err), 400
    return redirect(url)


@auth_bp.post("/discovery/email")
def discovery_email():
    """
    Email a discovery magic link, so members can log in without a password.

    @see https://stytch.com/docs/b2b/guides/magic-links/send-discover-eml
    """

    payload = request.get_json(silent=True) if request.is_json else request.form.to_dict()
    if not isinstance(payload, dict):
        payload = {}
    email_address = payload.get("email_address")
    if not isinstance(email_address, str) or not email_address.strip():
        return jsonify({"error": "email_address is required"}), 400
    email_address = email_address.strip()

    try:
        get_stytch_client().magic_links.email.discovery.send(email_address=email_address)
    except StytchError as err:
        logger.warning("Discovery magic link send failed: %s", err)
        return jsonify({"error": "We couldn't send a login link to that address."}), 400

    return jsonify({"message": "Please check your email"}), 200


@auth_bp.get("/redirect")
def redirect_callback():
    """
    Handle the redirect back from Stytch after OAuth or a magic link click.

    The token type tag decides which authenticate call to make. Discovery
    tokens produce an intermediate session plus the list of organizations the
    member may enter; an organization-bound magic link (including invites)
    produces a full session straight away.

    @see https://stytch.com/docs/b2b/guides/multi-tenancy
    """

    stytch_client = get_stytch_client()
    s = _settings()

    token_type = request.args.get("stytch_token_type")
    token = request.args.get("token", "")

    if token_type == "discovery_oauth":
        result = stytch_client.oauth.discovery.authenticate(discovery_oauth_token=token)
    elif token_type == "discovery":
        result = stytch_client.magic_links.discovery.authenticate(discovery_magic_links_token=token)
    elif token_type == "multi_tenant_magic_links":
        result = stytch_client.magic_links.authenticate(
            magic_links_token=token,
            session_duration_minutes=s.session_duration_minutes,
        )
        response = redirect(post_login_url(), 307)
        set_auth_cookie(response, s, SESSION_COOKIE, result.session_token)
        logger.info("Member %s logged in via magic link", result.member.member_id)
        return response
    else:
        return f"unknown token type {token_type}", 500

    discovered_orgs = summarize_discovered_orgs(result.discovered_organizations)

    # Let the member choose which organization to enter (or create a new one).
    response = redirect(app_url("/dashboard/select-team"), 307)
    set_auth_cookie(response, s, INTERMEDIATE_COOKIE, result.intermediate_session_token)
    set_auth_cookie(response, s, DISCOVERED_ORGS_COOKIE, json.dumps(discovered_orgs))
    return response


@auth_bp.get("/select-team")
def select_team():
    """Create a full session in the organization the member picked."""

    intermediate_token = request.cookies.get(INTERMEDIATE_COOKIE)
    organization_id = request.args.get("org_id")
    if not intermediate_token or not organization_id:
        return redirect(app_url("/dashboard/login"))

    response = redirect(post_login_url(), 303)
    exchange_intermediate_token(
        response,
        intermediate_session_token=intermediate_token,
        organization_id=organization_id,
    )
    return response


@auth_bp.post("/switch-team")
def switch_team():
    """
    Move the member's session to another organization without logging in again.

    @see https://stytch.com/docs/b2b/api/exchange-session
    """

    organization_id = request.form.get("organization_id", "")
    if not organization_id or organization_id == "new":
        return redirect(app_url("/auth/logout"))

    s = _settings()
    try:
        result = get_stytch_client().sessions.exchange(
            organization_id=organization_id,
            session_token=request.cookies.get(SESSION_COOKIE),
            session_duration_minutes=s.session_duration_minutes,
        )
    except StytchError as err:
        # e.g. the target organization requires an auth method this session lacks
        logger.warning("Session exchange into %s failed: %s", organization_id, err)
        return redirect(app_url("/auth/logout"))

    if result.status_code != 200:
        return redirect(app_url("/auth/logout"))

    response = redirect(app_url("/dashboard"), 303)
    set_auth_cookie(response, s, SESSION_COOKIE, result.session_token)
    return response


@auth_bp.post("/register")
def register():
    """
    Create a new organization from the discovery flow.

    Creating the organization also exchanges the intermediate token, so the
    member ends up with a session in the new organization.

    @see https://stytch.com/docs/b2b/api/create-organization-via-discovery
    """

    intermediate_token = request.cookies.get(INTERMEDIATE_COOKIE)
    organization_name = (request.form.get("organization") or "").strip()
    if not intermediate_token or not organization_name:
        return redirect(app_url("/dashboard/select-team"))

    s = _settings()
    result = get_stytch_client().discovery.organizations.create(
        intermediate_session_token=intermediate_token,
        organization_name=organization_name,
        organization_slug=organization_slug(organization_name),
        session_duration_minutes=s.session_duration_minutes,
    )

    organization = result.organization
    organization_id = getattr(organization, "organization_id", None)
    if result.status_code != 200 or not isinstance(organization_id, str):
        raise RuntimeError("Unable to create organization")

    logger.info("Member %s created organization %s", result.member.member_id, organization_id)

    response = redirect(post_login_url(), 303)
    clear_auth_cookie(response, s, INTERMEDIATE_COOKIE)
    clear_auth_cookie(response, s, DISCOVERED_ORGS_COOKIE)
    set_auth_cookie(response, s, SESSION_COOKIE, result.session_token)
    return response


@auth_bp.get("/logout")
def logout():
    """
    Revoke all sessions for the current member and clear cookies.

    @see https://stytch.com/docs/b2b/api/revoke-session
    """

    info = get_authenticated_member_info(request.cookies.get(SESSION_COOKIE))
    if info is not None:
        try:
            get_stytch_client().sessions.revoke(member_id=info.member.member_id)
            logger.info("Member %s logged out", info.member.member_id)
        except StytchError as err:
            # Cookies are cleared regardless; the Stytch session expires on its own.
            logger.warning("Revoking sessions for %s failed: %s", info.member.member_id, err)

    response = redirect(app_url("/dashboard/login"))
    clear_all_auth_cookies(response, _settings())
    return response
