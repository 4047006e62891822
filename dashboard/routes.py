"""
Dashboard routes.

Endpoints (all under /dashboard):
  - GET       /login
  - GET       /select-team
  - GET       /                   (ideas for the current team; trailing slash too)
  - GET|POST  /add
  - GET       /team
  - POST      /team/<member_id>/role
  - POST      /team/invite
  - GET|POST  /team-settings
  - GET       /account

Any other path under /dashboard shows the login page.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from stytch.core.response_base import StytchError

from auth.cookies import INTERMEDIATE_COOKIE, read_discovered_orgs
from auth.decorators import login_required, permission_required
from auth.stytch_auth import (
    get_stytch_client,
    is_authorized,
    remember_post_login_redirect,
    summarize_discovered_orgs,
)

from .ideas import add_idea, list_ideas

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/dashboard", template_folder="templates")

ADMIN_ROLE = "stytch_admin"
IMPLICIT_MEMBER_ROLE = "stytch_member"

SETTING_CHOICES = ("ALL_ALLOWED", "RESTRICTED", "NOT_ALLOWED")
AUTH_METHODS = ("magic_link", "google_oauth", "microsoft_oauth", "sso", "password", "email_otp")

# form field -> RBAC action on stytch.organization
TEAM_SETTINGS_ACTIONS = {
    "sso_jit_provisioning": "update.settings.sso-jit-provisioning",
    "email_invites": "update.settings.email-invites",
    "email_allowed_domains": "update.settings.allowed-domains",
    "allowed_auth_methods": "update.settings.allowed-auth-methods",
}


def _is_admin_member(member: Any) -> bool:
    return any(role.role_id == ADMIN_ROLE for role in getattr(member, "roles", None) or [])


def _session_is_admin() -> bool:
    return ADMIN_ROLE in (getattr(g.member_session, "roles", None) or [])


@dashboard_bp.context_processor
def inject_sidebar():
    """Org switcher data for the sidebar, only once a member is logged in."""

    session_token = g.get("session_token")
    if not session_token:
        return {"current_member": None, "current_organization": None, "teams": []}

    try:
        result = get_stytch_client().discovery.organizations.list(session_token=session_token)
        teams = summarize_discovered_orgs(result.discovered_organizations)
    except StytchError as err:
        logger.warning("Could not list organizations for switcher: %s", err)
        teams = []

    return {
        "current_member": g.member,
        "current_organization": g.organization,
        "teams": teams,
    }


@dashboard_bp.get("/login")
def login():
    remember_post_login_redirect(request.args.get("next"))
    return render_template("dashboard/login.html")


@dashboard_bp.get("/select-team")
def select_team():
    """Show the organizations found during discovery and a create-team form."""

    if not request.cookies.get(INTERMEDIATE_COOKIE):
        return redirect(url_for("dashboard.login"))
    return render_template("dashboard/select_team.html", orgs=read_discovered_orgs(request))


@dashboard_bp.get("/")
@dashboard_bp.get("")
@login_required
def home():
    return render_template("dashboard/home.html", ideas=list_ideas(g.organization.organization_id))


@dashboard_bp.route("/add", methods=["GET", "POST"])
@login_required
def add():
    if request.method == "GET":
        return render_template("dashboard/add_idea.html")

    try:
        add_idea(
            g.organization.organization_id,
            title=request.form.get("title", ""),
            description=request.form.get("description", ""),
            author=g.member.name or g.member.email_address,
        )
    except ValueError as err:
        flash(str(err), "error")
        return render_template("dashboard/add_idea.html", form=request.form), 400

    return redirect(url_for("dashboard.home"), 303)


@dashboard_bp.get("/team")
@login_required
def team():
    result = get_stytch_client().organizations.members.search(
        organization_ids=[g.organization.organization_id],
    )
    members = [
        {
            "id": m.member_id,
            "name": m.name,
            "email": m.email_address,
            "status": m.status,
            "is_admin": _is_admin_member(m),
        }
        for m in result.members
    ]
    return render_template(
        "dashboard/team.html",
        members=members,
        is_admin=_session_is_admin(),
        can_invite=is_authorized("stytch.member", "create"),
    )


@dashboard_bp.post("/team/<member_id>/role")
@login_required
def toggle_admin_role(member_id: str):
    """
    Grant or remove the admin role for a member of the current team.

    @see https://stytch.com/docs/b2b/guides/rbac/role-assignment
    """

    if not _session_is_admin():
        abort(403)

    stytch_client = get_stytch_client()
    organization_id = g.organization.organization_id
    member = stytch_client.organizations.members.get(
        organization_id=organization_id,
        member_id=member_id,
    ).member

    # stytch_member is granted implicitly and can't be assigned.
    roles = {role.role_id for role in member.roles} - {IMPLICIT_MEMBER_ROLE}
    if ADMIN_ROLE in roles:
        roles.discard(ADMIN_ROLE)
    else:
        roles.add(ADMIN_ROLE)

    stytch_client.organizations.members.update(
        organization_id=organization_id,
        member_id=member_id,
        roles=sorted(roles),
    )
    logger.info("Member %s set roles of %s to %s", g.member.member_id, member_id, sorted(roles))
    return redirect(url_for("dashboard.team"), 303)


@dashboard_bp.post("/team/invite")
@login_required
@permission_required("stytch.member", "create")
def invite():
    """
    Invite someone to the current team by email.

    @see https://stytch.com/docs/b2b/api/send-invite-email
    """

    email_address = request.form.get("email_address", "").strip()
    if not email_address:
        flash("Enter an email address to invite.", "error")
        return redirect(url_for("dashboard.team"), 303)

    get_stytch_client().magic_links.email.invite(
        organization_id=g.organization.organization_id,
        email_address=email_address,
        invited_by_member_id=g.member.member_id,
    )
    flash(f"Invite sent to {email_address}.", "info")
    return redirect(url_for("dashboard.team"), 303)


def _team_settings_update(form: Any, allowed: dict[str, bool]) -> dict[str, Any]:
    """Build `organizations.update` kwargs from the submitted, permitted fields."""

    changes: dict[str, Any] = {}

    for field in ("sso_jit_provisioning", "email_invites"):
        value = form.get(field)
        if allowed[field] and value in SETTING_CHOICES:
            changes[field] = value

    if allowed["email_allowed_domains"] and "email_allowed_domains" in form:
        domains = [d.strip().lower() for d in form.get("email_allowed_domains", "").split(",")]
        changes["email_allowed_domains"] = [d for d in domains if d]

    if allowed["allowed_auth_methods"] and "auth_methods_submitted" in form:
        methods = [m for m in form.getlist("allowed_auth_methods") if m in AUTH_METHODS]
        changes["auth_methods"] = "RESTRICTED" if methods else "ALL_ALLOWED"
        changes["allowed_auth_methods"] = methods

    return changes


@dashboard_bp.route("/team-settings", methods=["GET", "POST"])
@login_required
def team_settings():
    """
    Organization settings; each field is editable only with the matching RBAC action.

    @see https://stytch.com/docs/b2b/api/update-organization
    """

    allowed = {
        field: is_authorized("stytch.organization", action)
        for field, action in TEAM_SETTINGS_ACTIONS.items()
    }

    if request.method == "POST":
        changes = _team_settings_update(request.form, allowed)
        if not changes:
            flash("Nothing to update.", "info")
        else:
            get_stytch_client().organizations.update(
                organization_id=g.organization.organization_id,
                **changes,
            )
            logger.info(
                "Member %s updated %s for organization %s",
                g.member.member_id,
                ", ".join(sorted(changes)),
                g.organization.organization_id,
            )
            flash("Team settings saved.", "info")
        return redirect(url_for("dashboard.team_settings"), 303)

    return render_template(
        "dashboard/team_settings.html",
        organization=g.organization,
        allowed=allowed,
        choices=SETTING_CHOICES,
        auth_methods=AUTH_METHODS,
    )


@dashboard_bp.get("/account")
@login_required
def account():
    return render_template(
        "dashboard/account.html",
        member=g.member,
        roles=getattr(g.member_session, "roles", None) or [],
    )


@dashboard_bp.get("/<path:unknown>")
def fallback(unknown: str):
    return render_template("dashboard/login.html")
