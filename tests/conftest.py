"""Shared pytest fixtures for the test suite.

The repo root holds `app.py` and the `auth/` and `dashboard/` packages; pin it
on sys.path so tests import them even when pytest runs from elsewhere.

Fixture overview
----------------
auth_env        — Stytch/Flask settings in the environment
app             — Flask app (TESTING) with a MagicMock Stytch client
stytch          — the MagicMock installed as the app's Stytch client
client          — Flask test client
logged_in       — configures `stytch` + the session cookie for a member
"""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = str(Path(__file__).resolve().parents[1])
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


_ensure_repo_root_on_syspath()

from stytch.core.response_base import StytchError, StytchErrorDetails  # noqa: E402

from app import create_app  # noqa: E402

ORG_ID = "organization-test-1111"
MEMBER_ID = "member-test-2222"


def make_stytch_error(status_code: int = 401, error_type: str = "session_not_found") -> StytchError:
    return StytchError(
        StytchErrorDetails(
            status_code=status_code,
            request_id="request-id-test",
            error_type=error_type,
            error_message="Stytch rejected the request.",
            error_url="https://stytch.com/docs/api/errors",
        )
    )


def make_member(member_id: str = MEMBER_ID, roles: tuple[str, ...] = ("stytch_member",), **kwargs):
    return SimpleNamespace(
        member_id=member_id,
        name=kwargs.get("name", "Ada Lovelace"),
        email_address=kwargs.get("email_address", "ada@example.com"),
        status=kwargs.get("status", "active"),
        roles=[SimpleNamespace(role_id=r) for r in roles],
    )


def make_organization(organization_id: str = ORG_ID, name: str = "Acme"):
    return SimpleNamespace(
        organization_id=organization_id,
        organization_name=name,
        sso_jit_provisioning="NOT_ALLOWED",
        email_invites="ALL_ALLOWED",
        email_allowed_domains=["example.com"],
        auth_methods="ALL_ALLOWED",
        allowed_auth_methods=[],
    )


def make_discovered(organization_id: str, name: str, status: str = "active_member"):
    return SimpleNamespace(
        organization=SimpleNamespace(organization_id=organization_id, organization_name=name),
        membership=SimpleNamespace(type=status),
    )


@pytest.fixture
def auth_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FLASK_SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("FLASK_SESSION_DIR", str(tmp_path / "sessions"))
    monkeypatch.setenv("FLASK_COOKIE_SECURE", "false")
    monkeypatch.setenv("STYTCH_PROJECT_ID", "project-test-00000000-0000-0000-0000-000000000000")
    monkeypatch.setenv("STYTCH_SECRET", "secret-test-abc")
    monkeypatch.setenv("STYTCH_PUBLIC_TOKEN", "public-token-test-xyz")
    monkeypatch.setenv("STYTCH_PROJECT_ENV", "test")
    monkeypatch.delenv("APP_URL", raising=False)
    monkeypatch.delenv("COOKIE_DOMAIN", raising=False)
    monkeypatch.delenv("STYTCH_SESSION_DURATION_MINUTES", raising=False)


@pytest.fixture
def app(auth_env):
    flask_app = create_app({"TESTING": True})
    flask_app.extensions["stytch"] = MagicMock(name="stytch")
    return flask_app


@pytest.fixture
def stytch(app) -> MagicMock:
    return app.extensions["stytch"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in(client, stytch):
    """
    Log a member in: Stytch accepts the session cookie.

    Returns a function so tests can pick the member's roles and which RBAC
    actions Stytch should deny.
    """

    def _login(roles: tuple[str, ...] = ("stytch_member",), denied: tuple[tuple[str, str], ...] = ()):
        member = make_member(roles=roles)
        organization = make_organization()
        session_result = SimpleNamespace(
            member=member,
            organization=organization,
            member_session=SimpleNamespace(roles=list(roles), organization_id=ORG_ID),
            session_token="session-token-abc",
        )

        def authenticate(session_token=None, authorization_check=None, **kwargs):
            if session_token != "session-token-abc":
                raise make_stytch_error()
            if authorization_check and (authorization_check["resource_id"], authorization_check["action"]) in denied:
                raise make_stytch_error(403, "unauthorized_credentials")
            return session_result

        stytch.sessions.authenticate.side_effect = authenticate
        stytch.discovery.organizations.list.return_value = SimpleNamespace(
            discovered_organizations=[make_discovered(ORG_ID, "Acme"), make_discovered("organization-test-3333", "Globex")]
        )
        client.set_cookie("stytch_session", "session-token-abc")
        return session_result

    return _login
