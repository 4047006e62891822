"""
Route decorators for authentication/authorization.

- `login_required`: member must hold a session Stytch accepts.
- `permission_required`: member's roles must grant an RBAC action.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar

from flask import abort, current_app, g, redirect, request, url_for

from .cookies import SESSION_COOKIE, clear_auth_cookie
from .stytch_auth import get_authenticated_member_info, is_authorized

F = TypeVar("F", bound=Callable[..., object])


def login_required(fn: F) -> F:
    """Ensure the member is logged in; otherwise redirect to login."""

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[no-untyped-def]
        info = get_authenticated_member_info(request.cookies.get(SESSION_COOKIE))
        if info is not None:
            g.member = info.member
            g.organization = info.organization
            g.member_session = info.member_session
            g.session_token = info.session_token
            return fn(*args, **kwargs)

        response = redirect(url_for("dashboard.login", next=request.url))
        if SESSION_COOKIE in request.cookies:
            clear_auth_cookie(response, current_app.config["AUTH_SETTINGS"], SESSION_COOKIE)
        return response

    return wrapper  # type: ignore[return-value]


def permission_required(resource_id: str, action: str) -> Callable[[F], F]:
    """Respond 403 unless the logged-in member may perform `action` on `resource_id`."""

    def decorator(fn: F) -> F:
        @wraps(fn)
        def wrapper(*args, **kwargs):  # type: ignore[no-untyped-def]
            if not is_authorized(resource_id, action):
                abort(403)
            return fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
