"""
Demo ideas, kept in the server-side session per organization.

There is no database here. Ideas survive as long as the member's Flask-Session
entry does and are never shared between browsers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flask import session

SESSION_KEY = "ideas"


def list_ideas(organization_id: str) -> list[dict[str, Any]]:
    """Ideas for `organization_id`, newest first."""

    ideas = session.get(SESSION_KEY, {}).get(organization_id, [])
    return list(reversed(ideas))


def add_idea(organization_id: str, *, title: str, description: str, author: str) -> dict[str, Any]:
    title = title.strip()
    if not title:
        raise ValueError("An idea needs a title.")

    idea = {
        "title": title,
        "description": description.strip(),
        "author": author,
        "created_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
    by_org = dict(session.get(SESSION_KEY, {}))
    by_org[organization_id] = [*by_org.get(organization_id, []), idea]
    # Reassign so Flask-Session sees the change.
    session[SESSION_KEY] = by_org
    return idea
