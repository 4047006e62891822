"""
Flask web app for Squircle, a multi-tenant demo on Stytch B2B auth.

This app includes:
  - Stytch B2B discovery authentication (see `auth/`)
  - Server-rendered dashboard pages (see `dashboard/`)
  - Server-side sessions (filesystem) via Flask-Session

Run locally with `flask --app app:create_app run --port 5050` or `python app.py`.
"""

import logging
import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, redirect, url_for
from flask_session import Session
from stytch.core.response_base import StytchError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from auth.config import init_auth
from auth.routes import auth_bp
from dashboard.routes import dashboard_bp
from logging_setup import setup_logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    load_dotenv()

    app = Flask(__name__)

    # Respect proxy headers so url_for(..., _external=True) builds https URLs.
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[assignment]

    # ---- Security / Sessions ----
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "")
    if not app.secret_key:
        raise RuntimeError(
            "Missing FLASK_SECRET_KEY. Set it as an environment variable (or in .env) before starting."
        )

    # Server-side sessions (filesystem). Adequate for a single-instance demo.
    app.config.update(
        SESSION_TYPE="filesystem",
        SESSION_PERMANENT=False,
        SESSION_USE_SIGNER=True,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=os.environ.get("FLASK_COOKIE_SECURE", "true").lower() == "true",
    )

    session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(os.getcwd(), ".flask_session")
    os.makedirs(session_dir, exist_ok=True)
    app.config["SESSION_FILE_DIR"] = session_dir

    if config:
        app.config.update(config)
    if not app.testing:
        setup_logging()
    Session(app)

    # ---- Authentication ----
    # Loads Stytch settings from environment and registers auth routes.
    init_auth(app)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)

    @app.get("/")
    def index():
        return redirect(url_for("dashboard.home"))

    @app.errorhandler(StytchError)
    def handle_stytch_error(err: StytchError):
        """Anything Stytch rejects outside the handled paths sends the member back to login."""
        logger.warning("Stytch request failed: %s", err)
        return redirect(url_for("dashboard.login"))

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        if isinstance(err, HTTPException):
            return err
        logger.exception("Unhandled error")
        return "Internal Server Error", 500

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5050)
