"""
Authentication package for the Flask app.

This package implements Stytch B2B authentication: the discovery flow (OAuth
and email magic links), organization selection and session exchange. Tokens
live in browser cookies and are validated by Stytch, never by this app.
"""
