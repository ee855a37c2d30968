"""
web/csrf.py -- Anti-forgery tokens for manager form posts.

Synchronizer-token pattern: one random token per browser session, kept in
the signed Starlette session cookie (SessionMiddleware) and echoed back by
every manager form as a hidden csrf_token field. A POST is accepted only when
the two match.

templates expose get_csrf_token as a Jinja2 global:
    <input type="hidden" name="csrf_token" value="{{ csrf_token(request) }}">
"""

import hmac
import secrets
from typing import Optional

from fastapi import HTTPException, Request

_SESSION_KEY = "csrf_token"


def get_csrf_token(request: Request) -> str:
    """Return this session's token, creating it on first use."""
    token = request.session.get(_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        request.session[_SESSION_KEY] = token
    return token


def validate_csrf(request: Request, submitted: Optional[str]) -> None:
    """Raise HTTP 400 unless submitted matches the session token."""
    expected = request.session.get(_SESSION_KEY)
    if not expected or not submitted or not hmac.compare_digest(expected, submitted):
        raise HTTPException(
            status_code=400,
            detail={"code": "csrf_failed", "message": "Invalid or missing anti-forgery token."},
        )
