"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Two credential sources are checked in priority order:
  1. The auth cookie (CookieOptions.name) -- set by the manager login flow.
  2. Authorization: Bearer <token> header -- API clients using the JWT.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_policy(name) wraps get_current_user() and raises HTTP 403 unless the
user's claims satisfy the named policy.

Layer rule: no imports from api/, web/, or content/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.models import Claim, User
from auth.policies import build_policies
from auth.tokens import decode_access_token


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request via cookie or Bearer token.

    Returns the authenticated User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    identity = request.app.state.identity
    store = identity.store

    token: str | None = request.cookies.get(identity.cookie.name)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    if not token:
        return None

    payload = decode_access_token(token)
    if payload is None:
        return None
    user = store.get_by_id(payload["user_id"])
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated."""
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def get_user_claims(request: Request, user: User) -> list[Claim]:
    """Return the user's claims, read fresh so role edits apply immediately."""
    return request.app.state.identity.store.get_claims(user.id)


def require_policy(name: str) -> Callable[[Request], User]:
    """Build a dependency that enforces the named authorization policy.

    Use as a FastAPI dependency:
        @router.delete("/roles/{role_id}")
        async def route(user: User = Depends(require_policy(Permission.ROLES_DELETE))): ...

    Unknown policy names raise KeyError when the route module is imported.
    """
    if name not in build_policies():
        raise KeyError(f"Unknown policy: {name!r}")

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        policy = request.app.state.identity.policies[name]
        if not policy.evaluate(get_user_claims(request, user)):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"Policy '{name}' denied access."},
            )
        return user

    dependency.__name__ = f"require_policy_{name}"
    return dependency
