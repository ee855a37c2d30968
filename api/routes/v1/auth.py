"""
api/routes/v1/auth.py -- Session endpoints for API clients.

Routes:
  POST /api/v1/auth/login   -- password login; sets the auth cookie, returns the JWT
  POST /api/v1/auth/logout  -- clears the cookie; 200
  GET  /api/v1/auth/me      -- current user, roles and claims (requires auth)

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  Sign-in goes through the security adapter, never store lookups inlined
  here -- the sign-in manager owns timing equalization and account state.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import ClaimModel, LoginRequest, LoginResponse, MeResponse
from auth.dependencies import get_current_user, get_user_claims
from auth.models import User
from core.config import get_settings

router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, response: Response, body: LoginRequest):
    """Authenticate with username and password.

    The sign-in manager writes the auth cookie onto the injected response,
    which FastAPI merges into the returned JSON. The same JWT is returned in
    the body for clients that prefer the Authorization header.

    Returns the same generic error for wrong username and wrong password so
    the response does not leak which usernames exist.
    """
    identity = request.app.state.identity
    if not await identity.security.sign_in(response, body.username, body.password):
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        access_token=_cookie_value(response, identity.cookie.name),
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=int(identity.cookie.expire_timespan.total_seconds()),
        username=body.username,
    )


@router.post("/auth/logout")
async def logout(request: Request) -> JSONResponse:
    """Clear the auth cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    await request.app.state.identity.security.sign_out(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    store = request.app.state.identity.store
    return MeResponse(
        user_id=current_user.id,
        username=current_user.username,
        email=current_user.email,
        roles=store.get_user_roles(current_user.id),
        claims=[ClaimModel.from_claim(c) for c in get_user_claims(request, current_user)],
    )


def _cookie_value(response: Response, name: str) -> str:
    """Return the value of the cookie the response is setting, or ""."""
    prefix = f"{name}="
    for key, value in response.raw_headers:
        if key != b"set-cookie":
            continue
        header = value.decode("latin-1")
        if header.startswith(prefix):
            return header[len(prefix) :].split(";", 1)[0]
    return ""
