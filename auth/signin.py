"""
auth/signin.py -- Credential verification and auth-cookie issuance.

SignInManager is the component the security adapter delegates to. It owns
three jobs:

  1. Verify a username/password pair against the IdentityStore, honouring
     the account state (inactive -> not allowed, locked out -> locked out)
     and, when asked, counting failures towards a lockout.
  2. Issue / remove the authentication cookie on the outgoing response. The
     cookie holds a signed JWT whose lifetime is CookieOptions.expire_timespan.
  3. Sliding expiration: refresh_sign_in() re-issues the cookie once less than
     half of its lifetime remains, so active users are not logged out.

Timing: an unknown username still costs one bcrypt check so response time
does not reveal which usernames exist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import Response

from auth.models import User
from auth.options import CookieOptions, IdentityOptions
from auth.store import IdentityStore
from auth.tokens import create_access_token, decode_access_token, equalize_timing, verify_password

logger = logging.getLogger("pagedesk.auth")


@dataclass(frozen=True)
class SignInResult:
    succeeded: bool = False
    is_locked_out: bool = False
    is_not_allowed: bool = False


SUCCESS = SignInResult(succeeded=True)
FAILED = SignInResult()
LOCKED_OUT = SignInResult(is_locked_out=True)
NOT_ALLOWED = SignInResult(is_not_allowed=True)


class SignInManager:
    def __init__(
        self,
        store: IdentityStore,
        options: IdentityOptions,
        cookie: CookieOptions,
    ) -> None:
        self.store = store
        self.options = options
        self.cookie = cookie

    async def password_sign_in(
        self,
        response: Response,
        username: str,
        password: str,
        is_persistent: bool = False,
        lockout_on_failure: bool = False,
    ) -> SignInResult:
        """Verify credentials and, on success, write the auth cookie to response."""
        user = self.store.get_by_username(username)
        if user is None or user.hashed_password is None:
            equalize_timing(password)
            logger.info("Sign-in failed for unknown user %r", username)
            return FAILED

        if not user.is_active:
            equalize_timing(password)
            logger.info("Sign-in refused for inactive user %r", username)
            return NOT_ALLOWED

        if self.is_locked_out(user):
            equalize_timing(password)
            logger.info("Sign-in refused for locked out user %r", username)
            return LOCKED_OUT

        if not verify_password(password, user.hashed_password):
            if lockout_on_failure and user.lockout_enabled:
                if self._access_failed(user):
                    return LOCKED_OUT
            logger.info("Sign-in failed for user %r: bad password", username)
            return FAILED

        if user.access_failed_count:
            self.store.reset_access_failed(user.id)
        self.sign_in(response, user, is_persistent)
        self.store.update_last_login(user.id)
        logger.info("User %r signed in", username)
        return SUCCESS

    def sign_in(self, response: Response, user: User, is_persistent: bool = False) -> None:
        token = create_access_token(user.id, user.username, self.cookie.expire_timespan, persistent=is_persistent)
        self._write_cookie(response, token, is_persistent)

    async def sign_out(self, response: Response) -> None:
        response.delete_cookie(
            self.cookie.name,
            httponly=self.cookie.http_only,
            secure=self.cookie.secure,
            samesite=self.cookie.same_site,
        )

    def is_locked_out(self, user: User) -> bool:
        if not user.lockout_enabled or not user.lockout_end:
            return False
        try:
            end = datetime.fromisoformat(user.lockout_end)
        except ValueError:
            return False
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        return end > datetime.now(timezone.utc)

    def refresh_sign_in(self, request: Request, response: Response) -> bool:
        """Re-issue the cookie when less than half of its lifetime remains.

        Skipped when sliding expiration is off or when the route already
        wrote (or removed) the cookie itself, e.g. on sign-in or sign-out.
        Returns True if a fresh cookie was written.
        """
        if not self.cookie.sliding_expiration:
            return False
        token = request.cookies.get(self.cookie.name)
        if not token:
            return False
        marker = f"{self.cookie.name}=".encode("latin-1")
        if any(k == b"set-cookie" and v.startswith(marker) for k, v in response.raw_headers):
            return False
        payload = decode_access_token(token)
        if payload is None or "iat" not in payload:
            return False

        now = datetime.now(timezone.utc).timestamp()
        lifetime = payload["exp"] - payload["iat"]
        if payload["exp"] - now > lifetime / 2:
            return False

        user = self.store.get_by_id(payload["user_id"])
        if user is None or not user.is_active:
            return False
        self.sign_in(response, user, bool(payload.get("pst")))
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _access_failed(self, user: User) -> bool:
        """Record a failed attempt. Returns True if it started a lockout."""
        lockout = self.options.lockout
        count = self.store.access_failed(user.id)
        if count < lockout.max_failed_access_attempts:
            return False
        self.store.set_lockout_end(user.id, datetime.now(timezone.utc) + lockout.default_lockout_timespan)
        logger.warning("User %r locked out after %d failed attempts", user.username, count)
        return True

    def _write_cookie(self, response: Response, token: str, is_persistent: bool) -> None:
        # Non-persistent sign-ins get a browser-session cookie; the JWT expiry
        # still bounds the session server-side.
        max_age = int(self.cookie.expire_timespan.total_seconds()) if is_persistent else None
        response.set_cookie(
            self.cookie.name,
            value=token,
            max_age=max_age,
            httponly=self.cookie.http_only,
            secure=self.cookie.secure,
            samesite=self.cookie.same_site,
        )
