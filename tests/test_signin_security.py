"""Unit tests for auth/signin.py, auth/security.py and auth/seed.py.

Security methods are coroutines; each test drives them with asyncio.run()
against a throwaway in-memory store and a bare Starlette Response that
stands in for the outgoing HTTP response.

Covers:
- correct credentials -> True and an HttpOnly auth cookie on the response
- wrong password / unknown user / inactive user -> False, no cookie
- the seed runs exactly once per adapter and only on an empty store
- a seed the identity rules reject writes nothing and sign-in still answers
- lockout after the configured number of failures (sign-in manager only)
- sign_out clears the cookie
- sliding refresh only past half the cookie lifetime
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from starlette.requests import Request
from starlette.responses import Response

from auth.models import User
from auth.options import CookieOptions, IdentityOptions, set_default_cookie_options, set_default_options
from auth.security import IdentitySecurity, Security
from auth.seed import DefaultIdentitySeed, IdentitySeed
from auth.signin import SignInManager
from auth.store import IdentityStore
from auth.tokens import create_access_token
from core.config import get_settings


class CountingSeed(IdentitySeed):
    calls = 0

    async def create(self) -> None:
        type(self).calls += 1


@pytest.fixture
def manager():
    options = IdentityOptions()
    set_default_options(options)
    cookie = CookieOptions()
    set_default_cookie_options(cookie)
    store = IdentityStore("sqlite:///:memory:", options)
    store.create_user(User(username="alice", email="alice@example.com"), password="secret")
    yield SignInManager(store, options, cookie)
    store.close()


def _set_cookies(response: Response) -> list[str]:
    return [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]


def _request_with_cookie(name: str, value: str) -> Request:
    return Request({"type": "http", "headers": [(b"cookie", f"{name}={value}".encode("latin-1"))]})


# ---------------------------------------------------------------------------
# Security adapter
# ---------------------------------------------------------------------------


def test_sign_in_success_sets_cookie(manager):
    security = IdentitySecurity(manager)
    response = Response()
    assert asyncio.run(security.sign_in(response, "alice", "secret")) is True
    cookies = _set_cookies(response)
    assert len(cookies) == 1
    assert cookies[0].startswith("access_token=")
    assert "httponly" in cookies[0].lower()
    assert manager.store.get_by_username("alice").last_login is not None


@pytest.mark.parametrize(
    "username,password",
    [("alice", "wrong"), ("nobody", "secret"), ("alice", "")],
)
def test_sign_in_failure_returns_false(manager, username, password):
    security = IdentitySecurity(manager)
    response = Response()
    assert asyncio.run(security.sign_in(response, username, password)) is False
    assert _set_cookies(response) == []


def test_inactive_user_not_allowed(manager):
    uid = manager.store.get_by_username("alice").id
    manager.store.update_user(uid, is_active=False)
    result = asyncio.run(manager.password_sign_in(Response(), "alice", "secret"))
    assert result.is_not_allowed
    assert not result.succeeded


def test_adapter_does_not_count_failures(manager):
    security = IdentitySecurity(manager)
    for _ in range(15):
        asyncio.run(security.sign_in(Response(), "alice", "wrong"))
    assert manager.store.get_by_username("alice").access_failed_count == 0
    assert asyncio.run(security.sign_in(Response(), "alice", "secret")) is True


def test_sign_out_deletes_cookie(manager):
    security = IdentitySecurity(manager)
    response = Response()
    asyncio.run(security.sign_out(response))
    cookies = _set_cookies(response)
    assert len(cookies) == 1
    assert cookies[0].startswith("access_token=")
    assert "max-age=0" in cookies[0].lower()


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


def test_seed_runs_once(manager):
    CountingSeed.calls = 0
    security = IdentitySecurity(manager, CountingSeed(manager.store))
    asyncio.run(security.sign_in(Response(), "alice", "wrong"))
    asyncio.run(security.sign_in(Response(), "alice", "secret"))
    asyncio.run(security.sign_in(Response(), "alice", "secret"))
    assert CountingSeed.calls == 1


def test_no_seed_no_call(manager):
    CountingSeed.calls = 0
    security = IdentitySecurity(manager)
    asyncio.run(security.sign_in(Response(), "alice", "secret"))
    assert CountingSeed.calls == 0


def test_default_seed_skips_populated_store(manager):
    asyncio.run(DefaultIdentitySeed(manager.store).create())
    assert manager.store.get_by_username("admin") is None
    assert manager.store.get_role_by_name("SysAdmin") is None


def test_default_seed_creates_sysadmin():
    options = IdentityOptions()
    set_default_options(options)
    store = IdentityStore("sqlite:///:memory:", options)
    try:
        asyncio.run(DefaultIdentitySeed(store).create())
        admin = store.get_by_username("admin")
        assert admin.email == "admin@example.com"
        assert store.get_user_roles(admin.id) == ["SysAdmin"]
        assert len(store.get_claims(admin.id)) == 11
    finally:
        store.close()


def test_default_seed_rejected_by_framework_password_rules():
    # Framework password defaults reject "password" (no digit).
    options = IdentityOptions()
    store = IdentityStore("sqlite:///:memory:", options)
    try:
        security = IdentitySecurity(SignInManager(store, options, CookieOptions()), DefaultIdentitySeed(store))
        assert asyncio.run(security.sign_in(Response(), "admin", "password")) is False
        assert asyncio.run(security.sign_in(Response(), "admin", "password")) is False
        assert store.has_users() is False
        assert store.get_role_by_name("SysAdmin") is None
    finally:
        store.close()


def test_default_seed_rejected_username_leaves_no_role():
    options = IdentityOptions()
    set_default_options(options)
    options.user.allowed_username_characters = "0123456789"
    store = IdentityStore("sqlite:///:memory:", options)
    try:
        asyncio.run(DefaultIdentitySeed(store).create())
        assert store.has_users() is False
        assert store.list_roles() == []
    finally:
        store.close()


def test_seed_and_security_require_implementations():
    class IncompleteSeed(IdentitySeed):
        pass

    class SignInOnly(Security):
        async def sign_in(self, context, username, password):
            return True

    with pytest.raises(TypeError):
        IncompleteSeed(None)
    with pytest.raises(TypeError):
        SignInOnly()


# ---------------------------------------------------------------------------
# Lockout
# ---------------------------------------------------------------------------


def test_lockout_after_max_failures(manager):
    attempts = manager.options.lockout.max_failed_access_attempts
    results = [
        asyncio.run(manager.password_sign_in(Response(), "alice", "wrong", lockout_on_failure=True))
        for _ in range(attempts)
    ]
    assert not any(r.is_locked_out for r in results[:-1])
    assert results[-1].is_locked_out

    # Correct password is refused while the lockout lasts.
    result = asyncio.run(manager.password_sign_in(Response(), "alice", "secret"))
    assert result.is_locked_out


def test_expired_lockout_allows_sign_in(manager):
    uid = manager.store.get_by_username("alice").id
    manager.store.set_lockout_end(uid, datetime.now(timezone.utc) - timedelta(minutes=1))
    result = asyncio.run(manager.password_sign_in(Response(), "alice", "secret"))
    assert result.succeeded


# ---------------------------------------------------------------------------
# Sliding expiration
# ---------------------------------------------------------------------------


def test_refresh_skipped_for_fresh_cookie(manager):
    user = manager.store.get_by_username("alice")
    token = create_access_token(user.id, user.username, manager.cookie.expire_timespan)
    response = Response()
    assert manager.refresh_sign_in(_request_with_cookie("access_token", token), response) is False
    assert _set_cookies(response) == []


def test_refresh_reissues_aging_cookie(manager):
    user = manager.store.get_by_username("alice")
    now = datetime.now(timezone.utc)
    # 20 of 30 minutes already elapsed.
    token = jwt.encode(
        {
            "sub": user.username,
            "user_id": user.id,
            "pst": False,
            "iat": now - timedelta(minutes=20),
            "exp": now + timedelta(minutes=10),
        },
        get_settings().secret_key,
        algorithm="HS256",
    )
    response = Response()
    assert manager.refresh_sign_in(_request_with_cookie("access_token", token), response) is True
    cookies = _set_cookies(response)
    assert len(cookies) == 1
    assert cookies[0].startswith("access_token=")


def test_refresh_skipped_when_response_sets_cookie(manager):
    user = manager.store.get_by_username("alice")
    token = create_access_token(user.id, user.username, timedelta(seconds=1))
    response = Response()
    asyncio.run(manager.sign_out(response))
    assert manager.refresh_sign_in(_request_with_cookie("access_token", token), response) is False


def test_refresh_disabled_without_sliding_expiration(manager):
    manager.cookie.sliding_expiration = False
    assert manager.refresh_sign_in(_request_with_cookie("access_token", "x"), Response()) is False
