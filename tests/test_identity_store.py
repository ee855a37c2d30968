"""Unit tests for auth/store.py -- IdentityStore users, roles and claims.

Covers:
- create_user validates password and username against the options
- duplicate usernames and (when required) emails are rejected
- role CRUD with claim replacement and cascading deletes
- get_claims() is the distinct union over every role the user holds
- lockout bookkeeping counters
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import Claim, Role, User
from auth.options import IdentityOptions, set_default_options
from auth.policies import Permission, permission_claim
from auth.store import IdentityStore
from auth.tokens import verify_password
from auth.validators import IdentityError


@pytest.fixture
def store():
    options = IdentityOptions()
    set_default_options(options)
    s = IdentityStore("sqlite:///:memory:", options)
    yield s
    s.close()


@pytest.fixture
def strict_store():
    s = IdentityStore("sqlite:///:memory:", IdentityOptions())
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def test_create_user_hashes_password(store):
    uid = store.create_user(User(username="alice", email="alice@example.com"), password="secret")
    user = store.get_by_id(uid)
    assert user.username == "alice"
    assert user.hashed_password != "secret"
    assert verify_password("secret", user.hashed_password)
    assert user.created_at
    assert store.has_users()


def test_short_password_rejected(store):
    with pytest.raises(IdentityError) as exc_info:
        store.create_user(User(username="bob", email="bob@example.com"), password="12345")
    assert any("at least 6" in e for e in exc_info.value.errors)
    assert not store.has_users()


def test_default_options_accept_six_lowercase_letters(store):
    store.create_user(User(username="carol", email="carol@example.com"), password="abcdef")


def test_strict_options_report_every_rule(strict_store):
    with pytest.raises(IdentityError) as exc_info:
        strict_store.create_user(User(username="dave"), password="abcdef")
    assert len(exc_info.value.errors) == 3  # digit, uppercase, non-alphanumeric


def test_username_characters_enforced(store):
    with pytest.raises(IdentityError):
        store.create_user(User(username="bad name", email="x@example.com"), password="secret")


def test_duplicate_username_rejected(store):
    store.create_user(User(username="erin", email="erin@example.com"), password="secret")
    with pytest.raises(IdentityError, match="already taken"):
        store.create_user(User(username="erin", email="other@example.com"), password="secret")


def test_unique_email_is_case_insensitive(store):
    store.create_user(User(username="frank", email="Frank@Example.com"), password="secret")
    with pytest.raises(IdentityError, match="Email"):
        store.create_user(User(username="frank2", email="frank@example.com"), password="secret")


def test_email_required_when_unique(store):
    with pytest.raises(IdentityError, match="Email is required"):
        store.create_user(User(username="gina"), password="secret")


def test_email_optional_with_framework_defaults(strict_store):
    strict_store.create_user(User(username="gina"), password="Secret-1")


def test_update_user_fields(store):
    uid = store.create_user(User(username="hank", email="hank@example.com"), password="secret")
    assert store.update_user(uid, email="hank@example.org", is_active=False)
    user = store.get_by_id(uid)
    assert user.email == "hank@example.org"
    assert user.is_active is False


def test_update_user_rejects_unknown_field(store):
    uid = store.create_user(User(username="ivy", email="ivy@example.com"), password="secret")
    with pytest.raises(ValueError):
        store.update_user(uid, hashed_password="x")


def test_update_missing_user_returns_false(store):
    assert store.update_user(999, is_active=False) is False


def test_set_password_validates(store):
    uid = store.create_user(User(username="jack", email="jack@example.com"), password="secret")
    with pytest.raises(IdentityError):
        store.set_password(uid, "123")
    store.set_password(uid, "newsecret")
    assert verify_password("newsecret", store.get_by_id(uid).hashed_password)


# ---------------------------------------------------------------------------
# Roles and claims
# ---------------------------------------------------------------------------


def test_role_claims_round_trip(store):
    claims = [permission_claim(Permission.ADMIN), permission_claim(Permission.ROLES)]
    role_id = store.create_role(Role(name="Editors", claims=claims))
    role = store.get_role(role_id)
    assert role.name == "Editors"
    assert role.claims == claims


def test_duplicate_role_name_rejected(store):
    store.create_role(Role(name="Editors"))
    with pytest.raises(IdentityError):
        store.create_role(Role(name="Editors"))


def test_update_role_replaces_claims(store):
    role_id = store.create_role(Role(name="Editors", claims=[permission_claim(Permission.ADMIN)]))
    assert store.update_role(role_id, name="Writers", claims=[permission_claim(Permission.USERS)])
    role = store.get_role(role_id)
    assert role.name == "Writers"
    assert role.claims == [permission_claim(Permission.USERS)]


def test_update_missing_role_returns_false(store):
    assert store.update_role(42, name="Ghost") is False


def test_claims_are_union_of_roles(store):
    store.create_role(Role(name="A", claims=[Claim("Admin", "Admin"), Claim("Roles", "Roles")]))
    store.create_role(Role(name="B", claims=[Claim("Admin", "Admin"), Claim("Users", "Users")]))
    uid = store.create_user(User(username="kim", email="kim@example.com"), password="secret")
    store.set_user_roles(uid, ["A", "B"])

    claims = store.get_claims(uid)
    assert sorted(c.type for c in claims) == ["Admin", "Roles", "Users"]
    assert store.get_user_roles(uid) == ["A", "B"]


def test_set_user_roles_unknown_role(store):
    uid = store.create_user(User(username="lee", email="lee@example.com"), password="secret")
    with pytest.raises(IdentityError, match="does not exist"):
        store.set_user_roles(uid, ["Nope"])


def test_delete_role_removes_membership(store):
    role_id = store.create_role(Role(name="A", claims=[Claim("Admin", "Admin")]))
    uid = store.create_user(User(username="max", email="max@example.com"), password="secret")
    store.add_to_role(uid, "A")

    assert store.delete_role(role_id)
    assert store.get_user_roles(uid) == []
    assert store.get_claims(uid) == []


def test_delete_user(store):
    store.create_role(Role(name="A"))
    uid = store.create_user(User(username="ned", email="ned@example.com"), password="secret")
    store.add_to_role(uid, "A")
    assert store.delete_user(uid)
    assert store.get_by_id(uid) is None
    assert store.delete_user(uid) is False


# ---------------------------------------------------------------------------
# Lockout bookkeeping
# ---------------------------------------------------------------------------


def test_access_failed_counts_and_resets(store):
    uid = store.create_user(User(username="oli", email="oli@example.com"), password="secret")
    assert store.access_failed(uid) == 1
    assert store.access_failed(uid) == 2
    store.reset_access_failed(uid)
    assert store.get_by_id(uid).access_failed_count == 0


def test_set_lockout_end_resets_counter(store):
    uid = store.create_user(User(username="pam", email="pam@example.com"), password="secret")
    store.access_failed(uid)
    end = datetime.now(timezone.utc) + timedelta(minutes=30)
    store.set_lockout_end(uid, end)
    user = store.get_by_id(uid)
    assert user.access_failed_count == 0
    assert datetime.fromisoformat(user.lockout_end) == end

    store.set_lockout_end(uid, None)
    assert store.get_by_id(uid).lockout_end is None
