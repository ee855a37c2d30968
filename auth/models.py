"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in content/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, web/, or content/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Claim:
    """A type/value assertion about an identity.

    Permission claims use the permission token as both type and value,
    e.g. Claim("Roles", "Roles").
    """

    type: str
    value: str


@dataclass
class User:
    """An identity that can sign in to the manager.

    hashed_password is None for accounts created without a local password.
    lockout_end is an ISO 8601 UTC timestamp; the account is locked out while
    it lies in the future. access_failed_count is reset on every successful
    sign-in and whenever a lockout starts.
    """

    username: str
    email: str | None = None
    id: int | None = None
    hashed_password: str | None = None
    is_active: bool = True
    lockout_enabled: bool = True
    access_failed_count: int = 0
    lockout_end: str | None = None
    created_at: str | None = None
    last_login: str | None = None


@dataclass
class Role:
    """A named group of claims. Users inherit the claims of every role they hold."""

    name: str
    id: int | None = None
    claims: list[Claim] = field(default_factory=list)
