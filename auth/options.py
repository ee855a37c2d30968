"""
auth/options.py -- Option objects for the identity module.

The dataclass defaults are the strict framework defaults. add_identity()
either hands fresh instances to a caller-supplied callback or, when the
caller supplies none, applies set_default_options() /
set_default_cookie_options() below.

The defaults applied by set_default_options() are deliberately LOW security
for password rules: they exist so the default account can be seeded on first
startup. Production deployments should pass their own identity_options.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass
class DbOptions:
    """Connection settings for the identity store."""

    url: str = ""
    echo: bool = False


@dataclass
class PasswordOptions:
    require_digit: bool = True
    required_length: int = 6
    require_non_alphanumeric: bool = True
    require_uppercase: bool = True
    require_lowercase: bool = True
    required_unique_chars: int = 1


@dataclass
class LockoutOptions:
    default_lockout_timespan: timedelta = timedelta(minutes=5)
    max_failed_access_attempts: int = 5
    allowed_for_new_users: bool = True


@dataclass
class UserOptions:
    require_unique_email: bool = False
    allowed_username_characters: str = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-._@+"


@dataclass
class IdentityOptions:
    password: PasswordOptions = field(default_factory=PasswordOptions)
    lockout: LockoutOptions = field(default_factory=LockoutOptions)
    user: UserOptions = field(default_factory=UserOptions)


@dataclass
class CookieOptions:
    """Settings for the authentication cookie.

    expire_timespan is both the JWT lifetime and, for persistent sign-ins,
    the cookie max_age. With sliding_expiration the cookie is re-issued once
    less than half of that lifetime remains.
    """

    name: str = "access_token"
    http_only: bool = True
    secure: bool = False
    same_site: str = "lax"
    expire_timespan: timedelta = timedelta(days=14)
    sliding_expiration: bool = True
    login_path: str = "/account/login"
    access_denied_path: str = "/account/accessdenied"


def set_default_options(options: IdentityOptions) -> None:
    """Apply the default identity options used when the caller supplies none."""
    # Password settings
    options.password.require_digit = False
    options.password.required_length = 6
    options.password.require_non_alphanumeric = False
    options.password.require_uppercase = False
    options.password.require_lowercase = False
    options.password.required_unique_chars = 1

    # Lockout settings
    options.lockout.default_lockout_timespan = timedelta(minutes=30)
    options.lockout.max_failed_access_attempts = 10
    options.lockout.allowed_for_new_users = True

    # User settings
    options.user.require_unique_email = True


def set_default_cookie_options(options: CookieOptions) -> None:
    """Apply the default cookie options used when the caller supplies none."""
    options.http_only = True
    options.expire_timespan = timedelta(minutes=30)
    options.login_path = "/manager/login"
    options.access_denied_path = "/manager/login"
    options.sliding_expiration = True
