"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, username, issue time, expiry and the persistence flag.
       Verification returns None on any failure -- callers treat that as
       unauthenticated.

  Passwords: bcrypt used directly. Bcrypt is the right choice for low-entropy
       secrets (passwords) because its cost factor makes brute-force
       expensive. The _DUMMY_HASH constant enables timing equalization in the
       sign-in manager so response time does not reveal whether a username
       exists.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup.

Layer rule: no imports from api/, web/, or content/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password fields at 255 characters.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first sign-in attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("pagedesk_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Burn one bcrypt check so a miss costs the same as a wrong password."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, lifetime: timedelta, persistent: bool = False) -> str:
    """Encode a signed JWT for a signed-in user.

    Args:
        user_id:    Numeric user ID stored in the DB.
        username:   Username stored as the JWT subject claim.
        lifetime:   Token lifetime; the cookie expire_timespan.
        persistent: Carried through so a sliding refresh re-issues the cookie
                    with the same persistence as the original sign-in.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "user_id": user_id,
        "pst": persistent,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "exp" not in payload:
        return None
    return payload
