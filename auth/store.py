"""
auth/store.py -- SQLAlchemy Core persistence layer for identity entities.

Pattern: Repository + Data Mapper (same as content/store.py).
IdentityStore is the repository; _row_to_user / _row_to_role are the mappers.
Route, sign-in and seed code never touches SQL directly.

Tables:
  users        -- one row per identity
  roles        -- named claim groups
  user_roles   -- many-to-many membership
  role_claims  -- (claim_type, claim_value) pairs held by a role

Writes that break an identity rule (password strength, username characters,
duplicate username / email / role name) raise IdentityError with every
violated rule listed.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced in code rather than SQL because it is an
  option (UserOptions.require_unique_email) and email may be NULL.

Layer rule: no imports from api/, web/, or content/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Claim, Role, User
from auth.options import IdentityOptions
from auth.tokens import hash_password
from auth.validators import IdentityError, validate_password, validate_username

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255)),
    Column("hashed_password", Text),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("lockout_enabled", Integer, nullable=False, server_default="1"),
    Column("access_failed_count", Integer, nullable=False, server_default="0"),
    Column("lockout_end", String(32)),  # ISO 8601 UTC, NULL = not locked out
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    UniqueConstraint("user_id", "role_id", name="uq_user_role"),
)

_role_claims = Table(
    "role_claims",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
    Column("claim_type", String(255), nullable=False),
    Column("claim_value", String(255), nullable=False),
    UniqueConstraint("role_id", "claim_type", "claim_value", name="uq_role_claim"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for User and Role entities and their claims.

    Usage:
        store = IdentityStore("sqlite:///identity.db", options)
        uid = store.create_user(User(username="admin", email="admin@example.com"), password="secret")
        store.create_role(Role(name="Editors", claims=[Claim("Admin", "Admin")]))
        store.set_user_roles(uid, ["Editors"])
        claims = store.get_claims(uid)
        store.close()
    """

    _USER_FIELDS: set = {"username", "email", "is_active", "lockout_enabled", "lockout_end"}

    def __init__(self, db_url: str, options: IdentityOptions | None = None, echo: bool = False) -> None:
        self.options = options or IdentityOptions()
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, echo=echo)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User, password: str | None = None) -> int:
        """Validate and insert a new user. Returns its assigned database ID.

        The password, when given, is checked against the password options
        and stored as a bcrypt hash. Lockout is enabled according to
        LockoutOptions.allowed_for_new_users.
        """
        errors = validate_username(user.username, self.options.user)
        if password is not None:
            errors += validate_password(password, self.options.password)
        if self.get_by_username(user.username) is not None:
            errors.append(f"Username '{user.username}' is already taken.")
        errors += self._email_errors(user.email)
        if errors:
            raise IdentityError(errors)

        hashed = hash_password(password) if password is not None else user.hashed_password
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        hashed_password=hashed,
                        is_active=1 if user.is_active else 0,
                        lockout_enabled=1 if self.options.lockout.allowed_for_new_users else 0,
                        access_failed_count=0,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            # A concurrent request inserted the same username first.
            raise IdentityError([f"Username '{user.username}' is already taken."]) from exc
        return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email, ignoring case."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(func.lower(_users.c.email) == email.lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: username, email, is_active, lockout_enabled, lockout_end.
        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        current = self.get_by_id(user_id)
        if current is None:
            return False

        errors: list[str] = []
        if "username" in fields and fields["username"] != current.username:
            errors += validate_username(fields["username"], self.options.user)
            if self.get_by_username(fields["username"]) is not None:
                errors.append(f"Username '{fields['username']}' is already taken.")
        if "email" in fields:
            errors += self._email_errors(fields["email"], exclude_id=user_id)
        if errors:
            raise IdentityError(errors)

        for flag in ("is_active", "lockout_enabled"):
            if flag in fields:
                fields[flag] = 1 if fields[flag] else 0
        if not fields:
            return True
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_password(self, user_id: int, password: str) -> None:
        errors = validate_password(password, self.options.password)
        if errors:
            raise IdentityError(errors)
        with self.engine.connect() as conn:
            conn.execute(
                _users.update().where(_users.c.id == user_id).values(hashed_password=hash_password(password))
            )
            conn.commit()

    def delete_user(self, user_id: int) -> bool:
        """Delete a user and its role memberships. Returns False if not found."""
        with self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Lockout bookkeeping
    # ------------------------------------------------------------------

    def access_failed(self, user_id: int) -> int:
        """Increment the failed sign-in counter and return the new value."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(access_failed_count=_users.c.access_failed_count + 1)
            )
            count = conn.execute(select(_users.c.access_failed_count).where(_users.c.id == user_id)).scalar()
            conn.commit()
        return count or 0

    def reset_access_failed(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(access_failed_count=0))
            conn.commit()

    def set_lockout_end(self, user_id: int, lockout_end: datetime | None) -> None:
        """Lock the account until lockout_end (None clears the lockout).

        Starting a lockout also resets the failure counter so the next
        window starts from zero.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    lockout_end=lockout_end.isoformat() if lockout_end else None,
                    access_failed_count=0,
                )
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Role queries
    # ------------------------------------------------------------------

    def create_role(self, role: Role) -> int:
        name = role.name.strip()
        if not name:
            raise IdentityError(["Role name is required."])
        if self.get_role_by_name(name) is not None:
            raise IdentityError([f"Role name '{name}' is already taken."])
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_roles.insert().values(name=name))
                role_id = result.inserted_primary_key[0]
                _insert_claims(conn, role_id, role.claims)
                conn.commit()
        except IntegrityError as exc:
            raise IdentityError([f"Role name '{name}' is already taken."]) from exc
        return role_id

    def get_role(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
            if row is None:
                return None
            return _row_to_role(row, _select_role_claims(conn, row.id))

    def get_role_by_name(self, name: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.name == name)).fetchone()
            if row is None:
                return None
            return _row_to_role(row, _select_role_claims(conn, row.id))

    def list_roles(self) -> list[Role]:
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.name)).fetchall()
            return [_row_to_role(r, _select_role_claims(conn, r.id)) for r in rows]

    def update_role(self, role_id: int, name: str | None = None, claims: list[Claim] | None = None) -> bool:
        """Rename a role and/or replace its claim set. Returns False if not found."""
        current = self.get_role(role_id)
        if current is None:
            return False
        if name is not None:
            name = name.strip()
            if not name:
                raise IdentityError(["Role name is required."])
            other = self.get_role_by_name(name)
            if other is not None and other.id != role_id:
                raise IdentityError([f"Role name '{name}' is already taken."])
        with self.engine.connect() as conn:
            if name is not None:
                conn.execute(_roles.update().where(_roles.c.id == role_id).values(name=name))
            if claims is not None:
                conn.execute(_role_claims.delete().where(_role_claims.c.role_id == role_id))
                _insert_claims(conn, role_id, claims)
            conn.commit()
        return True

    def delete_role(self, role_id: int) -> bool:
        """Delete a role along with its claims and memberships."""
        with self.engine.connect() as conn:
            conn.execute(_role_claims.delete().where(_role_claims.c.role_id == role_id))
            conn.execute(_user_roles.delete().where(_user_roles.c.role_id == role_id))
            result = conn.execute(_roles.delete().where(_roles.c.id == role_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Membership and claims
    # ------------------------------------------------------------------

    def get_user_roles(self, user_id: int) -> list[str]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_roles.c.name)
                .join(_user_roles, _user_roles.c.role_id == _roles.c.id)
                .where(_user_roles.c.user_id == user_id)
                .order_by(_roles.c.name)
            ).fetchall()
        return [r.name for r in rows]

    def add_to_role(self, user_id: int, role_name: str) -> None:
        role = self.get_role_by_name(role_name)
        if role is None:
            raise IdentityError([f"Role '{role_name}' does not exist."])
        if role_name in self.get_user_roles(user_id):
            return
        with self.engine.connect() as conn:
            conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role.id))
            conn.commit()

    def set_user_roles(self, user_id: int, role_names: list[str]) -> None:
        """Replace the user's role memberships with exactly role_names."""
        roles = []
        missing = []
        for name in dict.fromkeys(role_names):
            role = self.get_role_by_name(name)
            if role is None:
                missing.append(f"Role '{name}' does not exist.")
            else:
                roles.append(role)
        if missing:
            raise IdentityError(missing)
        with self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            for role in roles:
                conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role.id))
            conn.commit()

    def get_claims(self, user_id: int) -> list[Claim]:
        """Return the union of the claims of every role the user holds."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_role_claims.c.claim_type, _role_claims.c.claim_value)
                .join(_user_roles, _user_roles.c.role_id == _role_claims.c.role_id)
                .where(_user_roles.c.user_id == user_id)
                .distinct()
                .order_by(_role_claims.c.claim_type)
            ).fetchall()
        return [Claim(r.claim_type, r.claim_value) for r in rows]

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _email_errors(self, email: str | None, exclude_id: int | None = None) -> list[str]:
        if not self.options.user.require_unique_email:
            return []
        if not email:
            return ["Email is required."]
        existing = self.get_by_email(email)
        if existing is not None and existing.id != exclude_id:
            return [f"Email '{email}' is already taken."]
        return []


def _insert_claims(conn, role_id: int, claims: list[Claim]) -> None:
    for claim in dict.fromkeys(claims):
        conn.execute(_role_claims.insert().values(role_id=role_id, claim_type=claim.type, claim_value=claim.value))


def _select_role_claims(conn, role_id: int) -> list[Claim]:
    rows = conn.execute(
        _role_claims.select().where(_role_claims.c.role_id == role_id).order_by(_role_claims.c.id)
    ).fetchall()
    return [Claim(r.claim_type, r.claim_value) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        is_active=bool(row.is_active),
        lockout_enabled=bool(row.lockout_enabled),
        access_failed_count=row.access_failed_count,
        lockout_end=row.lockout_end,
        created_at=row.created_at,
        last_login=row.last_login,
    )


def _row_to_role(row, claims: list[Claim]) -> Role:
    return Role(id=row.id, name=row.name, claims=claims)
