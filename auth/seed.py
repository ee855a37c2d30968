"""
auth/seed.py -- First-run identity seeding.

The security adapter awaits IdentitySeed.create() before the first sign-in,
so a fresh install always has an account that can reach the manager.

A seed that cannot satisfy the configured identity rules (for instance a
strict password policy rejecting the default password) logs the problem and
writes nothing; sign-in then proceeds against whatever accounts exist.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from auth.models import Role, User
from auth.policies import Permission, permission_claim
from auth.store import IdentityStore
from auth.validators import IdentityError, validate_password

logger = logging.getLogger("pagedesk.auth")


class IdentitySeed(ABC):
    """Creates initial identity data. Implementations must be idempotent."""

    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    @abstractmethod
    async def create(self) -> None: ...


class DefaultIdentitySeed(IdentitySeed):
    """Seed a SysAdmin role holding every permission and an admin account.

    Runs only while the user table is empty.
    """

    ROLE_NAME = "SysAdmin"
    USERNAME = "admin"
    EMAIL = "admin@example.com"
    PASSWORD = "password"  # noqa: S105 -- documented first-run credential

    async def create(self) -> None:
        if self.store.has_users():
            return

        errors = validate_password(self.PASSWORD, self.store.options.password)
        if errors:
            logger.error("Identity seed skipped: %s", "; ".join(errors))
            return

        try:
            user_id = self.store.create_user(User(username=self.USERNAME, email=self.EMAIL), password=self.PASSWORD)
            if self.store.get_role_by_name(self.ROLE_NAME) is None:
                self.store.create_role(
                    Role(name=self.ROLE_NAME, claims=[permission_claim(p) for p in Permission.all()])
                )
            self.store.add_to_role(user_id, self.ROLE_NAME)
        except IdentityError as exc:
            logger.error("Identity seed failed: %s", exc)
            return

        logger.warning(
            "Seeded default account %r with the default password. Change it after signing in.",
            self.USERNAME,
        )
