"""
auth/policies.py -- Claims-based authorization policies.

Every policy is a fixed set of required claims. Permission claims use the
permission token as both claim type and claim value, and each policy demands
the whole hierarchy: the Admin claim, the area claim (Roles / Users) and,
for action policies, the action claim itself.

    Roles       -> Admin, Roles
    RolesAdd    -> Admin, Roles, RolesAdd
    Users       -> Admin, Users
    UsersDelete -> Admin, Users, UsersDelete
    ...

Routes use require_policy() from auth/dependencies.py, which looks the policy
up by name in the registry built here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from auth.models import Claim


class Permission:
    """Permission tokens. Each token is also the claim type and claim value."""

    ADMIN = "Admin"

    ROLES = "Roles"
    ROLES_ADD = "RolesAdd"
    ROLES_DELETE = "RolesDelete"
    ROLES_EDIT = "RolesEdit"
    ROLES_SAVE = "RolesSave"

    USERS = "Users"
    USERS_ADD = "UsersAdd"
    USERS_DELETE = "UsersDelete"
    USERS_EDIT = "UsersEdit"
    USERS_SAVE = "UsersSave"

    @classmethod
    def all(cls) -> list[str]:
        return [
            cls.ADMIN,
            cls.ROLES,
            cls.ROLES_ADD,
            cls.ROLES_DELETE,
            cls.ROLES_EDIT,
            cls.ROLES_SAVE,
            cls.USERS,
            cls.USERS_ADD,
            cls.USERS_DELETE,
            cls.USERS_EDIT,
            cls.USERS_SAVE,
        ]


def permission_claim(token: str) -> Claim:
    return Claim(token, token)


@dataclass(frozen=True)
class Policy:
    """A named rule satisfied when every required claim is present."""

    name: str
    required_claims: tuple[Claim, ...]

    def evaluate(self, claims: Iterable[Claim]) -> bool:
        held = set(claims)
        return all(c in held for c in self.required_claims)

    def missing(self, claims: Iterable[Claim]) -> list[Claim]:
        held = set(claims)
        return [c for c in self.required_claims if c not in held]


def _policy(name: str, *tokens: str) -> Policy:
    return Policy(name=name, required_claims=tuple(permission_claim(t) for t in (Permission.ADMIN, *tokens)))


def build_policies() -> dict[str, Policy]:
    """Return the fixed registry of named policies, keyed by policy name."""
    policies = [
        # Role policies
        _policy(Permission.ROLES, Permission.ROLES),
        _policy(Permission.ROLES_ADD, Permission.ROLES, Permission.ROLES_ADD),
        _policy(Permission.ROLES_DELETE, Permission.ROLES, Permission.ROLES_DELETE),
        _policy(Permission.ROLES_EDIT, Permission.ROLES, Permission.ROLES_EDIT),
        _policy(Permission.ROLES_SAVE, Permission.ROLES, Permission.ROLES_SAVE),
        # User policies
        _policy(Permission.USERS, Permission.USERS),
        _policy(Permission.USERS_ADD, Permission.USERS, Permission.USERS_ADD),
        _policy(Permission.USERS_DELETE, Permission.USERS, Permission.USERS_DELETE),
        _policy(Permission.USERS_EDIT, Permission.USERS, Permission.USERS_EDIT),
        _policy(Permission.USERS_SAVE, Permission.USERS, Permission.USERS_SAVE),
    ]
    return {p.name: p for p in policies}
