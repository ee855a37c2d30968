"""
auth/security.py -- The security adapter used by the manager UI and API.

Security is the interface the rest of the app signs users in and out
through. IdentitySecurity implements it as straight delegation to the
SignInManager; the only addition is the optional identity seed, which runs
once before the first sign-in on this instance.

The context argument is the outgoing Starlette response: signing in writes
the auth cookie onto it, signing out removes it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from starlette.responses import Response

from auth.seed import IdentitySeed
from auth.signin import SignInManager


class Security(ABC):
    @abstractmethod
    async def sign_in(self, context: Response, username: str, password: str) -> bool: ...

    @abstractmethod
    async def sign_out(self, context: Response) -> None: ...


class IdentitySecurity(Security):
    def __init__(self, sign_in_manager: SignInManager, seed: IdentitySeed | None = None) -> None:
        self._sign_in_manager = sign_in_manager
        self._seed = seed
        self._seeded = False

    async def sign_in(self, context: Response, username: str, password: str) -> bool:
        """Authenticate and sign in the user with the given credentials.

        Returns True if the user was signed in.
        """
        if self._seed is not None and not self._seeded:
            self._seeded = True
            await self._seed.create()

        result = await self._sign_in_manager.password_sign_in(
            context, username, password, is_persistent=False, lockout_on_failure=False
        )
        return result.succeeded

    async def sign_out(self, context: Response) -> None:
        await self._sign_in_manager.sign_out(context)
