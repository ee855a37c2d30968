"""
auth/identity.py -- Registration routine for the identity module.

add_identity() is called once while the FastAPI app is being assembled:

    app = FastAPI(lifespan=lifespan)
    add_identity_with_seed(app, configure_db)

It resolves every option object, declares the authorization policies and
parks the result on app.state.identity. Nothing touches the database at
registration time; the app lifespan calls IdentityModule.start() to open the
store and build the sign-in manager and security adapter, and stop() on
shutdown.

Option callbacks follow one rule: when the caller supplies a callback it
receives fresh option objects carrying the framework defaults and the
PageDesk defaults are NOT applied; when the caller supplies None,
set_default_options() / set_default_cookie_options() are applied instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import FastAPI

from auth.options import (
    CookieOptions,
    DbOptions,
    IdentityOptions,
    set_default_cookie_options,
    set_default_options,
)
from auth.policies import Policy, build_policies
from auth.security import IdentitySecurity
from auth.seed import DefaultIdentitySeed, IdentitySeed
from auth.signin import SignInManager
from auth.store import IdentityStore

logger = logging.getLogger("pagedesk.auth")


@dataclass
class IdentityModule:
    """Resolved identity configuration plus the services built from it."""

    db: DbOptions
    options: IdentityOptions
    cookie: CookieOptions
    policies: dict[str, Policy]
    seed_type: type[IdentitySeed] | None = None
    store: IdentityStore | None = field(default=None, repr=False)
    sign_in_manager: SignInManager | None = field(default=None, repr=False)
    security: IdentitySecurity | None = field(default=None, repr=False)

    def start(self, store: IdentityStore | None = None) -> IdentitySecurity:
        """Open the store (or adopt the one given) and build the services."""
        self.store = store or IdentityStore(self.db.url, self.options, echo=self.db.echo)
        self.sign_in_manager = SignInManager(self.store, self.options, self.cookie)
        seed = self.seed_type(self.store) if self.seed_type is not None else None
        self.security = IdentitySecurity(self.sign_in_manager, seed)
        logger.info("Identity module started (seed=%s)", self.seed_type.__name__ if self.seed_type else None)
        return self.security

    def stop(self) -> None:
        if self.store is not None:
            self.store.close()


def add_identity(
    app: FastAPI,
    db_options: Callable[[DbOptions], None],
    identity_options: Callable[[IdentityOptions], None] | None = None,
    cookie_options: Callable[[CookieOptions], None] | None = None,
) -> FastAPI:
    """Register the identity module on app and return app."""
    db = DbOptions()
    db_options(db)
    if not db.url:
        raise ValueError("db_options must set a database url")

    options = IdentityOptions()
    (identity_options or set_default_options)(options)

    cookie = CookieOptions()
    (cookie_options or set_default_cookie_options)(cookie)

    app.state.identity = IdentityModule(
        db=db,
        options=options,
        cookie=cookie,
        policies=build_policies(),
    )
    return app


def add_identity_with_seed(
    app: FastAPI,
    db_options: Callable[[DbOptions], None],
    identity_options: Callable[[IdentityOptions], None] | None = None,
    cookie_options: Callable[[CookieOptions], None] | None = None,
    seed: type[IdentitySeed] = DefaultIdentitySeed,
) -> FastAPI:
    """Register the identity module together with a seed that runs before the first sign-in."""
    add_identity(app, db_options, identity_options, cookie_options)
    app.state.identity.seed_type = seed
    return app
