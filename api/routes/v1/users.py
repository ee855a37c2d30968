"""
api/routes/v1/users.py -- User management REST endpoints.

Routes (each guarded by the policy of the same name):
  GET    /api/v1/users            -- list users                   (Users)
  POST   /api/v1/users            -- create a user                (UsersAdd)
  GET    /api/v1/users/{user_id}  -- one user, for editing        (UsersEdit)
  PUT    /api/v1/users/{user_id}  -- update fields / roles / pwd  (UsersSave)
  DELETE /api/v1/users/{user_id}  -- delete a user                (UsersDelete)

Rules:
  Password strength, username characters and email uniqueness come from the
  identity options and surface as 400 validation_error with every message.
  Users cannot delete or deactivate their own account.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_policy
from auth.models import User
from auth.policies import Permission
from auth.store import IdentityStore
from auth.validators import IdentityError, validate_password

logger = logging.getLogger("pagedesk.api")

router = APIRouter()


def _store(request: Request) -> IdentityStore:
    return request.app.state.identity.store


def _to_response(request: Request, user: User) -> UserResponse:
    sign_in_manager = request.app.state.identity.sign_in_manager
    return UserResponse.from_user(
        user,
        roles=_store(request).get_user_roles(user.id),
        is_locked_out=sign_in_manager.is_locked_out(user),
    )


def _get_or_404(store: IdentityStore, user_id: int) -> User:
    user = store.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})
    return user


def _missing_roles(store: IdentityStore, names: list[str]) -> list[str]:
    return [f"Role '{name}' does not exist." for name in names if store.get_role_by_name(name) is None]


def _invalid(exc: IdentityError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"code": "validation_error", "message": "User validation failed.", "detail": str(exc)},
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    request: Request,
    current_user: User = Depends(require_policy(Permission.USERS)),
) -> list[UserResponse]:
    return [_to_response(request, u) for u in _store(request).list_users()]


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    current_user: User = Depends(require_policy(Permission.USERS_ADD)),
) -> UserResponse:
    store = _store(request)
    missing = _missing_roles(store, body.roles)
    if missing:
        raise _invalid(IdentityError(missing))
    try:
        user_id = store.create_user(User(username=body.username, email=body.email), password=body.password)
        if body.roles:
            store.set_user_roles(user_id, body.roles)
    except IdentityError as exc:
        raise _invalid(exc) from exc
    logger.info("User %r created by %r", body.username, current_user.username)
    return _to_response(request, _get_or_404(store, user_id))


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_policy(Permission.USERS_EDIT)),
) -> UserResponse:
    return _to_response(request, _get_or_404(_store(request), user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    current_user: User = Depends(require_policy(Permission.USERS_SAVE)),
) -> UserResponse:
    store = _store(request)
    target = _get_or_404(store, user_id)
    if body.is_active is False and target.id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
        )

    # Check everything that can fail before the first write so a rejected
    # update leaves the user untouched.
    errors: list[str] = []
    if body.password is not None:
        errors += validate_password(body.password, store.options.password)
    if body.roles is not None:
        errors += _missing_roles(store, body.roles)
    if errors:
        raise _invalid(IdentityError(errors))

    fields = body.model_dump(include={"username", "email", "is_active"}, exclude_none=True)
    try:
        if fields:
            store.update_user(user_id, **fields)
        if body.password is not None:
            store.set_password(user_id, body.password)
        if body.roles is not None:
            store.set_user_roles(user_id, body.roles)
    except IdentityError as exc:
        raise _invalid(exc) from exc
    return _to_response(request, _get_or_404(store, user_id))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_policy(Permission.USERS_DELETE)),
) -> Response:
    if user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    if not _store(request).delete_user(user_id):
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})
    logger.info("User %d deleted by %r", user_id, current_user.username)
    return Response(status_code=204)
