"""
api/routes/v1/roles.py -- Role management REST endpoints.

Routes (each guarded by the policy of the same name):
  GET    /api/v1/roles            -- list roles with claims      (Roles)
  POST   /api/v1/roles            -- create a role               (RolesAdd)
  GET    /api/v1/roles/{role_id}  -- one role, for editing       (RolesEdit)
  PUT    /api/v1/roles/{role_id}  -- rename / replace claims     (RolesSave)
  DELETE /api/v1/roles/{role_id}  -- delete role and memberships (RolesDelete)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import RoleCreate, RoleResponse, RoleUpdate
from auth.dependencies import require_policy
from auth.models import Role, User
from auth.policies import Permission
from auth.store import IdentityStore
from auth.validators import IdentityError

logger = logging.getLogger("pagedesk.api")

router = APIRouter()


def _store(request: Request) -> IdentityStore:
    return request.app.state.identity.store


def _get_or_404(store: IdentityStore, role_id: int) -> Role:
    role = store.get_role(role_id)
    if role is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Role not found."})
    return role


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles(
    request: Request,
    current_user: User = Depends(require_policy(Permission.ROLES)),
) -> list[RoleResponse]:
    return [RoleResponse.from_role(r) for r in _store(request).list_roles()]


@router.post("/roles", response_model=RoleResponse, status_code=201)
async def create_role(
    request: Request,
    body: RoleCreate,
    current_user: User = Depends(require_policy(Permission.ROLES_ADD)),
) -> RoleResponse:
    store = _store(request)
    try:
        role_id = store.create_role(Role(name=body.name, claims=[c.to_claim() for c in body.claims]))
    except IdentityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": str(exc)},
        ) from exc
    logger.info("Role %r created by %r", body.name, current_user.username)
    return RoleResponse.from_role(_get_or_404(store, role_id))


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    request: Request,
    role_id: int,
    current_user: User = Depends(require_policy(Permission.ROLES_EDIT)),
) -> RoleResponse:
    return RoleResponse.from_role(_get_or_404(_store(request), role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    request: Request,
    role_id: int,
    body: RoleUpdate,
    current_user: User = Depends(require_policy(Permission.ROLES_SAVE)),
) -> RoleResponse:
    store = _store(request)
    _get_or_404(store, role_id)
    claims = [c.to_claim() for c in body.claims] if body.claims is not None else None
    try:
        store.update_role(role_id, name=body.name, claims=claims)
    except IdentityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": str(exc)},
        ) from exc
    return RoleResponse.from_role(_get_or_404(store, role_id))


@router.delete("/roles/{role_id}", status_code=204)
async def delete_role(
    request: Request,
    role_id: int,
    current_user: User = Depends(require_policy(Permission.ROLES_DELETE)),
) -> Response:
    if not _store(request).delete_role(role_id):
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Role not found."})
    logger.info("Role %d deleted by %r", role_id, current_user.username)
    return Response(status_code=204)
