"""
API request and response models for PageDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Claim, Role, User

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The JWT is also set as the auth cookie."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    username: str


class ClaimModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1, max_length=255)
    value: str = Field(min_length=1, max_length=255)

    @classmethod
    def from_claim(cls, claim: Claim) -> "ClaimModel":
        return cls(type=claim.type, value=claim.value)

    def to_claim(self) -> Claim:
        return Claim(self.type, self.value)


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: Optional[str]
    roles: list[str]
    claims: list[ClaimModel]


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


def _permission_claims(values: list) -> list:
    """Accept bare permission tokens as shorthand for {"type": t, "value": t}."""
    return [{"type": v, "value": v} if isinstance(v, str) else v for v in values]


class RoleCreate(BaseModel):
    """Request body for POST /api/v1/roles.

    claims may mix full {"type", "value"} objects and bare permission tokens.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    claims: list[ClaimModel] = Field(default_factory=list)

    @field_validator("claims", mode="before")
    @classmethod
    def expand_tokens(cls, values: list) -> list:
        return _permission_claims(values)


class RoleUpdate(BaseModel):
    """Request body for PUT /api/v1/roles/{role_id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    claims: Optional[list[ClaimModel]] = None

    @field_validator("claims", mode="before")
    @classmethod
    def expand_tokens(cls, values: Optional[list]) -> Optional[list]:
        return None if values is None else _permission_claims(values)


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    claims: list[ClaimModel]

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(id=role.id, name=role.name, claims=[ClaimModel.from_claim(c) for c in role.claims])


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    roles: list[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{user_id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=255)
    is_active: Optional[bool] = None
    roles: Optional[list[str]] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: Optional[str]
    is_active: bool
    is_locked_out: bool
    roles: list[str]
    created_at: str
    last_login: Optional[str]

    @classmethod
    def from_user(cls, user: User, roles: list[str], is_locked_out: bool) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_active=user.is_active,
            is_locked_out=is_locked_out,
            roles=roles,
            created_at=user.created_at or "",
            last_login=user.last_login,
        )
