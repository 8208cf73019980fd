"""
API request and response models for SiteGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = "admin"
    user = "user"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    next follows the same rules as the login form's hidden field: used only
    when safe, otherwise LOGIN_REDIRECT_URL applies.
    """

    username: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=255)
    next: Optional[str] = Field(default=None, max_length=2048)


class LogoutRequest(BaseModel):
    next: Optional[str] = Field(default=None, max_length=2048)


class UserCreate(BaseModel):
    """Request body for POST /api/v1/auth/users (admin only).

    password is optional: omitting it creates an account with an unusable
    password. Such an account cannot log in until a password is set.
    """

    username: str = Field(min_length=1, max_length=150, pattern=r"^[\w.@+-]+$")
    email: str = Field(default="", max_length=254)
    password: Optional[str] = Field(default=None, max_length=72)
    role: RoleEnum = RoleEnum.user


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    username: str
    role: str
    redirect_to: str


class LogoutResponse(BaseModel):
    message: str
    # None = no LOGOUT_REDIRECT_URL configured and no next supplied.
    redirect_to: Optional[str] = None


class MeResponse(BaseModel):
    user_id: int
    username: str
    email: str
    role: str
    last_login: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    has_usable_password: bool
    created_at: str


class RouteInfo(BaseModel):
    """One entry of the authentication URL table."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    methods: list[str]


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

    status: str = "ok"
    version: str
