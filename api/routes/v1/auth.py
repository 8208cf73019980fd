"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  GET  /api/v1/auth/routes     -- the authentication URL table (public)
  POST /api/v1/auth/login      -- password login; sets JWT cookie, returns redirect_to
  POST /api/v1/auth/logout     -- clears cookie; returns redirect_to (may be null)
  GET  /api/v1/auth/me         -- current user info (requires auth)
  POST /api/v1/auth/users      -- create user (admin only)
  GET  /api/v1/auth/users      -- list all users (admin only)

Every route carries an "api_" name. Page routes own the bare names ("login",
"logout", ...) that redirect settings and templates reverse.

redirect_to is computed exactly as the login and logout pages compute their
Location header (auth/redirects.py), so a JS client can follow the same
convention: body.next if safe, else LOGIN_REDIRECT_URL / LOGOUT_REDIRECT_URL.

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  authenticate() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on login responses.

No `from __future__ import annotations` here: slowapi's wrapper carries its
own module globals, so FastAPI could not resolve string annotations on the
rate-limited login handler.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    MeResponse,
    RouteInfo,
    UserCreate,
    UserResponse,
)
from auth.backends import authenticate
from auth.dependencies import get_current_user, require_admin
from auth.forms import validate_password
from auth.models import User
from auth.redirects import login_success_url, logout_success_url
from auth.store import UserStore
from auth.tokens import clear_auth_cookie, create_access_token, hash_password, set_auth_cookie
from auth.urls import AUTH_URL_TABLE
from core.config import get_settings

router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/routes", response_model=list[RouteInfo], name="api_routes")
async def list_routes() -> list[RouteInfo]:
    """Return the authentication URL table: route name, path template, methods."""
    return [RouteInfo(name=r.name, path=r.full_path, methods=list(r.methods)) for r in AUTH_URL_TABLE]


@router.post("/auth/login", response_model=LoginResponse, name="api_login")
@limiter.limit(_login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username (or email, if enabled) and password; set JWT cookie.

    Returns the same generic error for wrong username and wrong password
    ("bad_credentials") to avoid leaking username existence information.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate(user_store, body.username, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    settings = get_settings()
    token = create_access_token(user.id, user.username, user.role)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.token_expire_seconds,
            username=user.username,
            role=user.role,
            redirect_to=login_success_url(request, body.next),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=LogoutResponse, name="api_logout")
def logout(request: Request, body: LogoutRequest | None = None) -> JSONResponse:
    """Clear the JWT cookie. The body is optional; {} and no body behave the same."""
    next_value = body.next if body is not None else None
    resp = JSONResponse(
        content=LogoutResponse(
            message="Logged out.",
            redirect_to=logout_success_url(request, next_value),
        ).model_dump()
    )
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse, name="api_me")
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        username=current_user.username,
        email=current_user.email,
        role=current_user.role,
        last_login=current_user.last_login,
    )


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.post("/auth/users", response_model=UserResponse, status_code=201, name="api_create_user")
def create_user(
    request: Request,
    body: UserCreate,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Create a new user account. Admin only.

    The password, when given, must satisfy the same rules as the sign-up
    form; violations are reported as 422 invalid_password.
    """
    user_store: UserStore = request.app.state.user_store

    hashed_pw: str | None = None
    if body.password:
        problems = validate_password(body.password, body.username)
        if problems:
            raise HTTPException(
                status_code=422,
                detail={"code": "invalid_password", "message": " ".join(problems)},
            )
        hashed_pw = hash_password(body.password)

    new_user = User(
        username=body.username,
        email=body.email,
        role=body.role.value,
        hashed_password=hashed_pw,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        ) from exc

    created = user_store.get_by_id(user_id)
    return _user_to_response(created)


@router.get("/auth/users", response_model=list[UserResponse], name="api_list_users")
def list_users(
    request: Request,
    current_user: User = Depends(require_admin),
) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [_user_to_response(u) for u in user_store.list_users()]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_response(user: User | None) -> UserResponse:
    if user is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "User not found after write."},
        )
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        has_usable_password=user.has_usable_password,
        created_at=user.created_at or "",
    )
