"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two session sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login page.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 -- for JSON endpoints.
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.
login_required() wraps it and raises LoginRequired -- for HTML pages. The
app's exception handler turns LoginRequired into a 302 to the login page
with the original path in ?next=, so a page only declares the dependency:

    @router.get("/users/", name="user_list")
    def user_list(request: Request, user: User = Depends(login_required)): ...

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import COOKIE_NAME, decode_access_token


class LoginRequired(Exception):
    """Raised by login_required() when a page needs an authenticated user."""


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via cookie or Bearer header.

    Returns the authenticated User on success, None on any failure.
    Never raises.
    """
    user_store = request.app.state.user_store

    token: str | None = request.cookies.get(COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None
    payload = decode_access_token(token)
    if not payload:
        return None
    user = user_store.get_by_id(payload["user_id"])
    if user and user.is_active:
        return user
    return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user


def login_required(request: Request) -> User:
    """Require an authenticated user for an HTML page.

    Raises LoginRequired instead of HTTPException so the response is a
    redirect to the login form rather than a JSON 401.
    """
    user = try_get_current_user(request)
    if user is None:
        raise LoginRequired()
    return user
