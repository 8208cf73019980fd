"""
web/routes.py -- Jinja2 template routes for the SiteGate account pages.

These routes serve server-rendered HTML. They share app.state with the API
routes (same user store) but return HTML instead of JSON.

Account paths and names come from auth/urls.AUTH_URL_TABLE via route_path().
GET and POST of the same page share one route name, so url_path_for() and
url_for() in templates resolve either.

Routes:
  GET  /                                   home                    -- landing page
  GET  /users/                             user_list               -- paginated user list (login required)
  GET  /accounts/signup/                   signup                  -- sign-up form
  POST /accounts/signup/                   signup                  -- create account, redirect to login
  GET  /accounts/login/                    login                   -- login form (hidden next)
  POST /accounts/login/                    login                   -- authenticate, redirect to next or LOGIN_REDIRECT_URL
  POST /accounts/logout/                   logout                  -- clear cookie, redirect to next or LOGOUT_REDIRECT_URL
  GET  /accounts/password_change/          password_change         -- form (login required)
  POST /accounts/password_change/          password_change         -- change password (login required)
  GET  /accounts/password_change/done/     password_change_done    -- confirmation (login required)
  GET  /accounts/password_reset/           password_reset          -- email form
  POST /accounts/password_reset/           password_reset          -- send reset emails
  GET  /accounts/password_reset/done/      password_reset_done     -- "check your inbox"
  GET  /accounts/reset/{uidb64}/{token}/   password_reset_confirm  -- new password form or invalid-link page
  POST /accounts/reset/{uidb64}/{token}/   password_reset_confirm  -- set password
  GET  /accounts/reset/done/               password_reset_complete -- "you may log in"
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import IntegrityError

from auth.backends import authenticate
from auth.dependencies import login_required, try_get_current_user
from auth.forms import EMAIL_PATTERN, FormErrors, validate_new_password_pair, validate_password_change, validate_signup
from auth.mail import send_mail
from auth.models import User
from auth.redirects import get_redirect_target, login_success_url, logout_success_url, resolve_url
from auth.store import UserStore
from auth.tokens import (
    check_password_reset_token,
    clear_auth_cookie,
    decode_uid,
    encode_uid,
    hash_password,
    issue_session,
    make_password_reset_token,
)
from auth.urls import ACCOUNTS_PREFIX, route_path
from core.config import get_settings

logger = logging.getLogger("sitegate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html reads SELF_REGISTRATION_ENABLED to decide whether to link sign-up.
templates.env.globals["get_settings"] = get_settings
router = APIRouter()

_PAGE_SIZE = 25
_LOGIN_ERROR = "Please enter a correct username and password. Note that both fields may be case-sensitive."


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200) -> HTMLResponse:
    """Render a page. Adds the current user unless the caller set one explicitly."""
    context = dict(context or {})
    if "user" not in context:
        context["user"] = try_get_current_user(request)
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _redirect_to(request: Request, route_name: str) -> RedirectResponse:
    return RedirectResponse(resolve_url(route_name, request.app), status_code=302)


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


# ---------------------------------------------------------------------------
# GET / -- landing page
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse, name="home")
def home(request: Request) -> HTMLResponse:
    return _render(request, "home.html")


# ---------------------------------------------------------------------------
# GET /users/ -- login-required list page
# ---------------------------------------------------------------------------


@router.get("/users/", response_class=HTMLResponse, name="user_list")
def user_list(request: Request, page: int = 1, user: User = Depends(login_required)) -> HTMLResponse:
    """Paginated list of accounts. Anonymous visitors are sent to the login page."""
    store = _store(request)
    total = store.count_users()
    total_pages = max(1, (total + _PAGE_SIZE - 1) // _PAGE_SIZE)
    page = max(1, min(page, total_pages))
    users = store.list_users(limit=_PAGE_SIZE, offset=(page - 1) * _PAGE_SIZE)
    return _render(
        request,
        "user_list.html",
        {
            "user": user,
            "object_list": users,
            "total": total,
            "page": page,
            "total_pages": total_pages,
        },
    )


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


def _require_registration() -> None:
    if not get_settings().self_registration_enabled:
        raise HTTPException(status_code=404)


@router.get(f"{ACCOUNTS_PREFIX}/signup/", response_class=HTMLResponse, name="signup")
def signup_form(request: Request) -> HTMLResponse:
    _require_registration()
    return _render(request, "registration/signup.html", {"errors": {}, "username": "", "email": ""})


@router.post(f"{ACCOUNTS_PREFIX}/signup/", response_class=HTMLResponse, name="signup")
def signup_post(
    request: Request,
    username: str = Form(""),
    email: str = Form(""),
    password1: str = Form(""),
    password2: str = Form(""),
):
    """Create an account and send the visitor to the login page.

    An invalid form is re-rendered (HTTP 200) with per-field errors and the
    entered username and email kept; passwords are never echoed back.
    """
    _require_registration()
    store = _store(request)
    errors = validate_signup(store, username, email, password1, password2)

    if not errors:
        new_user = User(username=username.strip(), email=email.strip(), hashed_password=hash_password(password1))
        try:
            store.create_user(new_user)
        except IntegrityError:
            # Another request took the username between validation and insert.
            errors = {"username": ["A user with that username already exists."]}

    if errors:
        return _render(
            request,
            "registration/signup.html",
            {"errors": errors, "username": username[:150], "email": email[:254]},
        )

    logger.info("New account %r created via sign-up", new_user.username)
    return _redirect_to(request, "login")


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get(route_path("login"), response_class=HTMLResponse, name="login")
def login_form(request: Request):
    """Render the login form, carrying a safe ?next= into a hidden field.

    An already-authenticated visitor is sent straight on to the success URL
    when REDIRECT_AUTHENTICATED_USER is set, unless that URL is this page.
    """
    if get_settings().redirect_authenticated_user and try_get_current_user(request) is not None:
        target = login_success_url(request)
        if target != request.url.path:
            return RedirectResponse(target, status_code=302)
    return _render(
        request,
        "registration/login.html",
        {"next": get_redirect_target(request), "username": "", "form_error": None},
    )


@router.post(route_path("login"), response_class=HTMLResponse, name="login")
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    next_url: str = Form("", alias="next"),
):
    """Authenticate and redirect to next (form field, then query) or LOGIN_REDIRECT_URL."""
    user = authenticate(_store(request), username, password) if username and password else None
    if user is None:
        return _render(
            request,
            "registration/login.html",
            {
                "next": get_redirect_target(request, next_url),
                "username": username[:150],
                "form_error": _LOGIN_ERROR,
            },
        )

    resp = RedirectResponse(login_success_url(request, next_url), status_code=302)
    issue_session(resp, user)
    return resp


@router.post(route_path("logout"), response_class=HTMLResponse, name="logout")
def logout(request: Request, next_url: str = Form("", alias="next")):
    """Clear the session cookie. Redirect to next or LOGOUT_REDIRECT_URL, or render logged_out."""
    target = logout_success_url(request, next_url)
    if target is None:
        resp = _render(request, "registration/logged_out.html", {"user": None})
    else:
        resp = RedirectResponse(target, status_code=302)
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Password change (login required)
# ---------------------------------------------------------------------------


@router.get(route_path("password_change"), response_class=HTMLResponse, name="password_change")
def password_change_form(request: Request, user: User = Depends(login_required)) -> HTMLResponse:
    return _render(request, "registration/password_change_form.html", {"user": user, "errors": {}})


@router.post(route_path("password_change"), response_class=HTMLResponse, name="password_change")
def password_change_post(
    request: Request,
    old_password: str = Form(""),
    new_password1: str = Form(""),
    new_password2: str = Form(""),
    user: User = Depends(login_required),
):
    errors = validate_password_change(user, old_password, new_password1, new_password2)
    if errors:
        return _render(request, "registration/password_change_form.html", {"user": user, "errors": errors})

    store = _store(request)
    store.set_password(user.id, hash_password(new_password2))
    logger.info("Password changed for %r", user.username)
    resp = _redirect_to(request, "password_change_done")
    # Fresh session so the user stays logged in after the change.
    issue_session(resp, store.get_by_id(user.id))
    return resp


@router.get(route_path("password_change_done"), response_class=HTMLResponse, name="password_change_done")
def password_change_done(request: Request, user: User = Depends(login_required)) -> HTMLResponse:
    return _render(request, "registration/password_change_done.html", {"user": user})


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def _send_reset_email(request: Request, user: User) -> None:
    uidb64 = encode_uid(user.id)
    token = make_password_reset_token(user)
    context = {
        "user": user,
        "site_name": request.url.netloc,
        "reset_url": str(request.url_for("password_reset_confirm", uidb64=uidb64, token=token)),
    }
    subject = templates.get_template("registration/password_reset_subject.txt").render(context)
    body = templates.get_template("registration/password_reset_email.txt").render(context)
    send_mail(subject.strip(), body, [user.email])


@router.get(route_path("password_reset"), response_class=HTMLResponse, name="password_reset")
def password_reset_form(request: Request) -> HTMLResponse:
    return _render(request, "registration/password_reset_form.html", {"errors": {}, "email": ""})


@router.post(route_path("password_reset"), response_class=HTMLResponse, name="password_reset")
def password_reset_post(request: Request, email: str = Form("")):
    """Mail a reset link to every active account with this address.

    The response is the same redirect whether or not any account matched,
    so the form cannot be used to discover registered addresses.
    """
    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        errors: FormErrors = {"email": ["Enter a valid email address."]}
        return _render(request, "registration/password_reset_form.html", {"errors": errors, "email": email[:254]})

    sent = 0
    for account in _store(request).get_active_by_email(email):
        if not account.has_usable_password:
            continue
        _send_reset_email(request, account)
        sent += 1
    logger.info("Password reset requested; %d email(s) sent", sent)
    return _redirect_to(request, "password_reset_done")


@router.get(route_path("password_reset_done"), response_class=HTMLResponse, name="password_reset_done")
def password_reset_done(request: Request) -> HTMLResponse:
    return _render(request, "registration/password_reset_done.html")


def _reset_user(request: Request, uidb64: str, token: str) -> Optional[User]:
    """Return the user a reset link belongs to, or None if the link is not live."""
    user_id = decode_uid(uidb64)
    user = _store(request).get_by_id(user_id) if user_id is not None else None
    if user is None or not user.is_active or not check_password_reset_token(user, token):
        return None
    return user


@router.get(route_path("password_reset_confirm"), response_class=HTMLResponse, name="password_reset_confirm")
def password_reset_confirm_form(request: Request, uidb64: str, token: str) -> HTMLResponse:
    validlink = _reset_user(request, uidb64, token) is not None
    return _render(
        request,
        "registration/password_reset_confirm.html",
        {"validlink": validlink, "errors": {}, "uidb64": uidb64, "token": token},
    )


@router.post(route_path("password_reset_confirm"), response_class=HTMLResponse, name="password_reset_confirm")
def password_reset_confirm_post(
    request: Request,
    uidb64: str,
    token: str,
    new_password1: str = Form(""),
    new_password2: str = Form(""),
):
    account = _reset_user(request, uidb64, token)
    context = {"validlink": account is not None, "errors": {}, "uidb64": uidb64, "token": token}
    if account is None:
        return _render(request, "registration/password_reset_confirm.html", context)

    errors = validate_new_password_pair(new_password1, new_password2, account.username)
    if errors:
        context["errors"] = errors
        return _render(request, "registration/password_reset_confirm.html", context)

    _store(request).set_password(account.id, hash_password(new_password2))
    logger.info("Password reset completed for %r", account.username)
    return _redirect_to(request, "password_reset_complete")


@router.get(route_path("password_reset_complete"), response_class=HTMLResponse, name="password_reset_complete")
def password_reset_complete(request: Request) -> HTMLResponse:
    return _render(request, "registration/password_reset_complete.html")
