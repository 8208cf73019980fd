"""
auth/redirects.py -- Post-login / post-logout redirect resolution.

Where does a client go after it logs in or out?

  1. A caller-supplied ?next= value (hidden form field first, then query
     string) wins, provided it is safe (see is_safe_redirect()).
  2. Otherwise the configured default: LOGIN_REDIRECT_URL after login,
     LOGOUT_REDIRECT_URL after logout.

Default targets are resolved by resolve_url(): a value containing "/" is a
literal URL and is returned untouched; anything else is the name of a
registered route and is reversed to its path. An unknown name raises
RedirectResolutionError. check_redirect_settings() runs every configured
name through resolve_url() at startup so a typo fails the boot, not the
first login.

Open redirect prevention:
  An unsafe next is silently ignored and the default target is used instead.
  Safe means a server-local path ("/..." but not "//...") or an http(s) URL
  whose host is the request's own host or listed in ALLOWED_REDIRECT_HOSTS.
  Backslashes are checked both as-is and normalized to "/" because browsers
  treat "/\\evil.example" as "//evil.example".

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import unicodedata
from typing import TYPE_CHECKING, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from starlette.responses import RedirectResponse
from starlette.routing import NoMatchFound

from core.config import Settings, get_settings

if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger("sitegate.auth")

REDIRECT_FIELD_NAME = "next"


class RedirectResolutionError(ValueError):
    """A redirect target names a route that is not registered."""


# ---------------------------------------------------------------------------
# Target resolution
# ---------------------------------------------------------------------------


def resolve_url(target: str, app, **path_params) -> str:
    """Resolve a configured redirect target to a URL.

    Args:
        target:      Literal URL (contains "/") or route name (no "/").
        app:         Anything with url_path_for(): a FastAPI/Starlette app or router.
        path_params: Forwarded to url_path_for() for parameterized routes.

    Raises:
        RedirectResolutionError: target is empty or names no registered route.
    """
    if not target:
        raise RedirectResolutionError("Redirect target is empty.")
    if "/" in target:
        return target
    try:
        return str(app.url_path_for(target, **path_params))
    except NoMatchFound as exc:
        raise RedirectResolutionError(f"No route named {target!r} is registered.") from exc


def check_redirect_settings(app, settings: Settings) -> None:
    """Resolve every configured redirect target once. Raise if any fails.

    LOGOUT_REDIRECT_URL may be empty (render the logged-out page);
    LOGIN_URL and LOGIN_REDIRECT_URL may not.
    """
    targets = {
        "LOGIN_URL": settings.login_url,
        "LOGIN_REDIRECT_URL": settings.login_redirect_url,
    }
    if settings.logout_redirect_url:
        targets["LOGOUT_REDIRECT_URL"] = settings.logout_redirect_url

    errors = []
    for setting_name, target in targets.items():
        try:
            resolved = resolve_url(target, app)
        except RedirectResolutionError as exc:
            errors.append(f"{setting_name}={target!r}: {exc}")
            continue
        logger.debug("%s resolves to %s", setting_name, resolved)
    if errors:
        raise RedirectResolutionError("Invalid redirect settings: " + "; ".join(errors))


# ---------------------------------------------------------------------------
# next= validation
# ---------------------------------------------------------------------------


def is_safe_redirect(url: Optional[str], allowed_hosts: set[str], require_https: bool = False) -> bool:
    """Return True if `url` may be used as a redirect target.

    Accepts server-local paths and http(s) URLs whose host is in
    `allowed_hosts`. With require_https, absolute URLs must be https.
    """
    if url is not None:
        url = url.strip()
    if not url:
        return False
    hosts = {h.lower() for h in allowed_hosts}
    return _is_safe(url, hosts, require_https) and _is_safe(url.replace("\\", "/"), hosts, require_https)


def _is_safe(url: str, allowed_hosts: set[str], require_https: bool) -> bool:
    if url.startswith("///"):
        return False
    if any(unicodedata.category(ch)[0] == "C" for ch in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    # "javascript:alert(1)", "http:///path"
    if parts.scheme and not parts.netloc:
        return False
    if not parts.scheme and not parts.netloc:
        return url.startswith("/")
    # "//host/path" is protocol-relative; browsers use the page's scheme.
    scheme = parts.scheme.lower() or "http"
    valid_schemes = {"https"} if require_https else {"http", "https"}
    return parts.netloc.lower() in allowed_hosts and scheme in valid_schemes


def get_allowed_hosts(request: Request) -> set[str]:
    settings = get_settings()
    return {request.url.netloc.lower(), *settings.allowed_redirect_hosts}


def get_redirect_target(request: Request, form_value: Optional[str] = None) -> str:
    """Return the caller-supplied next value if present and safe, else "".

    The form field takes precedence over the query parameter.
    """
    candidate = form_value or request.query_params.get(REDIRECT_FIELD_NAME, "")
    if not candidate:
        return ""
    if is_safe_redirect(candidate, get_allowed_hosts(request), require_https=request.url.scheme == "https"):
        return candidate.strip()
    logger.warning("Ignoring unsafe %s=%r on %s", REDIRECT_FIELD_NAME, candidate[:200], request.url.path)
    return ""


# ---------------------------------------------------------------------------
# Success URLs
# ---------------------------------------------------------------------------


def login_success_url(request: Request, next_value: Optional[str] = None) -> str:
    """Where to send the client after a successful login."""
    return get_redirect_target(request, next_value) or resolve_url(get_settings().login_redirect_url, request.app)


def logout_success_url(request: Request, next_value: Optional[str] = None) -> Optional[str]:
    """Where to send the client after logout, or None to render the logged-out page."""
    target = get_redirect_target(request, next_value)
    if target:
        return target
    default = get_settings().logout_redirect_url
    return resolve_url(default, request.app) if default else None


def redirect_to_login(request: Request) -> RedirectResponse:
    """302 to LOGIN_URL carrying the current path and query string in ?next=.

    Any query string already on LOGIN_URL is kept; only next is replaced.
    """
    login_url = resolve_url(get_settings().login_url, request.app)
    current = request.url.path
    if request.url.query:
        current = f"{current}?{request.url.query}"

    parts = urlsplit(login_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != REDIRECT_FIELD_NAME]
    query.append((REDIRECT_FIELD_NAME, current))
    location = urlunsplit(parts._replace(query=urlencode(query, safe="/")))
    return RedirectResponse(location, status_code=302)
