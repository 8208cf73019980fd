"""
auth/urls.py -- The authentication URL table.

Path -> route name for every account page, relative to ACCOUNTS_PREFIX.
web/routes.py registers its handlers from this table (route_path()), the JSON
API publishes it at GET /api/v1/auth/routes, and `main.py urls` prints it, so
the three can never disagree.

Route names are what LOGIN_URL / LOGIN_REDIRECT_URL / LOGOUT_REDIRECT_URL
refer to when they hold a name instead of a literal URL.
"""

from __future__ import annotations

from dataclasses import dataclass

ACCOUNTS_PREFIX = "/accounts"


@dataclass(frozen=True)
class AuthRoute:
    name: str
    path: str  # relative to ACCOUNTS_PREFIX, FastAPI {param} syntax
    methods: tuple[str, ...] = ("GET",)

    @property
    def full_path(self) -> str:
        return f"{ACCOUNTS_PREFIX}/{self.path}"


AUTH_URL_TABLE: tuple[AuthRoute, ...] = (
    AuthRoute("login", "login/", ("GET", "POST")),
    AuthRoute("logout", "logout/", ("POST",)),
    AuthRoute("password_change", "password_change/", ("GET", "POST")),
    AuthRoute("password_change_done", "password_change/done/"),
    AuthRoute("password_reset", "password_reset/", ("GET", "POST")),
    AuthRoute("password_reset_done", "password_reset/done/"),
    AuthRoute("password_reset_confirm", "reset/{uidb64}/{token}/", ("GET", "POST")),
    AuthRoute("password_reset_complete", "reset/done/"),
)

_BY_NAME = {route.name: route for route in AUTH_URL_TABLE}


def route_path(name: str) -> str:
    """Absolute path template for a table entry. KeyError for unknown names."""
    return _BY_NAME[name].full_path
