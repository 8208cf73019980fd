"""
tests/test_redirects.py -- Unit tests for auth/redirects.py.

resolve_url() and check_redirect_settings() run against the assembled app
(asgi.app) so route names are the real ones. is_safe_redirect() is a pure
function and is tested directly.
"""

from __future__ import annotations

import pytest

from asgi import app
from auth.redirects import RedirectResolutionError, check_redirect_settings, is_safe_redirect, resolve_url
from auth.urls import AUTH_URL_TABLE, route_path


class TestResolveUrl:
    def test_route_name_is_reversed(self) -> None:
        assert resolve_url("home", app) == "/"
        assert resolve_url("login", app) == "/accounts/login/"
        assert resolve_url("user_list", app) == "/users/"

    def test_page_names_win_over_api_routes(self) -> None:
        """The JSON login/logout endpoints must not shadow the page route names."""
        assert resolve_url("login", app) == "/accounts/login/"
        assert resolve_url("logout", app) == "/accounts/logout/"
        assert resolve_url("api_login", app) == "/api/v1/auth/login"
        assert resolve_url("api_logout", app) == "/api/v1/auth/logout"

    def test_parameterized_route(self) -> None:
        assert resolve_url("password_reset_confirm", app, uidb64="MQ", token="abc") == "/accounts/reset/MQ/abc/"

    @pytest.mark.parametrize("literal", ["/", "/dashboard/", "https://example.com/welcome", "../up/"])
    def test_value_with_separator_is_literal(self, literal: str) -> None:
        assert resolve_url(literal, app) == literal

    def test_literal_is_not_checked_against_routes(self) -> None:
        assert resolve_url("/no/such/page/", app) == "/no/such/page/"

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(RedirectResolutionError, match="no_such_route"):
            resolve_url("no_such_route", app)

    def test_empty_target_raises(self) -> None:
        with pytest.raises(RedirectResolutionError):
            resolve_url("", app)

    def test_resolution_error_is_value_error(self) -> None:
        assert issubclass(RedirectResolutionError, ValueError)


class TestUrlTable:
    def test_every_table_entry_is_registered(self) -> None:
        for route in AUTH_URL_TABLE:
            if route.name == "password_reset_confirm":
                continue
            assert resolve_url(route.name, app) == route.full_path

    def test_confirm_route_has_two_path_parameters(self) -> None:
        assert route_path("password_reset_confirm") == "/accounts/reset/{uidb64}/{token}/"

    def test_table_names(self) -> None:
        assert [r.name for r in AUTH_URL_TABLE] == [
            "login",
            "logout",
            "password_change",
            "password_change_done",
            "password_reset",
            "password_reset_done",
            "password_reset_confirm",
            "password_reset_complete",
        ]


class TestCheckRedirectSettings:
    def test_defaults_pass(self, settings) -> None:
        check_redirect_settings(app, settings)

    def test_literal_targets_pass(self, settings) -> None:
        custom = settings.model_copy(
            update={"login_url": "/sso/", "login_redirect_url": "/app/", "logout_redirect_url": "/bye/"}
        )
        check_redirect_settings(app, custom)

    def test_empty_logout_target_is_allowed(self, settings) -> None:
        check_redirect_settings(app, settings.model_copy(update={"logout_redirect_url": ""}))

    def test_unknown_names_are_all_reported(self, settings) -> None:
        custom = settings.model_copy(update={"login_redirect_url": "dashbord", "logout_redirect_url": "byebye"})
        with pytest.raises(RedirectResolutionError) as excinfo:
            check_redirect_settings(app, custom)
        message = str(excinfo.value)
        assert "LOGIN_REDIRECT_URL" in message
        assert "LOGOUT_REDIRECT_URL" in message

    def test_empty_login_url_fails(self, settings) -> None:
        with pytest.raises(RedirectResolutionError, match="LOGIN_URL"):
            check_redirect_settings(app, settings.model_copy(update={"login_url": ""}))


class TestIsSafeRedirect:
    HOSTS = {"testserver", "docs.example.com"}

    @pytest.mark.parametrize(
        "url",
        [
            "/",
            "/users/",
            "/users/?page=2",
            "/accounts/reset/done/#top",
            "http://testserver/users/",
            "https://docs.example.com/guide",
            "//testserver/users/",
            "  /padded/  ",
        ],
    )
    def test_safe(self, url: str) -> None:
        assert is_safe_redirect(url, self.HOSTS)

    @pytest.mark.parametrize(
        "url",
        [
            None,
            "",
            "   ",
            "https://attacker.example/",
            "//attacker.example/",
            "///attacker.example/",
            "/\\attacker.example/",
            "\\\\attacker.example/",
            "\\/attacker.example/",
            "javascript:alert(1)",
            "data:text/html,hi",
            "ftp://testserver/file",
            "http:///attacker.example/",
            "relative/path/",
            "/users/\x00",
            "\x08//attacker.example/",
        ],
    )
    def test_unsafe(self, url) -> None:
        assert not is_safe_redirect(url, self.HOSTS)

    def test_host_match_is_case_insensitive(self) -> None:
        assert is_safe_redirect("https://DOCS.example.com/", self.HOSTS)
        assert is_safe_redirect("https://docs.example.com/", {"Docs.Example.com"})

    def test_require_https(self) -> None:
        assert not is_safe_redirect("http://testserver/users/", self.HOSTS, require_https=True)
        assert is_safe_redirect("https://testserver/users/", self.HOSTS, require_https=True)
        # Relative paths inherit the page's scheme.
        assert is_safe_redirect("/users/", self.HOSTS, require_https=True)

    def test_port_is_part_of_host(self) -> None:
        assert not is_safe_redirect("http://testserver:8080/", {"testserver"})
        assert is_safe_redirect("http://testserver:8080/", {"testserver:8080"})
