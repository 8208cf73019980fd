"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SiteGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. login_redirect_url -> LOGIN_REDIRECT_URL).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Enforces the SECRET_KEY policy: dev mode generates a key
      with a warning, production mode refuses to start without one.

Redirect targets:
  login_url, login_redirect_url and logout_redirect_url each hold either a
  literal URL (anything containing "/") or the name of a registered route
  ("home", "login", ...). auth/redirects.py resolves them per request and
  check_redirect_settings() verifies every name at startup.

Layer rule: core/ is the kernel. This module may not import from api/, web/
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sitegate.config")

_KNOWN_BACKENDS = {"username", "email"}
_KNOWN_EMAIL_BACKENDS = {"console", "memory"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = "sqlite:///sitegate_auth.db"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Redirects
    # ------------------------------------------------------------------

    login_url: str = "login"
    login_redirect_url: str = "home"
    # Empty string = render the logged-out page instead of redirecting.
    logout_redirect_url: str = "home"
    # Extra hosts an absolute ?next= URL may point at. The request's own
    # host is always allowed.
    allowed_redirect_hosts: list[str] = []
    redirect_authenticated_user: bool = True

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    auth_backends: list[str] = ["username"]
    password_min_length: int = 8
    # Three days, in seconds.
    password_reset_timeout: int = 259200
    login_rate_limit: str = "10/minute"
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Mail
    # ------------------------------------------------------------------

    email_backend: str = "console"
    default_from_email: str = "webmaster@localhost"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("auth_backends")
    @classmethod
    def validate_auth_backends(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("AUTH_BACKENDS must name at least one backend.")
        unknown = set(value) - _KNOWN_BACKENDS
        if unknown:
            raise ValueError(f"Unknown authentication backends: {sorted(unknown)!r}")
        return value

    @field_validator("email_backend")
    @classmethod
    def validate_email_backend(cls, value: str) -> str:
        if value not in _KNOWN_EMAIL_BACKENDS:
            raise ValueError(f"Unknown EMAIL_BACKEND {value!r}; expected one of {sorted(_KNOWN_EMAIL_BACKENDS)}")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions and reset links will not survive a restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters. JWT signing and
            reset-token fingerprints both rely on key entropy.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or monkeypatch attributes on
    the returned instance for per-test overrides.
    """
    return Settings()
