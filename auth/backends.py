"""
auth/backends.py -- Pluggable authentication backends.

A backend verifies one kind of credential against the user store and returns
the matching User or None. Settings.auth_backends lists backend names in the
order they are tried; authenticate() returns the first match.

Timing equalization:
  Every backend runs bcrypt exactly once whether or not the identifier
  matches a user, so response time does not reveal which usernames or
  emails exist. Do NOT add an early return before the password check.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from auth.models import User
from auth.store import UserStore
from auth.tokens import verify_dummy_password, verify_password
from core.config import get_settings

logger = logging.getLogger("sitegate.auth")


class PasswordBackend:
    """Base class: look a user up by some identifier, then check the password."""

    name = ""

    def lookup(self, store: UserStore, identifier: str) -> User | None:
        raise NotImplementedError

    def authenticate(self, store: UserStore, identifier: str, password: str) -> User | None:
        user = self.lookup(store, identifier)
        if user is None or not user.has_usable_password:
            verify_dummy_password(password)
            return None
        if not verify_password(password, user.hashed_password):
            return None
        if not user.is_active:
            return None
        return user


class UsernameBackend(PasswordBackend):
    name = "username"

    def lookup(self, store: UserStore, identifier: str) -> User | None:
        return store.get_by_username(identifier)


class EmailBackend(PasswordBackend):
    """Log in with an email address instead of a username.

    When several accounts share the address, the oldest one is used.
    """

    name = "email"

    def lookup(self, store: UserStore, identifier: str) -> User | None:
        if "@" not in identifier:
            return None
        matches = store.get_active_by_email(identifier)
        return matches[0] if matches else None


BACKENDS: dict[str, type[PasswordBackend]] = {
    UsernameBackend.name: UsernameBackend,
    EmailBackend.name: EmailBackend,
}


def get_backends(names: list[str] | None = None) -> list[PasswordBackend]:
    """Instantiate the configured backends in order."""
    names = names if names is not None else get_settings().auth_backends
    return [BACKENDS[name]() for name in names]


def authenticate(store: UserStore, identifier: str, password: str) -> User | None:
    """Try each configured backend in turn. Returns the User on success, None otherwise.

    A successful login stamps last_login, which also invalidates any
    outstanding password reset link for that user.
    """
    for backend in get_backends():
        user = backend.authenticate(store, identifier, password)
        if user is not None:
            store.update_last_login(user.id)
            logger.info("Login succeeded for %r via %s backend", user.username, backend.name)
            return user
    logger.info("Login failed for %r", identifier[:150])
    return None
