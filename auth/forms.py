"""
auth/forms.py -- Validation for the account forms (sign-up, password change,
password reset confirm).

Each validate_* function returns a FormErrors mapping of field name -> list
of messages. An empty mapping means the form is valid. Pages re-render the
form with these messages next to the fields; nothing here raises for user
input.

Password rules (validate_password):
  - at least PASSWORD_MIN_LENGTH characters
  - at most 72 bytes UTF-8 (bcrypt's input limit)
  - not entirely numeric
  - not the same as the username
"""

from __future__ import annotations

import re

from auth.models import User
from auth.store import UserStore
from auth.tokens import verify_password
from core.config import get_settings

FormErrors = dict[str, list[str]]

USERNAME_PATTERN = re.compile(r"^[\w.@+-]{1,150}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MAX_PASSWORD_BYTES = 72


def _add(errors: FormErrors, field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def validate_password(password: str, username: str = "") -> list[str]:
    messages = []
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        messages.append(f"This password is too short. It must contain at least {min_length} characters.")
    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        messages.append("This password is too long.")
    if password.isdigit():
        messages.append("This password is entirely numeric.")
    if username and password.lower() == username.lower():
        messages.append("The password is too similar to the username.")
    return messages


def validate_new_password_pair(
    password1: str,
    password2: str,
    username: str = "",
    field1: str = "new_password1",
    field2: str = "new_password2",
) -> FormErrors:
    """Check a "new password" + "confirm" pair."""
    errors: FormErrors = {}
    if not password1:
        _add(errors, field1, "This field is required.")
    if not password2:
        _add(errors, field2, "This field is required.")
    if errors:
        return errors
    if password1 != password2:
        _add(errors, field2, "The two password fields didn't match.")
        return errors
    for message in validate_password(password2, username):
        _add(errors, field2, message)
    return errors


def validate_signup(store: UserStore, username: str, email: str, password1: str, password2: str) -> FormErrors:
    errors: FormErrors = {}
    username = username.strip()
    if not username:
        _add(errors, "username", "This field is required.")
    elif not USERNAME_PATTERN.match(username):
        _add(
            errors,
            "username",
            "Enter a valid username. This value may contain only letters, numbers, and @/./+/-/_ characters.",
        )
    elif store.get_by_username(username) is not None:
        _add(errors, "username", "A user with that username already exists.")

    email = email.strip()
    if email and not EMAIL_PATTERN.match(email):
        _add(errors, "email", "Enter a valid email address.")

    errors.update(validate_new_password_pair(password1, password2, username, "password1", "password2"))
    return errors


def validate_password_change(user: User, old_password: str, new_password1: str, new_password2: str) -> FormErrors:
    errors: FormErrors = {}
    if not user.has_usable_password or not verify_password(old_password, user.hashed_password):
        _add(errors, "old_password", "Your old password was entered incorrectly. Please enter it again.")
    errors.update(validate_new_password_pair(new_password1, new_password2, user.username))
    return errors
