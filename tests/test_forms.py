"""Unit tests for auth/forms.py -- account form validation.

Each validator returns {field: [messages]}; an empty dict means valid.
"""

import pytest

from auth.forms import validate_new_password_pair, validate_password, validate_password_change, validate_signup
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def test_good_password():
    assert validate_password("correct-horse-7", "alice") == []


@pytest.mark.parametrize(
    "password, fragment",
    [
        ("short", "too short"),
        ("x" * 73, "too long"),
        ("12345678901", "entirely numeric"),
        ("alice-in-wonderland", None),
        ("ALICEALICE", None),
    ],
)
def test_password_rules(password, fragment):
    messages = validate_password(password, "alice")
    if fragment is None:
        assert messages == []
    else:
        assert any(fragment in m for m in messages)


def test_password_same_as_username():
    assert validate_password("Mallory1234", "mallory1234") == ["The password is too similar to the username."]


def test_min_length_follows_settings(settings, monkeypatch):
    monkeypatch.setattr(settings, "password_min_length", 12)
    assert validate_password("eleven-char", "") == [
        "This password is too short. It must contain at least 12 characters."
    ]


def test_password_pair():
    assert validate_new_password_pair("", "") == {
        "new_password1": ["This field is required."],
        "new_password2": ["This field is required."],
    }
    assert validate_new_password_pair("long-enough-1", "long-enough-2") == {
        "new_password2": ["The two password fields didn't match."]
    }
    assert validate_new_password_pair("long-enough-1", "long-enough-1") == {}


def test_signup_valid(store):
    assert validate_signup(store, "alice", "alice@example.com", "long-enough-1", "long-enough-1") == {}
    assert validate_signup(store, "bob", "", "long-enough-1", "long-enough-1") == {}


def test_signup_errors(store):
    store.create_user(User(username="taken"))
    errors = validate_signup(store, "taken", "bad", "short", "short")
    assert errors["username"] == ["A user with that username already exists."]
    assert errors["email"] == ["Enter a valid email address."]
    assert "too short" in errors["password2"][0]
    assert "password1" not in errors


def test_signup_bad_username(store):
    errors = validate_signup(store, "has space", "", "long-enough-1", "long-enough-1")
    assert errors["username"][0].startswith("Enter a valid username.")


def test_password_change(store):
    user_id = store.create_user(User(username="carol", hashed_password=hash_password("old-pass-123")))
    user = store.get_by_id(user_id)
    assert validate_password_change(user, "old-pass-123", "new-pass-456", "new-pass-456") == {}

    errors = validate_password_change(user, "nope", "new-pass-456", "new-pass-456")
    assert list(errors) == ["old_password"]


def test_password_change_unusable_password(store):
    user = store.get_by_id(store.create_user(User(username="dan")))
    errors = validate_password_change(user, "", "new-pass-456", "new-pass-456")
    assert "old_password" in errors
