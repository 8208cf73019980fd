"""Unit tests for auth/tokens.py and auth/backends.py.

Covers:
- Session JWT round trip; reset tokens are never accepted as sessions
- Reset tokens die when the password hash or last_login changes
- uidb64 encoding, including garbage input
- Username and email backends, inactive users, unusable passwords
"""

import pytest

from auth.backends import EmailBackend, UsernameBackend, authenticate, get_backends
from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    check_password_reset_token,
    create_access_token,
    decode_access_token,
    decode_uid,
    encode_uid,
    hash_password,
    make_password_reset_token,
    verify_password,
)


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def _add(store, username, password="right-horse-9", **fields):
    user_id = store.create_user(
        User(username=username, hashed_password=hash_password(password) if password else None, **fields)
    )
    return store.get_by_id(user_id)


# ---------------------------------------------------------------------------
# Passwords and session tokens
# ---------------------------------------------------------------------------


def test_password_hashing():
    hashed = hash_password("right-horse-9")
    assert hashed != "right-horse-9"
    assert verify_password("right-horse-9", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_session_token_round_trip():
    payload = decode_access_token(create_access_token(7, "alice", "admin"))
    assert payload["user_id"] == 7
    assert payload["sub"] == "alice"
    assert payload["role"] == "admin"


def test_garbage_session_token():
    assert decode_access_token("not-a-jwt") is None


def test_reset_token_is_not_a_session(store):
    user = _add(store, "alice")
    assert decode_access_token(make_password_reset_token(user)) is None


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def test_reset_token_valid_for_its_user(store):
    alice = _add(store, "alice")
    bob = _add(store, "bob")
    token = make_password_reset_token(alice)
    assert check_password_reset_token(alice, token)
    assert not check_password_reset_token(bob, token)
    assert not check_password_reset_token(None, token)
    assert not check_password_reset_token(alice, "")
    assert not check_password_reset_token(alice, create_access_token(alice.id, "alice", "user"))


def test_reset_token_dies_on_password_change(store):
    alice = _add(store, "alice")
    token = make_password_reset_token(alice)
    store.set_password(alice.id, hash_password("new-horse-10"))
    assert not check_password_reset_token(store.get_by_id(alice.id), token)


def test_reset_token_dies_on_login(store):
    alice = _add(store, "alice")
    token = make_password_reset_token(alice)
    store.update_last_login(alice.id)
    assert not check_password_reset_token(store.get_by_id(alice.id), token)


def test_reset_token_expires(store, settings, monkeypatch):
    alice = _add(store, "alice")
    monkeypatch.setattr(settings, "password_reset_timeout", -10)
    token = make_password_reset_token(alice)
    assert not check_password_reset_token(alice, token)


@pytest.mark.parametrize("user_id", [1, 42, 123456789])
def test_uid_encoding(user_id):
    encoded = encode_uid(user_id)
    assert "=" not in encoded
    assert decode_uid(encoded) == user_id


@pytest.mark.parametrize("garbage", ["", "!!!", "YWJj", "%%"])
def test_uid_garbage(garbage):
    assert decode_uid(garbage) is None


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


def test_username_backend(store):
    _add(store, "alice")
    backend = UsernameBackend()
    assert backend.authenticate(store, "alice", "right-horse-9").username == "alice"
    assert backend.authenticate(store, "alice", "wrong") is None
    assert backend.authenticate(store, "nobody", "right-horse-9") is None


def test_email_backend(store):
    first = _add(store, "alice", email="alice@example.com")
    _add(store, "alice2", email="alice@example.com")
    backend = EmailBackend()
    assert backend.authenticate(store, "ALICE@example.com", "right-horse-9").id == first.id
    assert backend.authenticate(store, "alice", "right-horse-9") is None


def test_inactive_and_unusable_users_rejected(store):
    _add(store, "sleeper", is_active=False)
    _add(store, "nopass", password=None)
    backend = UsernameBackend()
    assert backend.authenticate(store, "sleeper", "right-horse-9") is None
    assert backend.authenticate(store, "nopass", "") is None


def test_get_backends_order():
    assert [b.name for b in get_backends(["email", "username"])] == ["email", "username"]


def test_authenticate_uses_configured_backends(store, settings, monkeypatch):
    _add(store, "alice", email="alice@example.com")
    assert authenticate(store, "alice@example.com", "right-horse-9") is None

    monkeypatch.setattr(settings, "auth_backends", ["username", "email"])
    user = authenticate(store, "alice@example.com", "right-horse-9")
    assert user is not None
    assert store.get_by_id(user.id).last_login


@pytest.mark.parametrize("user_id", [0, -5, 2**63, 99999999999999999999999])
def test_uid_out_of_range(user_id):
    assert decode_uid(encode_uid(user_id)) is None
