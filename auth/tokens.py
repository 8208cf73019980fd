"""
auth/tokens.py -- JWT sessions, password hashing and password-reset tokens.

Security design decisions:
  JWT: python-jose with HS256. Session tokens are signed with SECRET_KEY and
       carry user_id, username, role, and expiry. Verification returns None on
       any failure -- the dependency layer turns that into "anonymous".

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in the authentication backends so response time does not
       reveal whether a username exists.

  Reset tokens: JWTs with purpose="password_reset" and a fingerprint of the
       user's current password hash and last_login stamp. Changing the
       password or logging in changes the fingerprint, so a reset link works
       at most once and dies as soon as it is no longer needed. Nothing is
       stored server-side.

  uidb64: the user id in reset URLs, URL-safe base64 without padding.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("sitegate.auth")

_settings = get_settings()

_ALGORITHM = "HS256"
_RESET_PURPOSE = "password_reset"
COOKIE_NAME = "access_token"
_MAX_UID = 2**63 - 1

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates input at 72 bytes; the form and API layers cap password
    length well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store; treat as a mismatch.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Backends verify against this hash when the
# identifier matches no user.
_DUMMY_HASH: str = hash_password("sitegate_timing_dummy")


def verify_dummy_password(plain: str) -> None:
    """Burn one bcrypt check. Used on the unknown-user path of every backend."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, username: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed session JWT.

    Args:
        user_id:        Numeric user ID stored in the DB.
        username:       Username stored as the JWT subject claim.
        role:           "admin" or "user".
        expire_seconds: Lifetime in seconds. 0 uses Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": username,
        "user_id": user_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload dict or None on any failure.

    Reset tokens are signed with the same key; the purpose claim keeps them
    from being accepted as sessions.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "role" not in payload or "purpose" in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


def _reset_fingerprint(user: User) -> str:
    material = f"{user.id}:{user.hashed_password or ''}:{user.last_login or ''}"
    return hmac.new(_settings.secret_key.encode(), material.encode(), hashlib.sha256).hexdigest()[:32]


def make_password_reset_token(user: User) -> str:
    """Return a signed, expiring token that lets `user` set a new password once."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=_settings.password_reset_timeout)
    payload = {
        "uid": user.id,
        "purpose": _RESET_PURPOSE,
        "fp": _reset_fingerprint(user),
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def check_password_reset_token(user: User | None, token: str) -> bool:
    """Return True if `token` is a live reset token for `user`."""
    if user is None or not token:
        return False
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return False
    if payload.get("purpose") != _RESET_PURPOSE or payload.get("uid") != user.id:
        return False
    return hmac.compare_digest(str(payload.get("fp", "")), _reset_fingerprint(user))


def encode_uid(user_id: int) -> str:
    return base64.urlsafe_b64encode(str(user_id).encode()).decode().rstrip("=")


def decode_uid(uidb64: str) -> int | None:
    """Inverse of encode_uid(). Returns None for anything that is not an encoded int.

    Ids outside 1.._MAX_UID (SQLite's signed 64-bit INTEGER) are rejected here,
    before they reach the store.
    """
    padded = uidb64 + "=" * (-len(uidb64) % 4)
    try:
        user_id = int(base64.urlsafe_b64decode(padded.encode()).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not 0 < user_id <= _MAX_UID:
        return None
    return user_id


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME, httponly=True, samesite="lax", secure=_settings.secure_cookies)


def issue_session(response, user: User) -> None:
    """Create a session token for `user` and attach it to `response`."""
    token = create_access_token(user.id, user.username, user.role)
    set_auth_cookie(response, token)
    response.headers["Cache-Control"] = "no-store"
