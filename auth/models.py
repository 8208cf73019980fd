"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """An identity that can log in to SiteGate.

    hashed_password is None for accounts with an unusable password (created
    without one). Such accounts cannot log in with a password and never
    receive password reset emails.

    last_login feeds the password reset token fingerprint: a reset link
    stops working as soon as the user logs in again.
    """

    username: str
    role: str = "user"  # "admin" or "user"
    id: int | None = None
    email: str = ""
    hashed_password: str | None = None
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True

    @property
    def has_usable_password(self) -> bool:
        return bool(self.hashed_password)


@dataclass
class EmailMessage:
    """An outgoing email. Rendered by the caller, delivered by auth/mail.py."""

    subject: str
    body: str
    from_email: str
    to: list[str] = field(default_factory=list)
