"""
auth/mail.py -- Outgoing email delivery.

Backends (Settings.email_backend):
  console -- write the message to the "sitegate.mail" logger at INFO.
             Suitable for development: reset links show up in the server log.
  memory  -- append the message to the module-level `outbox` list. Tests
             read and clear it.

send_mail() looks the backend up on every call so tests can switch backends
by changing settings without re-importing this module.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from auth.models import EmailMessage
from core.config import get_settings

logger = logging.getLogger("sitegate.mail")

outbox: list[EmailMessage] = []


def _console_backend(message: EmailMessage) -> None:
    logger.info(
        "Email to %s\nFrom: %s\nSubject: %s\n\n%s",
        ", ".join(message.to),
        message.from_email,
        message.subject,
        message.body,
    )


def _memory_backend(message: EmailMessage) -> None:
    outbox.append(message)


_BACKENDS = {
    "console": _console_backend,
    "memory": _memory_backend,
}


def send_mail(subject: str, body: str, to: list[str], from_email: str | None = None) -> EmailMessage:
    """Build an EmailMessage and hand it to the configured backend."""
    settings = get_settings()
    # Headers are single-line; a newline in the subject would start a new one.
    subject = " ".join(subject.splitlines())
    message = EmailMessage(
        subject=subject,
        body=body,
        from_email=from_email or settings.default_from_email,
        to=list(to),
    )
    _BACKENDS[settings.email_backend](message)
    return message
