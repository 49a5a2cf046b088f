"""Outgoing mail used by the task examples."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage

import structlog

from guide_common.config import Settings, get_settings

logger = structlog.get_logger()

_SMTP_TIMEOUT_S = 10


def deliver_email(to: str, subject: str, body: str, *, settings: Settings | None = None) -> None:
    """Send a plain-text message through the configured SMTP relay.

    Raises:
        smtplib.SMTPException: If the relay refuses the message.
        OSError: If the relay cannot be reached.
    """
    settings = settings or get_settings()
    message = EmailMessage()
    message["From"] = settings.mail_sender
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=_SMTP_TIMEOUT_S) as smtp:
        smtp.send_message(message)
    logger.info("email_sent", to=to, subject=subject)
