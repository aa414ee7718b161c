"""
auth/mailer.py -- Outbound email for the forgot-password flow.

CredentialService depends only on the EmailSender protocol. Two
implementations ship here:

  SmtpEmailSender  -- smtplib, STARTTLS by default. Any SMTP or socket error
                      is re-raised as MailDeliveryError.
  LogEmailSender   -- writes the message to the log. Used when SMTP_HOST is
                      empty (local development), so the reset link can be
                      copied from the server output.

build_email_sender() picks one from Settings.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from core.config import Settings

logger = logging.getLogger("tourguard.mail")


class MailDeliveryError(Exception):
    """The message could not be handed to the mail server."""


class EmailSender(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


class SmtpEmailSender:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"SMTP delivery to {self.host}:{self.port} failed: {exc}") from exc
        logger.info("Sent '%s' to %s", subject, to)


class LogEmailSender:
    """Development sender. The body (including any reset link) goes to the log."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.warning("SMTP_HOST not set -- email not sent.\nTo: %s\nSubject: %s\n\n%s", to, subject, body)


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.smtp_host:
        return LogEmailSender()
    return SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        starttls=settings.smtp_starttls,
        timeout=settings.smtp_timeout_seconds,
    )
