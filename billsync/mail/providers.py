"""Email provider implementations used by the billing notifier."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Optional, Tuple

from ..config import EmailConfig, SMTPSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    """A rendered message ready for delivery.

    An empty ``html_body`` sends a plain-text only message. ``sender``
    overrides the provider's default from address.
    """

    recipients: Tuple[str, ...]
    subject: str
    text_body: str
    html_body: str = ""
    sender: Optional[str] = None


class EmailProvider:
    """Base provider for outbound email delivery."""

    name = "base"

    def __init__(self, *, from_email: str) -> None:
        self.from_email = from_email

    def sender_for(self, message: OutboundEmail) -> str:
        return message.sender or self.from_email

    def send(self, message: OutboundEmail) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"email_provider": self.name, "email_sender": self.from_email}


class DevPrintProvider(EmailProvider):
    """Development provider that logs messages instead of sending them."""

    name = "dev"

    def send(self, message: OutboundEmail) -> None:
        logger.info(
            "Dev email dispatch",
            extra={
                "email_recipient": ", ".join(message.recipients),
                "email_subject": message.subject,
                "email_sender": self.sender_for(message),
            },
        )


class SMTPProvider(EmailProvider):
    """SMTP delivery; one connection per message, all recipients in one envelope."""

    name = "smtp"

    def __init__(self, *, from_email: str, settings: SMTPSettings) -> None:
        super().__init__(from_email=from_email)
        self.settings = settings

    def build_mime(self, message: OutboundEmail) -> str:
        mime = MIMEMultipart("alternative")
        mime["From"] = self.sender_for(message)
        mime["To"] = ", ".join(message.recipients)
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.text_body, "plain", "utf-8"))
        if message.html_body:
            mime.attach(MIMEText(message.html_body, "html", "utf-8"))
        return mime.as_string()

    def send(self, message: OutboundEmail) -> None:
        if not message.recipients:
            return
        settings = self.settings
        with smtplib.SMTP(settings.host, settings.port, timeout=30) as client:
            if settings.use_tls:
                client.starttls()
            if settings.username and settings.password:
                client.login(settings.username, settings.password)
            client.sendmail(self.sender_for(message), list(message.recipients), self.build_mime(message))


def create_email_provider(config: EmailConfig) -> EmailProvider:
    if config.provider_name == "smtp":
        return SMTPProvider(from_email=config.from_email, settings=config.smtp)
    if config.provider_name != "dev":
        logger.warning("Unknown EMAIL_PROVIDER %r, falling back to dev provider", config.provider_name)
    return DevPrintProvider(from_email=config.from_email)


__all__ = [
    "DevPrintProvider",
    "EmailProvider",
    "OutboundEmail",
    "SMTPProvider",
    "create_email_provider",
]
