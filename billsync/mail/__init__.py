"""Email delivery and billing email rendering."""

from .providers import (
    DevPrintProvider,
    EmailProvider,
    OutboundEmail,
    SMTPProvider,
    create_email_provider,
)
from .renderer import render_cancellation_survey, render_upgrade_email

__all__ = [
    "DevPrintProvider",
    "EmailProvider",
    "OutboundEmail",
    "SMTPProvider",
    "create_email_provider",
    "render_cancellation_survey",
    "render_upgrade_email",
]
