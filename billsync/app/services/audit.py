"""Audit sinks forwarding billing messages to operators."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from ..billing import AuditMessage, AuditSink

logger = logging.getLogger("billing.audit")


class LoggingAuditSink(AuditSink):
    """Writes audit messages to the application log."""

    def log(self, message: AuditMessage) -> None:
        level = logging.WARNING if message.mention else logging.INFO
        logger.log(level, "[%s] %s", message.type, message.message)


class SlackAuditSink(AuditSink):
    """Posts audit messages to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        *,
        mention: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not webhook_url:
            raise ValueError("webhook_url must be provided")
        self._webhook_url = webhook_url
        self._mention = mention
        self._timeout = timeout
        self._session = session or requests.Session()
        self._fallback = LoggingAuditSink()

    def format(self, message: AuditMessage) -> str:
        if message.mention and self._mention:
            return f"<@{self._mention}> {message.message}"
        return message.message

    def log(self, message: AuditMessage) -> None:
        self._fallback.log(message)
        resp = self._session.post(
            self._webhook_url,
            json={"text": self.format(message)},
            timeout=self._timeout,
        )
        if resp.status_code >= 400:
            raise RuntimeError(f"Slack webhook failed: {resp.status_code} {resp.text}")


__all__ = ["LoggingAuditSink", "SlackAuditSink"]
