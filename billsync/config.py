"""Runtime configuration for the billing webhook service."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the primary record store."""

    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int

    def as_connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class SMTPSettings:
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True


@dataclass(frozen=True)
class EmailConfig:
    """Outbound email settings for billing notifications.

    ``survey_from_email`` is the personal sender used for cancellation
    surveys; it falls back to ``from_email`` when unset.
    """

    provider_name: str
    from_email: str
    survey_from_email: str
    app_name: str
    smtp: SMTPSettings = field(default_factory=SMTPSettings)


@dataclass(frozen=True)
class WebhookConfig:
    """Settings consumed by the Stripe callback and its collaborators."""

    stripe_webhook_secret: Optional[str]
    stripe_api_key: Optional[str]
    redis_url: Optional[str]
    slack_webhook_url: Optional[str]
    slack_mention: Optional[str]
    notification_concurrency: int
    plan_catalog_path: Optional[str]


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def load_database_config(env: Optional[Mapping[str, str]] = None) -> DatabaseConfig:
    env_mapping = os.environ if env is None else env
    return DatabaseConfig(
        host=env_mapping.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        dbname=env_mapping.get("DB_NAME", "dub"),
        user=env_mapping.get("DB_USER", "dub"),
        password=env_mapping.get("DB_PASSWORD", ""),
        connect_timeout=_parse_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT", "5")),
    )


def load_email_config(env: Optional[Mapping[str, str]] = None) -> EmailConfig:
    """Load :class:`EmailConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    from_email = env_mapping.get("FROM_EMAIL", "noreply@example.com")
    return EmailConfig(
        provider_name=(env_mapping.get("EMAIL_PROVIDER") or "dev").strip().lower() or "dev",
        from_email=from_email,
        survey_from_email=env_mapping.get("SURVEY_SENDER") or from_email,
        app_name=env_mapping.get("APP_NAME", "Dub.co"),
        smtp=SMTPSettings(
            host=env_mapping.get("SMTP_HOST", "localhost"),
            port=_to_int(env_mapping.get("SMTP_PORT"), default=587),
            username=env_mapping.get("SMTP_USER") or None,
            password=env_mapping.get("SMTP_PASS") or None,
            use_tls=_to_bool(env_mapping.get("SMTP_USE_TLS"), default=True),
        ),
    )


def load_webhook_config(env: Optional[Mapping[str, str]] = None) -> WebhookConfig:
    """Load :class:`WebhookConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    concurrency = max(1, _to_int(env_mapping.get("NOTIFICATION_CONCURRENCY"), default=4))

    return WebhookConfig(
        stripe_webhook_secret=env_mapping.get("STRIPE_WEBHOOK_SECRET") or None,
        stripe_api_key=env_mapping.get("STRIPE_API_KEY") or None,
        redis_url=env_mapping.get("REDIS_URL") or None,
        slack_webhook_url=env_mapping.get("SLACK_WEBHOOK_URL") or None,
        slack_mention=env_mapping.get("SLACK_MENTION") or None,
        notification_concurrency=concurrency,
        plan_catalog_path=env_mapping.get("PLAN_CATALOG_PATH") or None,
    )


__all__ = [
    "DatabaseConfig",
    "EmailConfig",
    "SMTPSettings",
    "WebhookConfig",
    "load_database_config",
    "load_email_config",
    "load_webhook_config",
]
