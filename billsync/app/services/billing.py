"""Application wiring for the billing webhook handler."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Sequence

import stripe

from ...config import EmailConfig, WebhookConfig, load_email_config, load_webhook_config
from ...mail import (
    EmailProvider,
    create_email_provider,
    render_cancellation_survey,
    render_upgrade_email,
)
from ..billing import (
    AccountReconciler,
    AccountUser,
    AuditSink,
    BillingNotifier,
    EffectDispatcher,
    PaymentProvider,
    StripeWebhookHandler,
)
from ..billing.repository import PostgresAccountRepository
from ..entitlements import (
    DEFAULT_PLAN_CATALOG,
    InMemoryRedirectCache,
    PlanCatalog,
    PlanDescriptor,
    RedirectCache,
    RedisRedirectCache,
    load_plan_catalog,
)
from .audit import LoggingAuditSink, SlackAuditSink

logger = logging.getLogger("billing")


class EmailBillingNotifier(BillingNotifier):
    """Renders billing emails and hands them to the configured provider."""

    def __init__(self, provider: EmailProvider, config: EmailConfig) -> None:
        self._provider = provider
        self._config = config

    def send_upgrade_email(self, user: AccountUser, plan: PlanDescriptor) -> None:
        if not user.email:
            return
        self._provider.send(
            render_upgrade_email(
                email=user.email,
                name=user.name,
                plan=plan.name,
                app_name=self._config.app_name,
            )
        )

    def send_cancellation_survey(self, emails: Sequence[str]) -> None:
        message = render_cancellation_survey(
            recipients=emails,
            app_name=self._config.app_name,
            sender=self._config.survey_from_email,
        )
        if message.recipients:
            self._provider.send(message)


class StripePaymentProvider(PaymentProvider):
    """Looks up subscription details through the Stripe API."""

    def __init__(self, api_key: Optional[str]) -> None:
        self._api_key = api_key

    def retrieve_subscription_tariff(self, subscription_id: str) -> Optional[str]:
        if not self._api_key:
            raise RuntimeError("STRIPE_API_KEY is not set")
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=self._api_key)
        items = subscription["items"]["data"]
        if not items:
            return None
        return items[0]["price"]["id"]


def build_audit_sink(config: WebhookConfig) -> AuditSink:
    if config.slack_webhook_url:
        return SlackAuditSink(config.slack_webhook_url, mention=config.slack_mention)
    return LoggingAuditSink()


def build_redirect_cache(config: WebhookConfig) -> RedirectCache:
    if config.redis_url:
        return RedisRedirectCache.from_url(config.redis_url)
    logger.warning("REDIS_URL is not set; root redirects are tracked in memory only")
    return InMemoryRedirectCache()


def build_plan_catalog(config: WebhookConfig) -> PlanCatalog:
    if config.plan_catalog_path:
        return load_plan_catalog(config.plan_catalog_path)
    return DEFAULT_PLAN_CATALOG


def build_webhook_handler(
    config: WebhookConfig,
    email_config: EmailConfig,
    *,
    repository: Optional[PostgresAccountRepository] = None,
) -> StripeWebhookHandler:
    reconciler = AccountReconciler(
        repository=repository or PostgresAccountRepository(),
        provider=StripePaymentProvider(config.stripe_api_key),
        notifier=EmailBillingNotifier(create_email_provider(email_config), email_config),
        audit_sink=build_audit_sink(config),
        redirect_cache=build_redirect_cache(config),
        dispatcher=EffectDispatcher(max_workers=config.notification_concurrency),
        catalog=build_plan_catalog(config),
    )
    return StripeWebhookHandler(reconciler, webhook_secret=config.stripe_webhook_secret)


@lru_cache(maxsize=1)
def get_webhook_handler() -> StripeWebhookHandler:
    return build_webhook_handler(load_webhook_config(), load_email_config())


__all__ = [
    "EmailBillingNotifier",
    "StripePaymentProvider",
    "build_webhook_handler",
    "get_webhook_handler",
]
