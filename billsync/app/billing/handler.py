"""Entry point turning a raw Stripe callback into a response."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .events import classify_event
from .exceptions import WebhookVerificationError
from .models import ReconciliationResult
from .service import AccountReconciler
from .verification import verify_event

logger = logging.getLogger("billing")

HANDLER_FAILED_MESSAGE = 'Webhook error: "Webhook handler failed. View logs."'


@dataclass(frozen=True)
class WebhookResponse:
    """Status and body returned to the payment provider."""

    status_code: int
    body: Union[Dict[str, object], str]
    result: Optional[ReconciliationResult] = field(default=None, compare=False)

    @property
    def is_json(self) -> bool:
        return isinstance(self.body, dict)


class StripeWebhookHandler:
    """Verifies, classifies and reconciles one Stripe event per call."""

    def __init__(self, reconciler: AccountReconciler, *, webhook_secret: Optional[str]) -> None:
        self._reconciler = reconciler
        self._webhook_secret = webhook_secret

    def handle(self, payload: bytes, signature: Optional[str]) -> WebhookResponse:
        try:
            stripe_event = verify_event(payload, signature, self._webhook_secret)
            event = classify_event(stripe_event)
        except WebhookVerificationError as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            return WebhookResponse(status_code=400, body=f"Webhook Error: {exc}")

        try:
            result = self._reconciler.reconcile(event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Stripe webhook %s failed", stripe_event.get("id"))
            self._reconciler.alert(f"Stripe webhook failed. Error: {exc}", mention=True)
            return WebhookResponse(status_code=400, body=HANDLER_FAILED_MESSAGE)

        logger.info(
            "Handled Stripe event %s (%s): %s",
            stripe_event.get("id"),
            result.event_type,
            result.outcome.value,
        )
        return WebhookResponse(
            status_code=200,
            body={"received": True, "outcome": result.outcome.value},
            result=result,
        )


__all__ = ["HANDLER_FAILED_MESSAGE", "StripeWebhookHandler", "WebhookResponse"]
