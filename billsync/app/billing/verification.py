"""Stripe webhook signature verification."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import stripe

from .exceptions import InvalidSignature, VerificationFailed

logger = logging.getLogger(__name__)


def verify_event(
    payload: bytes,
    signature: Optional[str],
    secret: Optional[str],
    *,
    tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE,
) -> Dict[str, Any]:
    """Validate ``payload`` against the ``Stripe-Signature`` header and parse it.

    ``payload`` must be the body exactly as received; the signature covers the
    raw bytes, so decoding and re-serializing first breaks verification.
    """

    if not signature:
        raise InvalidSignature("Missing Stripe-Signature header")
    if not secret:
        raise InvalidSignature("Stripe webhook secret is not configured")

    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance)
        event = json.loads(body)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid Stripe signature: %s", exc)
        raise VerificationFailed(str(exc)) from exc
    except ValueError as exc:
        logger.warning("Failed to parse Stripe webhook: %s", exc)
        raise VerificationFailed(f"Invalid payload: {exc}") from exc

    if not isinstance(event, dict):
        raise VerificationFailed("Invalid payload: expected a JSON object")
    return event


__all__ = ["verify_event"]
