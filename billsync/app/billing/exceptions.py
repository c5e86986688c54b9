"""Errors raised while verifying and reconciling billing webhooks."""
from __future__ import annotations


class WebhookVerificationError(Exception):
    """The request could not be turned into a trusted provider event."""


class InvalidSignature(WebhookVerificationError):
    """The signature header or the shared secret is missing."""


class VerificationFailed(WebhookVerificationError):
    """The signature does not match the payload, or the payload is malformed."""


class ReconciliationError(Exception):
    """Processing failed after verification; the provider should re-deliver."""


class RecordStoreFailure(ReconciliationError):
    """The record store rejected or could not complete an operation."""

    def __init__(self, operation: str, error: BaseException) -> None:
        self.operation = operation
        self.error = error
        super().__init__(f"{operation} failed: {error}")


class ProviderLookupFailure(ReconciliationError):
    """Fetching supplementary data from the payment provider failed."""


__all__ = [
    "InvalidSignature",
    "ProviderLookupFailure",
    "ReconciliationError",
    "RecordStoreFailure",
    "VerificationFailed",
    "WebhookVerificationError",
]
