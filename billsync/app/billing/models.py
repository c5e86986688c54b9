"""Domain models for the billing reconciliation flow."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import PlanDescriptor


class AccountUser(BaseModel):
    """A member of a project who receives billing notifications."""

    name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AccountRecord(BaseModel):
    """Authoritative project state owned by the record store."""

    id: str
    slug: str
    stripe_id: Optional[str] = None
    plan: str
    usage_limit: int = Field(ge=0)
    links_limit: int = Field(ge=0)
    domains_limit: int = Field(ge=0)
    tags_limit: int = Field(ge=0)
    users_limit: int = Field(ge=0)
    billing_cycle_start: Optional[int] = Field(default=None, ge=1, le=31)
    domains: Tuple[str, ...] = ()
    users: Tuple[AccountUser, ...] = ()

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def user_emails(self) -> Tuple[str, ...]:
        return tuple(user.email for user in self.users if user.email)


class AccountChanges(BaseModel):
    """Field assignments applied to a project record in a single update."""

    stripe_id: Optional[str] = None
    billing_cycle_start: Optional[int] = Field(default=None, ge=1, le=31)
    plan: Optional[str] = None
    usage_limit: Optional[int] = Field(default=None, ge=0)
    links_limit: Optional[int] = Field(default=None, ge=0)
    domains_limit: Optional[int] = Field(default=None, ge=0)
    tags_limit: Optional[int] = Field(default=None, ge=0)
    users_limit: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_plan(cls, plan: PlanDescriptor, **extra: object) -> "AccountChanges":
        """Assignments that move a project onto ``plan``'s name and limits."""

        return cls(plan=plan.normalized_name, **plan.limits.to_record_fields(), **extra)

    def assignments(self) -> Dict[str, object]:
        return self.model_dump(exclude_none=True)


class AuditMessage(BaseModel):
    """Structured message for the operator audit channel."""

    message: str
    type: str = "cron"
    mention: bool = False

    model_config = ConfigDict(frozen=True)


class EffectKind(str, Enum):
    """Best-effort side effects triggered by a committed plan change."""

    SEND_UPGRADE_EMAIL = "send_upgrade_email"
    SEND_CANCELLATION_SURVEY_EMAIL = "send_cancellation_survey_email"
    INVALIDATE_DOMAIN_REDIRECT_CACHE = "invalidate_domain_redirect_cache"
    EMIT_AUDIT_LOG = "emit_audit_log"


class ReconciliationOutcome(str, Enum):
    """How a billing event was handled."""

    PURCHASED = "purchased"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    IGNORED = "ignored"
    INCOMPLETE_EVENT = "incomplete_event"
    UNRESOLVABLE_TARIFF = "unresolvable_tariff"
    STALE_EVENT = "stale_event"

    @property
    def mutated(self) -> bool:
        return self in {
            ReconciliationOutcome.PURCHASED,
            ReconciliationOutcome.UPDATED,
            ReconciliationOutcome.CANCELLED,
        }


@dataclass(frozen=True)
class EffectFailure:
    name: str
    error: str


@dataclass
class EffectReport:
    """Side log of a dispatched effect batch."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[EffectFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass(frozen=True)
class ReconciliationResult:
    """Typed result handed back to the webhook entry handler."""

    outcome: ReconciliationOutcome
    event_type: str
    account: Optional[AccountRecord] = None
    plan: Optional[str] = None
    effects: EffectReport = field(default_factory=EffectReport)


__all__ = [
    "AccountChanges",
    "AccountRecord",
    "AccountUser",
    "AuditMessage",
    "EffectFailure",
    "EffectKind",
    "EffectReport",
    "ReconciliationOutcome",
    "ReconciliationResult",
]
