"""Domain models for plan limits and catalog entries."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

FREE_PLAN_NAME = "free"


@dataclass(frozen=True)
class PlanLimits:
    """Usage ceilings granted to a project by its plan."""

    clicks: int
    links: int
    domains: int
    tags: int
    users: int

    def to_record_fields(self) -> Dict[str, int]:
        """Map limits onto the project record's column names."""

        return {
            "usage_limit": self.clicks,
            "links_limit": self.links,
            "domains_limit": self.domains,
            "tags_limit": self.tags,
            "users_limit": self.users,
        }


@dataclass(frozen=True)
class PlanDescriptor:
    """Describes a subscription plan and the provider tariffs that select it."""

    name: str
    limits: PlanLimits
    tariff_ids: Tuple[str, ...] = ()

    @property
    def normalized_name(self) -> str:
        return self.name.lower()

    @property
    def is_free(self) -> bool:
        return self.normalized_name == FREE_PLAN_NAME


class PlanLimitsEntry(BaseModel):
    """JSON schema for plan limits in an external catalog file."""

    clicks: int = Field(ge=0)
    links: int = Field(ge=0)
    domains: int = Field(ge=0)
    tags: int = Field(ge=0)
    users: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class PlanEntry(BaseModel):
    """JSON schema for a single plan in an external catalog file."""

    name: str = Field(min_length=1)
    limits: PlanLimitsEntry
    tariff_ids: Tuple[str, ...] = Field(default_factory=tuple, alias="tariffIds")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("tariff_ids")
    @classmethod
    def _strip_blank_ids(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(item.strip() for item in value if item and item.strip())

    def to_descriptor(self) -> PlanDescriptor:
        return PlanDescriptor(
            name=self.name,
            limits=PlanLimits(**self.limits.model_dump()),
            tariff_ids=self.tariff_ids,
        )


__all__ = [
    "FREE_PLAN_NAME",
    "PlanDescriptor",
    "PlanEntry",
    "PlanLimits",
    "PlanLimitsEntry",
]
