"""Static catalog definitions for plans and their provider tariffs."""
from __future__ import annotations

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from pydantic import TypeAdapter

from .models import FREE_PLAN_NAME, PlanDescriptor, PlanEntry, PlanLimits


class PlanCatalog:
    """Immutable lookup table from tariff identifiers to plan descriptors.

    The catalog enforces two invariants at construction: a tariff identifier
    selects at most one plan, and a ``free`` plan is always present so that
    cancellations have a fallback.
    """

    def __init__(self, plans: Iterable[PlanDescriptor]) -> None:
        ordered = tuple(plans)
        by_tariff: Dict[str, PlanDescriptor] = {}
        by_name: Dict[str, PlanDescriptor] = {}
        for plan in ordered:
            if plan.normalized_name in by_name:
                raise ValueError(f"Duplicate plan name in catalog: {plan.name}")
            by_name[plan.normalized_name] = plan
            for tariff_id in plan.tariff_ids:
                existing = by_tariff.get(tariff_id)
                if existing is not None:
                    raise ValueError(
                        f"Tariff {tariff_id} is mapped to both {existing.name} and {plan.name}"
                    )
                by_tariff[tariff_id] = plan

        if FREE_PLAN_NAME not in by_name:
            raise ValueError("Plan catalog must define a 'free' plan")

        self._plans: Tuple[PlanDescriptor, ...] = ordered
        self._by_tariff: Mapping[str, PlanDescriptor] = MappingProxyType(by_tariff)
        self._by_name: Mapping[str, PlanDescriptor] = MappingProxyType(by_name)

    def __iter__(self) -> Iterator[PlanDescriptor]:
        return iter(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    def resolve(self, tariff_id: Optional[str]) -> Optional[PlanDescriptor]:
        """Return the plan selected by ``tariff_id`` or ``None`` when unknown."""

        if not tariff_id:
            return None
        return self._by_tariff.get(tariff_id)

    def resolve_free_tier(self) -> PlanDescriptor:
        return self._by_name[FREE_PLAN_NAME]

    def get_by_name(self, name: str) -> Optional[PlanDescriptor]:
        return self._by_name.get(name.lower())


FREE_PLAN = PlanDescriptor(
    name="Free",
    limits=PlanLimits(clicks=1_000, links=25, domains=3, tags=5, users=1),
)

PRO_PLAN = PlanDescriptor(
    name="Pro",
    limits=PlanLimits(clicks=50_000, links=1_000, domains=10, tags=25, users=5),
    tariff_ids=("price_pro_monthly", "price_pro_yearly"),
)

BUSINESS_PLAN = PlanDescriptor(
    name="Business",
    limits=PlanLimits(clicks=250_000, links=5_000, domains=40, tags=150, users=15),
    tariff_ids=("price_business_monthly", "price_business_yearly"),
)

ENTERPRISE_PLAN = PlanDescriptor(
    name="Enterprise",
    limits=PlanLimits(clicks=1_000_000_000, links=1_000_000_000, domains=1_000, tags=1_000, users=1_000),
)

DEFAULT_PLAN_CATALOG = PlanCatalog((FREE_PLAN, PRO_PLAN, BUSINESS_PLAN, ENTERPRISE_PLAN))

_PLAN_ENTRIES = TypeAdapter(Tuple[PlanEntry, ...])


def load_plan_catalog(path: Union[str, Path]) -> PlanCatalog:
    """Build a catalog from a JSON file containing a list of plan entries."""

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    entries = _PLAN_ENTRIES.validate_python(raw)
    return PlanCatalog(entry.to_descriptor() for entry in entries)


__all__ = [
    "BUSINESS_PLAN",
    "DEFAULT_PLAN_CATALOG",
    "ENTERPRISE_PLAN",
    "FREE_PLAN",
    "PRO_PLAN",
    "PlanCatalog",
    "load_plan_catalog",
]
