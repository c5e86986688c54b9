"""Plan catalog and entitlement cache primitives."""

from .catalog import (
    DEFAULT_PLAN_CATALOG,
    FREE_PLAN,
    PlanCatalog,
    load_plan_catalog,
)
from .cache import InMemoryRedirectCache, RedirectCache, RedisRedirectCache, root_redirect_key
from .models import FREE_PLAN_NAME, PlanDescriptor, PlanLimits

__all__ = [
    "DEFAULT_PLAN_CATALOG",
    "FREE_PLAN",
    "FREE_PLAN_NAME",
    "InMemoryRedirectCache",
    "PlanCatalog",
    "PlanDescriptor",
    "PlanLimits",
    "RedirectCache",
    "RedisRedirectCache",
    "load_plan_catalog",
    "root_redirect_key",
]
