from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    MAX = "max"


class PlanConfig(BaseModel):
    name: str
    price: float
    max_products: Optional[int]           # None = unlimited
    recommendations_per_product: int
    reasoning_limit: Optional[int]        # products enriched per sync, None = settings default
    model_config = ConfigDict(frozen=True)


PLANS: dict[PlanTier, PlanConfig] = {
    PlanTier.FREE: PlanConfig(
        name="Free Plan", price=0.0, max_products=50,
        recommendations_per_product=1, reasoning_limit=10,
    ),
    PlanTier.PRO: PlanConfig(
        name="Pro Plan", price=19.99, max_products=2000,
        recommendations_per_product=3, reasoning_limit=None,
    ),
    PlanTier.MAX: PlanConfig(
        name="Max Plan", price=49.99, max_products=None,
        recommendations_per_product=3, reasoning_limit=None,
    ),
}


def plan_config(tier: PlanTier | str) -> PlanConfig:
    """Resolve a tier (enum or case-insensitive name) to its config."""
    return PLANS[PlanTier(str(getattr(tier, "value", tier)).lower())]
