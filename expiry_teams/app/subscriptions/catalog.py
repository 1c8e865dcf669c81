"""Static catalog of the subscription tiers sold to teams."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class TierDefinition:
    """Describes a subscription tier and the member capacity it grants."""

    name: str
    capacity: int


_TIERS = (
    TierDefinition("expirybusiness_monthly_default_1person", 1),
    TierDefinition("expirybusiness_monthly_default_2people", 2),
    TierDefinition("expirybusiness_monthly_default_3people", 3),
    TierDefinition("expirybusiness_monthly_default_5people", 5),
    TierDefinition("expirybusiness_monthly_default_10people", 10),
    TierDefinition("expirybusiness_monthly_default_15people", 15),
    TierDefinition("expiryteams_monthly_default_30people", 30),
    TierDefinition("expiryteams_monthly_default_45people", 45),
    TierDefinition("expiryteams_monthly_default_60people", 60),
)

# Ordered by ascending capacity.
TIER_CATALOG: Dict[str, TierDefinition] = {tier.name: tier for tier in _TIERS}
