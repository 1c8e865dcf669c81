"""Subscription tiers, billing sources and the subscription gate."""

from .catalog import TIER_CATALOG, TierDefinition
from .gate import MembershipCounter, SubscriptionGate, resolve_snapshot
from .models import MemberLimit, SubscriptionSnapshot, TierEntry
from .source import (
    BillingSource,
    BillingSourceError,
    RevenueCatBillingSource,
    parse_subscriber_payload,
)

__all__ = [
    "TIER_CATALOG",
    "BillingSource",
    "BillingSourceError",
    "MemberLimit",
    "MembershipCounter",
    "RevenueCatBillingSource",
    "SubscriptionGate",
    "SubscriptionSnapshot",
    "TierDefinition",
    "TierEntry",
    "parse_subscriber_payload",
    "resolve_snapshot",
]
