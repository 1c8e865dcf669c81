"""Subscription gate deciding whether a team may act and how many members it may have."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, Mapping, Optional, Protocol, Tuple

from ..errors import NoSubscription, SubscriptionExpired
from .catalog import TIER_CATALOG, TierDefinition
from .models import MemberLimit, SubscriptionSnapshot, TierEntry
from .source import BillingSource

logger = logging.getLogger(__name__)


class MembershipCounter(Protocol):
    """Counts a team's live memberships (invited and completed)."""

    def count_memberships(self, team_id: str) -> int:
        ...


def resolve_snapshot(
    entries: Mapping[str, TierEntry],
    catalog: Mapping[str, TierDefinition] = TIER_CATALOG,
) -> Optional[SubscriptionSnapshot]:
    """Select the tier whose expiry is the most future among those present.

    Expired tiers stay eligible so that a meaningful expiry date can be
    reported. On equal expiry the larger tier wins. Entries without an expiry
    date cannot be ranked and are ignored.
    """

    selected: Optional[Tuple[TierDefinition, datetime]] = None
    for definition in catalog.values():
        entry = entries.get(definition.name)
        if entry is None or entry.expires_date is None:
            continue
        if selected is None or entry.expires_date >= selected[1]:
            selected = (definition, entry.expires_date)

    if selected is None:
        return None
    definition, expires_date = selected
    return SubscriptionSnapshot(
        tier_name=definition.name,
        capacity=definition.capacity,
        expire_date=expires_date,
    )


def _current_time(clock: Optional[Callable[[], datetime]]) -> datetime:
    if clock is None:
        return datetime.now(timezone.utc)
    value = clock()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubscriptionGate:
    """Resolves a team's subscription snapshot from the billing source on every call."""

    def __init__(
        self,
        billing_source: BillingSource,
        memberships: MembershipCounter,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._billing_source = billing_source
        self._memberships = memberships
        self._clock = clock

    def today(self) -> date:
        return _current_time(self._clock).astimezone(timezone.utc).date()

    def fetch_snapshot(self, team_id: str) -> Optional[SubscriptionSnapshot]:
        snapshot = resolve_snapshot(self._billing_source.fetch_tiers(team_id))
        if snapshot is None:
            logger.debug("No subscription tiers found for team %s", team_id)
        return snapshot

    def is_active(self, team_id: str) -> bool:
        """Return whether the team's tier expires today or later."""

        snapshot = self.fetch_snapshot(team_id)
        return snapshot is not None and snapshot.is_active_on(self.today())

    def require_active(self, team_id: str) -> SubscriptionSnapshot:
        snapshot = self.fetch_snapshot(team_id)
        if snapshot is None:
            raise NoSubscription(detail={"team_id": team_id})
        if not snapshot.is_active_on(self.today()):
            raise SubscriptionExpired(
                detail={"team_id": team_id, "expired_on": snapshot.expires_on.isoformat()},
            )
        return snapshot

    def check_member_limit(self, team_id: str) -> MemberLimit:
        """Return the tier capacity and current member count of an active team."""

        snapshot = self.require_active(team_id)
        members = self._memberships.count_memberships(team_id)
        return MemberLimit(limit=snapshot.capacity, members=members)
