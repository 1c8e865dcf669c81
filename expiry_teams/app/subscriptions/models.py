"""Domain models for team subscription resolution."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TierEntry(BaseModel):
    """Billing provider record for one named tier held by a team."""

    expires_date: Optional[datetime] = None
    purchase_date: Optional[datetime] = None
    store: Optional[str] = None
    unsubscribe_detected_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("expires_date", "purchase_date", "unsubscribe_detected_at")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class SubscriptionSnapshot(BaseModel):
    """Tier selected for a team at query time; never persisted."""

    tier_name: str
    capacity: int
    expire_date: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def expires_on(self) -> date:
        """Expiry truncated to day granularity (UTC)."""

        return self.expire_date.astimezone(timezone.utc).date()

    def is_active_on(self, day: date) -> bool:
        return self.expires_on >= day


class MemberLimit(BaseModel):
    """Capacity granted by the team's tier against its live membership count."""

    limit: int
    members: int

    model_config = ConfigDict(frozen=True)

    @property
    def remaining(self) -> int:
        return max(self.limit - self.members, 0)

    @property
    def is_full(self) -> bool:
        return self.members >= self.limit
