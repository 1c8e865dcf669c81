"""Billing sources reporting the tiers a team currently holds."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Protocol
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

from pydantic import ValidationError as PydanticValidationError

from .catalog import TIER_CATALOG
from .models import TierEntry

logger = logging.getLogger("billing")


class BillingSourceError(RuntimeError):
    """Raised when the billing provider cannot be queried."""


class BillingSource(Protocol):
    """External collaborator returning the named tier entries of a team."""

    def fetch_tiers(self, team_id: str) -> Mapping[str, TierEntry]:
        ...


def parse_subscriber_payload(payload: Mapping[str, Any]) -> Dict[str, TierEntry]:
    """Extract catalog tiers from a subscriber payload, skipping anything else."""

    subscriber = payload.get("subscriber") or {}
    subscriptions = subscriber.get("subscriptions") or {}

    entries: Dict[str, TierEntry] = {}
    for name, raw_entry in subscriptions.items():
        if name not in TIER_CATALOG:
            logger.debug("Ignoring subscription %s outside the tier catalog", name)
            continue
        if not isinstance(raw_entry, Mapping):
            continue
        try:
            entries[name] = TierEntry.model_validate(raw_entry)
        except PydanticValidationError as exc:
            logger.warning("Skipping malformed subscription entry %s: %s", name, exc)
    return entries


class RevenueCatBillingSource:
    """Reads team subscriptions from the RevenueCat subscribers endpoint."""

    def __init__(self, api_url: str, api_key: str, *, timeout_seconds: float = 5.0) -> None:
        if not api_url:
            raise ValueError("api_url must be provided")
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    def fetch_tiers(self, team_id: str) -> Dict[str, TierEntry]:
        url = f"{self._api_url}/subscribers/{urllib_parse.quote(team_id, safe='')}"
        request = urllib_request.Request(
            url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(request, timeout=self._timeout_seconds) as response:
                body = response.read()
            payload = json.loads(body.decode("utf-8"))
        except (urllib_error.URLError, urllib_error.HTTPError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning(
                "Subscription lookup failed",
                extra={"team_id": team_id, "error": str(exc)},
            )
            raise BillingSourceError(f"Unable to fetch subscriptions for team {team_id}") from exc

        if not isinstance(payload, Mapping):
            raise BillingSourceError(f"Unexpected subscriber payload for team {team_id}")
        return parse_subscriber_payload(payload)
