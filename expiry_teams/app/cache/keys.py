"""Cache key construction shared by readers and writers."""
from __future__ import annotations

from enum import Enum
from typing import Iterable, List


class CacheResource(str, Enum):
    """Resource types whose mutations invalidate cached reads."""

    TEAM = "team"
    PRODUCT = "product"
    BATCH = "batch"
    BRAND = "brand"
    MEMBERSHIP = "membership"


class CacheKeyBuilder:
    """Builds every cache key by (resource type, scope id).

    Readers populate keys through these methods and writers invalidate through
    :meth:`dependents`, so both sides always agree on the key strings.
    """

    def team(self, team_id: str) -> str:
        return f"team:{team_id}"

    def product_list(self, team_id: str) -> str:
        return f"{self.team(team_id)}:products"

    def product(self, team_id: str, product_id: str) -> str:
        return f"{self.team(team_id)}:product:{product_id}"

    def member_list(self, team_id: str) -> str:
        return f"{self.team(team_id)}:members"

    def brand_list(self, team_id: str) -> str:
        return f"{self.team(team_id)}:brands"

    def dependents(
        self,
        resource: CacheResource,
        team_id: str,
        *,
        product_ids: Iterable[str] = (),
    ) -> List[str]:
        """Return every key a reader may have populated for the mutated resource.

        ``product_ids`` names the products touched by the mutation: the product
        itself for product writes, the owning product for batch writes, and all
        of the team's products when the team is deleted.
        """

        product_keys = [self.product(team_id, product_id) for product_id in product_ids]

        if resource is CacheResource.PRODUCT or resource is CacheResource.BATCH:
            return [self.product_list(team_id), *product_keys]
        if resource is CacheResource.BRAND:
            return [self.brand_list(team_id)]
        if resource is CacheResource.MEMBERSHIP:
            return [self.member_list(team_id)]
        if resource is CacheResource.TEAM:
            return [
                self.team(team_id),
                self.product_list(team_id),
                self.member_list(team_id),
                self.brand_list(team_id),
                *product_keys,
            ]
        raise ValueError(f"Unknown cache resource: {resource}")
