"""Role resolution and per-action allow-lists for team members."""
from __future__ import annotations

from enum import Enum
from typing import Collection, Dict, FrozenSet, Mapping, Optional, Protocol

from ..errors import Conflict, Forbidden, NotMember
from .models import Membership, MembershipStatus, Role


class TeamAction(str, Enum):
    """Actions guarded by an explicit role allow-list."""

    CREATE_PRODUCT = "create_product"
    VIEW_PRODUCTS = "view_products"
    CREATE_BATCHES = "create_batches"
    UPDATE_BATCH_DISCOUNT = "update_batch_discount"
    CREATE_BRANDS = "create_brands"
    VIEW_BRANDS = "view_brands"
    LIST_MEMBERS = "list_members"
    VIEW_FULL_MEMBER_LIST = "view_full_member_list"
    INVITE_MEMBER = "invite_member"
    UPDATE_MEMBER_ROLE = "update_member_role"
    REMOVE_MEMBER = "remove_member"
    DELETE_TEAM = "delete_team"
    VIEW_SUBSCRIPTION = "view_subscription"


ALL_ROLES: FrozenSet[Role] = frozenset(Role)
MANAGER_ONLY: FrozenSet[Role] = frozenset({Role.MANAGER})

# Roles carry no implicit ordering; each action lists who may perform it.
# Batch discounts only require team membership (the owning team of the product).
ACTION_POLICIES: Dict[TeamAction, FrozenSet[Role]] = {
    TeamAction.CREATE_PRODUCT: ALL_ROLES,
    TeamAction.VIEW_PRODUCTS: ALL_ROLES,
    TeamAction.CREATE_BATCHES: ALL_ROLES,
    TeamAction.UPDATE_BATCH_DISCOUNT: ALL_ROLES,
    TeamAction.CREATE_BRANDS: ALL_ROLES,
    TeamAction.VIEW_BRANDS: ALL_ROLES,
    TeamAction.LIST_MEMBERS: ALL_ROLES,
    TeamAction.VIEW_FULL_MEMBER_LIST: MANAGER_ONLY,
    TeamAction.INVITE_MEMBER: MANAGER_ONLY,
    TeamAction.UPDATE_MEMBER_ROLE: MANAGER_ONLY,
    TeamAction.REMOVE_MEMBER: MANAGER_ONLY,
    TeamAction.DELETE_TEAM: MANAGER_ONLY,
    TeamAction.VIEW_SUBSCRIPTION: ALL_ROLES,
}


def parse_role(value: Optional[str]) -> Role:
    """Normalize a role string (lower-cased, trimmed) into a :class:`Role`."""

    normalized = (value or "").lower().strip()
    try:
        return Role(normalized)
    except ValueError as exc:
        raise Conflict("Invalid role", detail={"role": value}) from exc


class MembershipReader(Protocol):
    """Lookup of a single user's membership in a team."""

    def get_membership(self, team_id: str, user_id: str) -> Optional[Membership]:
        ...


class AuthorizationGuard:
    """Resolves a caller's role within a team and enforces allow-lists."""

    def __init__(
        self,
        memberships: MembershipReader,
        *,
        policies: Optional[Mapping[TeamAction, FrozenSet[Role]]] = None,
    ) -> None:
        self._memberships = memberships
        self._policies = dict(policies or ACTION_POLICIES)

    def resolve_role(self, user_id: str, team_id: str) -> Role:
        membership = self._memberships.get_membership(team_id, user_id)
        if membership is None or membership.status != MembershipStatus.COMPLETED:
            raise NotMember(detail={"team_id": team_id})
        return membership.role

    def require_role(self, user_id: str, team_id: str, allowed: Collection[Role]) -> Role:
        role = self.resolve_role(user_id, team_id)
        if role not in allowed:
            raise Forbidden(detail={"team_id": team_id, "role": role.value})
        return role

    def authorize(self, user_id: str, team_id: str, action: TeamAction) -> Role:
        """Resolve the caller's role and check it against ``action``'s allow-list."""

        return self.require_role(user_id, team_id, self._policies[action])

    def allows(self, role: Role, action: TeamAction) -> bool:
        return role in self._policies[action]
