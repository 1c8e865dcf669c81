"""Team membership models and authorization."""

from .authorization import (
    ACTION_POLICIES,
    ALL_ROLES,
    MANAGER_ONLY,
    AuthorizationGuard,
    MembershipReader,
    TeamAction,
    parse_role,
)
from .models import (
    Membership,
    MembershipStatus,
    Role,
    Team,
    TeamMember,
    TeamMemberSummary,
    User,
)

__all__ = [
    "ACTION_POLICIES",
    "ALL_ROLES",
    "MANAGER_ONLY",
    "AuthorizationGuard",
    "Membership",
    "MembershipReader",
    "MembershipStatus",
    "Role",
    "Team",
    "TeamAction",
    "TeamMember",
    "TeamMemberSummary",
    "User",
    "parse_role",
]
