"""Coordination of writes on team-owned resources."""

from .service import (
    InventoryRepository,
    MemberView,
    ResourceMutationCoordinator,
    TeamRepository,
    generate_invite_code,
)

__all__ = [
    "InventoryRepository",
    "MemberView",
    "ResourceMutationCoordinator",
    "TeamRepository",
    "generate_invite_code",
]
