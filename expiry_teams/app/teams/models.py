"""Typed representations of teams, their members and memberships."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Flat permission classes a member can hold within a team."""

    MANAGER = "manager"
    SUPERVISOR = "supervisor"
    REPOSITOR = "repositor"


class MembershipStatus(str, Enum):
    """Invitation lifecycle; only ``Invited`` -> ``Completed`` is allowed."""

    INVITED = "Invited"
    COMPLETED = "Completed"


class Team(BaseModel):
    """Tenant boundary owning products, brands, stores and memberships."""

    id: str
    name: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class User(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Membership(BaseModel):
    """A user's role and invitation status within one team."""

    id: Optional[str] = None
    team_id: str
    user_id: str
    role: Role = Role.REPOSITOR
    status: MembershipStatus = MembershipStatus.INVITED
    invite_code: Optional[str] = Field(
        default=None,
        description="Code the invited user must present to complete the membership.",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_completed(self) -> bool:
        return self.status == MembershipStatus.COMPLETED


class TeamMemberSummary(BaseModel):
    """Member view returned to callers that are not managers."""

    id: str
    email: str
    role: Role
    status: MembershipStatus

    model_config = ConfigDict(frozen=True)


class TeamMember(BaseModel):
    """Membership joined with the member's profile, as seen by managers."""

    id: str
    email: str
    name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role
    status: MembershipStatus
    invite_code: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def summary(self) -> TeamMemberSummary:
        return TeamMemberSummary(id=self.id, email=self.email, role=self.role, status=self.status)
