"""API schemas for team, membership and subscription endpoints."""
from __future__ import annotations

from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field

from ..subscriptions import MemberLimit
from ..teams import TeamMember, TeamMemberSummary


class InviteMemberRequest(BaseModel):
    email: str = Field(min_length=3)

    model_config = ConfigDict(populate_by_name=True)


class AcceptInviteRequest(BaseModel):
    code: str

    model_config = ConfigDict(populate_by_name=True)


class UpdateRoleRequest(BaseModel):
    role: str

    model_config = ConfigDict(populate_by_name=True)


class TeamMemberListResponse(BaseModel):
    members: List[Union[TeamMember, TeamMemberSummary]]

    model_config = ConfigDict(populate_by_name=True)


class TeamStatusResponse(BaseModel):
    team_id: str = Field(alias="teamId")
    is_active: bool = Field(alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class MemberLimitResponse(BaseModel):
    limit: int
    members: int
    remaining: int
    is_full: bool = Field(alias="isFull")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_limit(cls, limit: MemberLimit) -> "MemberLimitResponse":
        return cls(
            limit=limit.limit,
            members=limit.members,
            remaining=limit.remaining,
            is_full=limit.is_full,
        )
