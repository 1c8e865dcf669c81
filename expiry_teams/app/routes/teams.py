"""API routes for team membership and subscription status."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from ..schemas.teams import (
    AcceptInviteRequest,
    InviteMemberRequest,
    MemberLimitResponse,
    TeamMemberListResponse,
    TeamStatusResponse,
    UpdateRoleRequest,
)
from ..services import coordinator as coordinator_service
from ..teams import Membership
from .common import domain_errors, get_caller_id

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.get("/{team_id}/members", response_model=TeamMemberListResponse)
def list_members(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> TeamMemberListResponse:
    """Return the team's members, redacted for callers who are not managers."""
    with domain_errors():
        members = coordinator_service.get_coordinator().list_team_members(caller_id, team_id)
    return TeamMemberListResponse(members=members)


@router.post("/{team_id}/members", response_model=Membership, status_code=status.HTTP_201_CREATED)
def invite_member(
    team_id: str,
    payload: InviteMemberRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Membership:
    with domain_errors():
        return coordinator_service.get_coordinator().invite_member(caller_id, team_id, payload.email)


@router.post("/{team_id}/join", response_model=Membership)
def accept_invite(
    team_id: str,
    payload: AcceptInviteRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Membership:
    with domain_errors():
        return coordinator_service.get_coordinator().accept_team_invite(caller_id, team_id, payload.code)


@router.put("/{team_id}/members/{user_id}/role", response_model=Membership)
def update_member_role(
    team_id: str,
    user_id: str,
    payload: UpdateRoleRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Membership:
    with domain_errors():
        return coordinator_service.get_coordinator().update_member_role(caller_id, team_id, user_id, payload.role)


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    team_id: str,
    user_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Response:
    with domain_errors():
        coordinator_service.get_coordinator().remove_member(caller_id, team_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Response:
    with domain_errors():
        coordinator_service.get_coordinator().delete_team(caller_id, team_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{team_id}/subscription/status", response_model=TeamStatusResponse)
def get_team_status(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> TeamStatusResponse:
    with domain_errors():
        active = coordinator_service.get_coordinator().is_team_active(caller_id, team_id)
    return TeamStatusResponse(team_id=team_id, is_active=active)


@router.get("/{team_id}/subscription/limit", response_model=MemberLimitResponse)
def get_member_limit(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> MemberLimitResponse:
    with domain_errors():
        limit = coordinator_service.get_coordinator().check_member_limit(caller_id, team_id)
    return MemberLimitResponse.from_limit(limit)
