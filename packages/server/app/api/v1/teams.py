"""
Team API endpoints.

GET    /api/v1/teams                         — List the caller's teams
POST   /api/v1/teams/create                  — Create a team (caller becomes owner)
POST   /api/v1/teams/leave                   — Leave a team (sole owner deletes it)
PATCH  /api/v1/teams/settings                — Update name/description/capacity
GET    /api/v1/teams/{teamId}                — Team details
GET    /api/v1/teams/{teamId}/members        — List members, owner first
POST   /api/v1/teams/{teamId}/invite         — Invite by user id or email
PATCH  /api/v1/teams/{teamId}/members/{uid}  — Change a role (OWNER transfers ownership)
DELETE /api/v1/teams/{teamId}/members/{uid}  — Remove a member
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.serializers import member_response, team_response
from app.core.auth import SessionUser, require_session
from app.core.database import get_session
from app.core.notifications import (
    MEMBER_ADDED,
    MEMBER_REMOVED,
    OWNERSHIP_TRANSFERRED,
    ROLE_CHANGED,
    Notification,
    publish_notification,
)
from app.services import memberships
from app.services import teams as team_service
from app.services.scopes import TEAM
from supplyhub_shared.schemas.common import Envelope, MemberEnvelope, MemberListEnvelope
from supplyhub_shared.schemas.roles import ScopeType, TeamRole
from supplyhub_shared.schemas.teams import (
    TeamCreateRequest,
    TeamEnvelope,
    TeamInviteRequest,
    TeamLeaveRequest,
    TeamListEnvelope,
    TeamMemberUpdateRequest,
    TeamSettingsRequest,
)

log = structlog.get_logger()
router = APIRouter()


async def _envelope(db: AsyncSession, team, role, message=None) -> TeamEnvelope:
    count = await memberships.count_members(db, TEAM, team.id)
    return TeamEnvelope(
        team=team_response(team, member_count=count, my_role=role),
        message=message,
    )


def _notify(background: BackgroundTasks, type_: str, recipient_id, team, actor_id, **data) -> None:
    background.add_task(
        publish_notification,
        Notification(
            type=type_,
            recipient_id=recipient_id,
            scope_type=ScopeType.TEAM.value,
            scope_id=team.id,
            scope_name=team.name,
            actor_id=actor_id,
            data=data,
        ),
    )


@router.get("", response_model=TeamListEnvelope)
async def list_teams(
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    rows = await team_service.list_for_user(db, caller.user_id)
    items = []
    for team, role in rows:
        count = await memberships.count_members(db, TEAM, team.id)
        items.append(team_response(team, member_count=count, my_role=role))
    return TeamListEnvelope(teams=items)


@router.post("/create", response_model=TeamEnvelope, status_code=201)
async def create_team(
    body: TeamCreateRequest,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    team = await team_service.create_team(db, caller, body)
    return await _envelope(db, team, TeamRole.OWNER, "Team created")


@router.post("/leave", response_model=Envelope)
async def leave_team(
    body: Optional[TeamLeaveRequest] = None,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    """Leave a team; without ``teamId`` the earliest joined team is left."""
    team, deleted = await team_service.leave(db, caller, body.team_id if body else None)
    if deleted:
        return Envelope(message=f"{team.name} was deleted as you were its only member")
    return Envelope(message=f"You have left {team.name}")


@router.patch("/settings", response_model=TeamEnvelope)
async def update_settings(
    body: TeamSettingsRequest,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    team, role = await team_service.update_settings(db, caller, body)
    return await _envelope(db, team, role, "Team settings updated")


@router.get("/{team_id}", response_model=TeamEnvelope)
async def get_team(
    team_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    team, role = await team_service.get_team(db, caller, team_id)
    return await _envelope(db, team, role)


@router.get("/{team_id}/members", response_model=MemberListEnvelope)
async def list_members(
    team_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    rows = await team_service.list_members(db, caller, team_id)
    return MemberListEnvelope(members=[member_response(m, u) for m, u in rows])


@router.post("/{team_id}/invite", response_model=MemberEnvelope, status_code=201)
async def invite_member(
    team_id: uuid.UUID,
    body: TeamInviteRequest,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, user, team = await team_service.invite(db, caller, team_id, body)
    _notify(background, MEMBER_ADDED, user.id, team, caller.user_id, role=membership.role)
    return MemberEnvelope(member=member_response(membership, user), message="Member invited")


@router.patch("/{team_id}/members/{user_id}", response_model=MemberEnvelope)
async def update_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    body: TeamMemberUpdateRequest,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, user, team = await team_service.update_member_role(
        db, caller, team_id, user_id, body.role
    )
    if body.role == TeamRole.OWNER:
        _notify(background, OWNERSHIP_TRANSFERRED, user.id, team, caller.user_id)
        message = "Ownership transferred"
    else:
        _notify(background, ROLE_CHANGED, user.id, team, caller.user_id, role=membership.role)
        message = "Member role updated"
    return MemberEnvelope(member=member_response(membership, user), message=message)


@router.delete("/{team_id}/members/{user_id}", response_model=Envelope)
async def remove_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, team = await team_service.remove_member(db, caller, team_id, user_id)
    _notify(background, MEMBER_REMOVED, membership.user_id, team, caller.user_id)
    return Envelope(message="Member removed")
