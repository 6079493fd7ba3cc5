"""
Platform-admin endpoints. Every route requires the global ADMIN role.

POST   /api/v1/admin/organizations                         — Create on behalf of a user
PATCH  /api/v1/admin/organizations/{orgId}                 — Update, including isActive
DELETE /api/v1/admin/organizations/{orgId}                 — Deactivate
POST   /api/v1/admin/organizations/{orgId}/transfer-ownership
POST   /api/v1/admin/teams                                 — Create on behalf of a user
PATCH  /api/v1/admin/teams/{teamId}                        — Update, including isActive
DELETE /api/v1/admin/teams/{teamId}                        — Delete the team
PATCH  /api/v1/admin/users/{userId}/role                   — Set the global role
PATCH  /api/v1/admin/users/{userId}/status                 — Activate/deactivate
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.serializers import member_response, organization_response, team_response, user_summary
from app.core.auth import SessionUser, require_platform_admin
from app.core.database import get_session
from app.core.notifications import OWNERSHIP_TRANSFERRED, Notification, publish_notification
from app.services import memberships
from app.services import organizations as org_service
from app.services import teams as team_service
from app.services import users as user_service
from app.services.scopes import TEAM
from supplyhub_shared.schemas.admin import (
    AdminOrganizationCreateRequest,
    AdminOrganizationUpdateRequest,
    AdminTeamCreateRequest,
    AdminTeamUpdateRequest,
    AdminTransferOwnershipRequest,
    UserEnvelope,
    UserRoleUpdateRequest,
    UserStatusUpdateRequest,
)
from supplyhub_shared.schemas.common import Envelope, MemberEnvelope
from supplyhub_shared.schemas.organizations import OrganizationEnvelope
from supplyhub_shared.schemas.roles import ScopeType
from supplyhub_shared.schemas.teams import TeamEnvelope

log = structlog.get_logger()
router = APIRouter(dependencies=[Depends(require_platform_admin)])


async def _org_envelope(db: AsyncSession, org, message=None) -> OrganizationEnvelope:
    member_count, team_count = await org_service.organization_counts(db, org.id)
    return OrganizationEnvelope(
        organization=organization_response(org, member_count=member_count, team_count=team_count),
        message=message,
    )


async def _team_envelope(db: AsyncSession, team, message=None) -> TeamEnvelope:
    count = await memberships.count_members(db, TEAM, team.id)
    return TeamEnvelope(team=team_response(team, member_count=count), message=message)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@router.post("/organizations", response_model=OrganizationEnvelope, status_code=201)
async def create_organization(
    body: AdminOrganizationCreateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    org = await org_service.admin_create(db, caller, body)
    return await _org_envelope(db, org, "Organization created")


@router.patch("/organizations/{org_id}", response_model=OrganizationEnvelope)
async def update_organization(
    org_id: uuid.UUID,
    body: AdminOrganizationUpdateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    org = await org_service.admin_update(db, caller, org_id, body)
    return await _org_envelope(db, org, "Organization updated")


@router.delete("/organizations/{org_id}", response_model=OrganizationEnvelope)
async def deactivate_organization(
    org_id: uuid.UUID,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    org = await org_service.admin_deactivate(db, caller, org_id)
    return await _org_envelope(db, org, "Organization deactivated")


@router.post("/organizations/{org_id}/transfer-ownership", response_model=MemberEnvelope)
async def transfer_organization_ownership(
    org_id: uuid.UUID,
    body: AdminTransferOwnershipRequest,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    membership, user, org = await org_service.admin_transfer_ownership(
        db, caller, org_id, body.new_owner_id
    )
    background.add_task(
        publish_notification,
        Notification(
            type=OWNERSHIP_TRANSFERRED,
            recipient_id=user.id,
            scope_type=ScopeType.ORGANIZATION.value,
            scope_id=org.id,
            scope_name=org.name,
            actor_id=caller.user_id,
        ),
    )
    return MemberEnvelope(member=member_response(membership, user), message="Ownership transferred")


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

@router.post("/teams", response_model=TeamEnvelope, status_code=201)
async def create_team(
    body: AdminTeamCreateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    team = await team_service.admin_create(db, caller, body)
    return await _team_envelope(db, team, "Team created")


@router.patch("/teams/{team_id}", response_model=TeamEnvelope)
async def update_team(
    team_id: uuid.UUID,
    body: AdminTeamUpdateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    team = await team_service.admin_update(db, caller, team_id, body)
    return await _team_envelope(db, team, "Team updated")


@router.delete("/teams/{team_id}", response_model=Envelope)
async def delete_team(
    team_id: uuid.UUID,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    await team_service.admin_delete(db, caller, team_id)
    return Envelope(message="Team deleted")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.patch("/users/{user_id}/role", response_model=UserEnvelope)
async def set_user_role(
    user_id: uuid.UUID,
    body: UserRoleUpdateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    user = await user_service.set_global_role(db, caller.user_id, user_id, body.role)
    return UserEnvelope(user=user_summary(user), message="User role updated")


@router.patch("/users/{user_id}/status", response_model=UserEnvelope)
async def set_user_status(
    user_id: uuid.UUID,
    body: UserStatusUpdateRequest,
    caller: SessionUser = Depends(require_platform_admin),
    db: AsyncSession = Depends(get_session),
):
    user = await user_service.set_active(db, caller.user_id, user_id, body.is_active)
    return UserEnvelope(
        user=user_summary(user),
        message="User activated" if user.is_active else "User deactivated",
    )
