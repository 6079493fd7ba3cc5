"""
Organization API endpoints.

GET    /api/v1/organizations                        — List the caller's organizations
POST   /api/v1/organizations                        — Create an organization (caller becomes owner)
GET    /api/v1/organizations/{orgId}                — Organization details
PATCH  /api/v1/organizations/{orgId}                — Update name/description/capacity
DELETE /api/v1/organizations/{orgId}                — Delete an empty organization (owner)
GET    /api/v1/organizations/{orgId}/members        — List members, owner first
POST   /api/v1/organizations/{orgId}/members        — Add a member
PATCH  /api/v1/organizations/{orgId}/members/{uid}  — Change a role (OWNER transfers ownership)
DELETE /api/v1/organizations/{orgId}/members/{uid}  — Remove a member
POST   /api/v1/organizations/{orgId}/leave          — Leave the organization
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.serializers import member_response, organization_response
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
from app.services import organizations as org_service
from supplyhub_shared.schemas.common import Envelope, MemberEnvelope, MemberListEnvelope
from supplyhub_shared.schemas.organizations import (
    OrganizationCreateRequest,
    OrganizationEnvelope,
    OrganizationListEnvelope,
    OrganizationUpdateRequest,
    OrgMemberAddRequest,
    OrgMemberUpdateRequest,
)
from supplyhub_shared.schemas.roles import OrgRole, ScopeType

log = structlog.get_logger()
router = APIRouter()


async def _envelope(db: AsyncSession, org, role, message=None) -> OrganizationEnvelope:
    member_count, team_count = await org_service.organization_counts(db, org.id)
    return OrganizationEnvelope(
        organization=organization_response(
            org, member_count=member_count, team_count=team_count, my_role=role
        ),
        message=message,
    )


def _notify(background: BackgroundTasks, type_: str, recipient_id, org, actor_id, **data) -> None:
    background.add_task(
        publish_notification,
        Notification(
            type=type_,
            recipient_id=recipient_id,
            scope_type=ScopeType.ORGANIZATION.value,
            scope_id=org.id,
            scope_name=org.name,
            actor_id=actor_id,
            data=data,
        ),
    )


@router.get("", response_model=OrganizationListEnvelope)
async def list_organizations(
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    """Organizations the caller belongs to, with the caller's role in each."""
    rows = await org_service.list_for_user(db, caller.user_id)
    items = []
    for org, role in rows:
        member_count, team_count = await org_service.organization_counts(db, org.id)
        items.append(
            organization_response(
                org, member_count=member_count, team_count=team_count, my_role=role
            )
        )
    return OrganizationListEnvelope(organizations=items)


@router.post("", response_model=OrganizationEnvelope, status_code=201)
async def create_organization(
    body: OrganizationCreateRequest,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    org = await org_service.create_organization(db, caller, body)
    return await _envelope(db, org, OrgRole.OWNER, "Organization created")


@router.get("/{org_id}", response_model=OrganizationEnvelope)
async def get_organization(
    org_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    org, role = await org_service.get_organization(db, caller, org_id)
    return await _envelope(db, org, role)


@router.patch("/{org_id}", response_model=OrganizationEnvelope)
async def update_organization(
    org_id: uuid.UUID,
    body: OrganizationUpdateRequest,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    org, role = await org_service.update_organization(db, caller, org_id, body)
    return await _envelope(db, org, role, "Organization updated")


@router.delete("/{org_id}", response_model=Envelope)
async def delete_organization(
    org_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    await org_service.delete_organization(db, caller, org_id)
    return Envelope(message="Organization deleted")


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{org_id}/members", response_model=MemberListEnvelope)
async def list_members(
    org_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    rows = await org_service.list_members(db, caller, org_id)
    return MemberListEnvelope(members=[member_response(m, u) for m, u in rows])


@router.post("/{org_id}/members", response_model=MemberEnvelope, status_code=201)
async def add_member(
    org_id: uuid.UUID,
    body: OrgMemberAddRequest,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, user, org = await org_service.add_member(db, caller, org_id, body)
    _notify(background, MEMBER_ADDED, user.id, org, caller.user_id, role=membership.role)
    return MemberEnvelope(member=member_response(membership, user), message="Member added")


@router.patch("/{org_id}/members/{user_id}", response_model=MemberEnvelope)
async def update_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    body: OrgMemberUpdateRequest,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, user, org = await org_service.update_member_role(
        db, caller, org_id, user_id, body.role
    )
    if body.role == OrgRole.OWNER:
        _notify(background, OWNERSHIP_TRANSFERRED, user.id, org, caller.user_id)
        message = "Ownership transferred"
    else:
        _notify(background, ROLE_CHANGED, user.id, org, caller.user_id, role=membership.role)
        message = "Member role updated"
    return MemberEnvelope(member=member_response(membership, user), message=message)


@router.delete("/{org_id}/members/{user_id}", response_model=Envelope)
async def remove_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    background: BackgroundTasks,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    membership, org = await org_service.remove_member(db, caller, org_id, user_id)
    _notify(background, MEMBER_REMOVED, membership.user_id, org, caller.user_id)
    return Envelope(message="Member removed")


@router.post("/{org_id}/leave", response_model=Envelope)
async def leave_organization(
    org_id: uuid.UUID,
    caller: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_session),
):
    await org_service.leave(db, caller, org_id)
    return Envelope(message="You have left the organization")
