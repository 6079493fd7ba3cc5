"""
Organization service — organization CRUD, organization membership and the
platform-admin organization controls.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import SessionUser
from app.core.authorization import Action, authorize_caller, require_target_rank
from app.core.config import get_settings
from app.core.errors import DomainError, ErrorCode
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.team import Team
from app.models.user import User
from app.services import guard, memberships, users
from app.services.scopes import ORGANIZATION, slug_exists, unique_slug
from supplyhub_shared.schemas.admin import (
    AdminOrganizationCreateRequest,
    AdminOrganizationUpdateRequest,
)
from supplyhub_shared.schemas.organizations import (
    OrganizationCreateRequest,
    OrganizationUpdateRequest,
    OrgMemberAddRequest,
)
from supplyhub_shared.schemas.roles import OrgRole

log = structlog.get_logger()
settings = get_settings()


async def count_teams(db: AsyncSession, org_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(Team).where(Team.organization_id == org_id)
    )
    return result.scalar_one()


async def organization_counts(db: AsyncSession, org_id: uuid.UUID) -> tuple[int, int]:
    """(member_count, team_count)"""
    return (
        await memberships.count_members(db, ORGANIZATION, org_id),
        await count_teams(db, org_id),
    )


async def list_for_user(
    db: AsyncSession, user_id: uuid.UUID
) -> list[tuple[Organization, OrgRole]]:
    result = await db.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    return [(org, OrgRole(role)) for org, role in result.all()]


async def _create(
    db: AsyncSession,
    *,
    owner_id: uuid.UUID,
    name: str,
    slug: Optional[str],
    description: Optional[str],
    max_members: Optional[int] = None,
    max_teams: Optional[int] = None,
) -> Organization:
    if slug:
        if await slug_exists(db, ORGANIZATION, slug):
            raise DomainError(ErrorCode.SLUG_TAKEN, "Organization slug already taken")
    else:
        slug = await unique_slug(db, ORGANIZATION, name)

    org = Organization(
        name=name,
        slug=slug,
        description=description,
        owner_id=owner_id,
        max_members=max_members or settings.default_org_max_members,
        max_teams=max_teams or settings.default_org_max_teams,
    )
    db.add(org)
    try:
        await db.flush()
    except IntegrityError:
        raise DomainError(ErrorCode.SLUG_TAKEN, "Organization slug already taken")

    await memberships.create_owner_membership(db, ORGANIZATION, org, owner_id)
    log.info("org.created", org_id=str(org.id), slug=slug, owner_id=str(owner_id))
    return org


async def create_organization(
    db: AsyncSession, caller: SessionUser, req: OrganizationCreateRequest
) -> Organization:
    """Create an organization. The creator becomes its owner."""
    return await _create(
        db,
        owner_id=caller.user_id,
        name=req.name,
        slug=req.slug,
        description=req.description,
    )


async def get_organization(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID
) -> tuple[Organization, Optional[OrgRole]]:
    org = await memberships.get_scope(db, ORGANIZATION, org_id)
    role = await authorize_caller(db, caller, ORGANIZATION, org_id, Action.VIEW_MEMBERS)
    return org, role


def _apply_capacity_changes(
    org: Organization,
    member_count: int,
    team_count: int,
    max_members: Optional[int],
    max_teams: Optional[int],
) -> None:
    if max_members is not None:
        guard.check_capacity_not_below_members(max_members, member_count).raise_for_violation()
        org.max_members = max_members
    if max_teams is not None:
        if max_teams < team_count:
            raise DomainError(
                ErrorCode.VALIDATION_ERROR,
                f"Cannot set max teams below current team count ({team_count})",
            )
        org.max_teams = max_teams


async def update_organization(
    db: AsyncSession,
    caller: SessionUser,
    org_id: uuid.UUID,
    req: OrganizationUpdateRequest,
) -> tuple[Organization, Optional[OrgRole]]:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    role = await authorize_caller(db, caller, ORGANIZATION, org_id, Action.UPDATE_SETTINGS)

    member_count, team_count = await organization_counts(db, org_id)
    _apply_capacity_changes(org, member_count, team_count, req.max_members, req.max_teams)
    if req.name is not None:
        org.name = req.name
    if req.description is not None:
        org.description = req.description
    org.updated_at = utcnow()
    db.add(org)
    await db.flush()

    log.info("org.updated", org_id=str(org_id), actor_id=str(caller.user_id))
    return org, role


async def delete_organization(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID
) -> None:
    """Hard-delete an organization. Only allowed once the owner is alone and no teams remain."""
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    await authorize_caller(db, caller, ORGANIZATION, org_id, Action.DELETE_SCOPE)

    member_count, team_count = await organization_counts(db, org_id)
    if member_count > 1 or team_count > 0:
        raise DomainError(
            ErrorCode.ORGANIZATION_NOT_EMPTY,
            "Remove all members and teams before deleting the organization",
        )

    await memberships.delete_all_memberships(db, ORGANIZATION, org_id)
    await db.delete(org)
    await db.flush()
    log.info("org.deleted", org_id=str(org_id), actor_id=str(caller.user_id))


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

async def list_members(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID
) -> list[tuple[OrganizationMember, User]]:
    await memberships.get_scope(db, ORGANIZATION, org_id)
    await authorize_caller(db, caller, ORGANIZATION, org_id, Action.VIEW_MEMBERS)
    return await memberships.list_members(db, ORGANIZATION, org_id)


async def add_member(
    db: AsyncSession,
    caller: SessionUser,
    org_id: uuid.UUID,
    req: OrgMemberAddRequest,
) -> tuple[OrganizationMember, User, Organization]:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    await authorize_caller(db, caller, ORGANIZATION, org_id, Action.ADD_MEMBER)

    user = await users.get_active_user(db, user_id=req.user_id, email=req.email)
    membership = await memberships.add_member(db, ORGANIZATION, org, user, req.role)
    return membership, user, org


async def update_member_role(
    db: AsyncSession,
    caller: SessionUser,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: OrgRole,
) -> tuple[OrganizationMember, User, Organization]:
    """Change a member's role; ``OWNER`` transfers ownership."""
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    action = Action.TRANSFER_OWNERSHIP if role == OrgRole.OWNER else Action.CHANGE_ROLE
    caller_role = await authorize_caller(db, caller, ORGANIZATION, org_id, action)

    if user_id == caller.user_id:
        raise DomainError(ErrorCode.FORBIDDEN, "You cannot change your own role")

    target = await memberships.require_membership(db, ORGANIZATION, org_id, user_id)
    if action == Action.CHANGE_ROLE:
        target_role = OrgRole(target.role)
        if target_role != OrgRole.OWNER:
            require_target_rank(caller, caller_role, target_role)
            require_target_rank(caller, caller_role, role)

    membership = await memberships.change_role(db, ORGANIZATION, org, user_id, role)
    user = await users.get_user(db, user_id)
    return membership, user, org


async def remove_member(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID, user_id: uuid.UUID
) -> tuple[OrganizationMember, Organization]:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    caller_role = await authorize_caller(db, caller, ORGANIZATION, org_id, Action.REMOVE_MEMBER)

    if user_id == caller.user_id:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR, "Use the leave endpoint to remove yourself"
        )

    target = await memberships.require_membership(db, ORGANIZATION, org_id, user_id)
    target_role = OrgRole(target.role)
    if target_role != OrgRole.OWNER:
        require_target_rank(caller, caller_role, target_role)

    membership = await memberships.remove_member(db, ORGANIZATION, org, user_id)
    return membership, org


async def leave(db: AsyncSession, caller: SessionUser, org_id: uuid.UUID) -> Organization:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    membership = await memberships.get_membership(db, ORGANIZATION, org_id, caller.user_id)
    if membership is None:
        raise DomainError(ErrorCode.NOT_FOUND, "Organization not found")
    if membership.role == OrgRole.OWNER.value:
        raise DomainError(ErrorCode.OWNER_MUST_TRANSFER_FIRST)

    await db.delete(membership)
    await db.flush()
    log.info("org.member_left", org_id=str(org_id), user_id=str(caller.user_id))
    return org


# ---------------------------------------------------------------------------
# Platform-admin controls
# ---------------------------------------------------------------------------

async def admin_create(
    db: AsyncSession, caller: SessionUser, req: AdminOrganizationCreateRequest
) -> Organization:
    owner = await users.get_active_user(db, user_id=req.owner_id)
    org = await _create(
        db,
        owner_id=owner.id,
        name=req.name,
        slug=None,
        description=req.description,
        max_members=req.max_members,
        max_teams=req.max_teams,
    )
    log.info("admin.org_created", org_id=str(org.id), actor_id=str(caller.user_id))
    return org


async def admin_update(
    db: AsyncSession,
    caller: SessionUser,
    org_id: uuid.UUID,
    req: AdminOrganizationUpdateRequest,
) -> Organization:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    member_count, team_count = await organization_counts(db, org_id)
    _apply_capacity_changes(org, member_count, team_count, req.max_members, req.max_teams)
    if req.name is not None:
        org.name = req.name
    if req.description is not None:
        org.description = req.description
    if req.is_active is not None:
        org.is_active = req.is_active
    org.updated_at = utcnow()
    db.add(org)
    await db.flush()

    log.info("admin.org_updated", org_id=str(org_id), actor_id=str(caller.user_id))
    return org


async def admin_deactivate(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID
) -> Organization:
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    org.is_active = False
    org.updated_at = utcnow()
    db.add(org)
    await db.flush()
    log.info("admin.org_deactivated", org_id=str(org_id), actor_id=str(caller.user_id))
    return org


async def admin_transfer_ownership(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID, new_owner_id: uuid.UUID
) -> tuple[OrganizationMember, User, Organization]:
    """Reassign ownership to any active user, adding them first if they are not a member."""
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    user = await users.get_active_user(db, user_id=new_owner_id)

    if await memberships.get_membership(db, ORGANIZATION, org_id, user.id) is None:
        await memberships.add_member(db, ORGANIZATION, org, user, OrgRole.MEMBER)

    membership = await memberships.transfer_ownership(db, ORGANIZATION, org, user.id)
    log.info(
        "admin.org_ownership_transferred",
        org_id=str(org_id),
        new_owner_id=str(user.id),
        actor_id=str(caller.user_id),
    )
    return membership, user, org
