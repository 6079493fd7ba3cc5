"""
Team service — team creation, invitations, role changes, self-leave, settings
and the platform-admin team controls.

Every team-membership change ends by re-deriving the affected users' global
roles, so leading a team and holding TEAM_LEADER always go together.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import SessionUser
from app.core.authorization import Action, authorize_caller, require_target_rank
from app.core.config import get_settings
from app.core.errors import DomainError, ErrorCode
from app.models.base import utcnow
from app.models.team import Team
from app.models.team_member import TeamMember
from app.models.user import User
from app.services import guard, memberships, users
from app.services.organizations import count_teams
from app.services.scopes import ORGANIZATION, TEAM, slug_exists, unique_slug
from supplyhub_shared.schemas.admin import AdminTeamCreateRequest, AdminTeamUpdateRequest
from supplyhub_shared.schemas.roles import TEAM_LEADERSHIP_ROLES, TeamRole
from supplyhub_shared.schemas.teams import (
    TeamCreateRequest,
    TeamInviteRequest,
    TeamSettingsRequest,
)

log = structlog.get_logger()
settings = get_settings()


async def list_for_user(
    db: AsyncSession, user_id: uuid.UUID
) -> list[tuple[Team, TeamRole]]:
    result = await db.execute(
        select(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .where(TeamMember.user_id == user_id)
        .order_by(TeamMember.joined_at, Team.name)
    )
    return [(team, TeamRole(role)) for team, role in result.all()]


async def _ensure_single_team_allowed(db: AsyncSession, user_id: uuid.UUID) -> None:
    if settings.single_team_per_user and await users.is_in_any_team(db, user_id):
        raise DomainError(ErrorCode.ALREADY_MEMBER, "User is already a member of a team")


async def _reserve_org_slot(
    db: AsyncSession, caller: SessionUser, org_id: uuid.UUID, *, check_caller: bool
) -> None:
    """Lock the parent organization and make sure it can take one more team."""
    org = await memberships.lock_scope(db, ORGANIZATION, org_id)
    if check_caller:
        await authorize_caller(db, caller, ORGANIZATION, org_id, Action.UPDATE_SETTINGS)
    if not org.is_active:
        raise DomainError(ErrorCode.SCOPE_INACTIVE, "Organization is inactive")
    team_count = await count_teams(db, org_id)
    guard.check_team_capacity(org_id, team_count, org.max_teams).raise_for_violation()


async def _create(
    db: AsyncSession,
    *,
    owner_id: uuid.UUID,
    name: str,
    slug: Optional[str],
    description: Optional[str],
    organization_id: Optional[uuid.UUID],
    max_members: Optional[int] = None,
) -> Team:
    if slug:
        if await slug_exists(db, TEAM, slug):
            raise DomainError(ErrorCode.SLUG_TAKEN, "Team slug already taken")
    else:
        slug = await unique_slug(db, TEAM, name)

    team = Team(
        name=name,
        slug=slug,
        description=description,
        organization_id=organization_id,
        owner_id=owner_id,
        max_members=max_members or settings.default_team_max_members,
    )
    db.add(team)
    try:
        await db.flush()
    except IntegrityError:
        raise DomainError(ErrorCode.SLUG_TAKEN, "Team slug already taken")

    await memberships.create_owner_membership(db, TEAM, team, owner_id)
    await users.recompute_global_role(db, owner_id)
    log.info(
        "team.created",
        team_id=str(team.id),
        slug=slug,
        owner_id=str(owner_id),
        organization_id=str(organization_id) if organization_id else None,
    )
    return team


async def create_team(
    db: AsyncSession, caller: SessionUser, req: TeamCreateRequest
) -> Team:
    """Create a team owned by the caller, who is promoted to TEAM_LEADER."""
    await _ensure_single_team_allowed(db, caller.user_id)
    if req.organization_id is not None:
        await _reserve_org_slot(db, caller, req.organization_id, check_caller=True)

    return await _create(
        db,
        owner_id=caller.user_id,
        name=req.name,
        slug=req.slug,
        description=req.description,
        organization_id=req.organization_id,
    )


async def get_team(
    db: AsyncSession, caller: SessionUser, team_id: uuid.UUID
) -> tuple[Team, Optional[TeamRole]]:
    team = await memberships.get_scope(db, TEAM, team_id)
    role = await authorize_caller(db, caller, TEAM, team_id, Action.VIEW_MEMBERS)
    return team, role


async def list_members(
    db: AsyncSession, caller: SessionUser, team_id: uuid.UUID
) -> list[tuple[TeamMember, User]]:
    await memberships.get_scope(db, TEAM, team_id)
    await authorize_caller(db, caller, TEAM, team_id, Action.VIEW_MEMBERS)
    return await memberships.list_members(db, TEAM, team_id)


async def invite(
    db: AsyncSession, caller: SessionUser, team_id: uuid.UUID, req: TeamInviteRequest
) -> tuple[TeamMember, User, Team]:
    team = await memberships.lock_scope(db, TEAM, team_id)
    await authorize_caller(db, caller, TEAM, team_id, Action.ADD_MEMBER)

    user = await users.get_active_user(db, user_id=req.user_id, email=req.email)
    await _ensure_single_team_allowed(db, user.id)
    membership = await memberships.add_member(db, TEAM, team, user, req.role)
    if TeamRole(membership.role) in TEAM_LEADERSHIP_ROLES:
        await users.recompute_global_role(db, user.id, promote_only=True)
    return membership, user, team


async def update_member_role(
    db: AsyncSession,
    caller: SessionUser,
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    role: TeamRole,
) -> tuple[TeamMember, User, Team]:
    """Change a member's team role; ``OWNER`` transfers ownership."""
    team = await memberships.lock_scope(db, TEAM, team_id)
    action = Action.TRANSFER_OWNERSHIP if role == TeamRole.OWNER else Action.CHANGE_ROLE
    caller_role = await authorize_caller(db, caller, TEAM, team_id, action)

    if user_id == caller.user_id:
        raise DomainError(ErrorCode.FORBIDDEN, "You cannot change your own role")

    target = await memberships.require_membership(db, TEAM, team_id, user_id)
    if action == Action.CHANGE_ROLE:
        target_role = TeamRole(target.role)
        if target_role != TeamRole.OWNER:
            require_target_rank(caller, caller_role, target_role)
            require_target_rank(caller, caller_role, role)

    previous_owner_id = team.owner_id
    membership = await memberships.change_role(db, TEAM, team, user_id, role)
    await users.recompute_global_role(db, user_id)
    if previous_owner_id != team.owner_id:
        await users.recompute_global_role(db, previous_owner_id)

    user = await users.get_user(db, user_id)
    return membership, user, team


async def remove_member(
    db: AsyncSession, caller: SessionUser, team_id: uuid.UUID, user_id: uuid.UUID
) -> tuple[TeamMember, Team]:
    team = await memberships.lock_scope(db, TEAM, team_id)
    caller_role = await authorize_caller(db, caller, TEAM, team_id, Action.REMOVE_MEMBER)

    if user_id == caller.user_id:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR, "Use the leave endpoint to remove yourself"
        )

    target = await memberships.require_membership(db, TEAM, team_id, user_id)
    target_role = TeamRole(target.role)
    if target_role != TeamRole.OWNER:
        require_target_rank(caller, caller_role, target_role)

    membership = await memberships.remove_member(db, TEAM, team, user_id)
    await users.recompute_global_role(db, user_id)
    return membership, team


async def _earliest_team_id(db: AsyncSession, user_id: uuid.UUID) -> uuid.UUID:
    result = await db.execute(
        select(TeamMember.team_id)
        .where(TeamMember.user_id == user_id)
        .order_by(TeamMember.joined_at, TeamMember.id)
        .limit(1)
    )
    team_id = result.scalar_one_or_none()
    if team_id is None:
        raise DomainError(ErrorCode.NOT_FOUND, "You are not a member of any team")
    return team_id


async def _delete_team(db: AsyncSession, team: Team) -> list[uuid.UUID]:
    """Delete a team and its memberships. Returns the former members' ids."""
    result = await db.execute(select(TeamMember.user_id).where(TeamMember.team_id == team.id))
    former = list(result.scalars().all())
    await memberships.delete_all_memberships(db, TEAM, team.id)
    await db.delete(team)
    await db.flush()
    return former


async def leave(
    db: AsyncSession, caller: SessionUser, team_id: Optional[uuid.UUID] = None
) -> tuple[Team, bool]:
    """Leave a team. Returns (team, team_deleted).

    A sole remaining owner takes the team with them; an owner with other
    members must transfer ownership or remove them first.
    """
    if team_id is None:
        team_id = await _earliest_team_id(db, caller.user_id)

    team = await memberships.lock_scope(db, TEAM, team_id)
    membership = await memberships.get_membership(db, TEAM, team_id, caller.user_id)
    if membership is None:
        raise DomainError(ErrorCode.NOT_FOUND, "Team not found")

    team_deleted = False
    if membership.role == TeamRole.OWNER.value:
        if await memberships.count_members(db, TEAM, team_id) > 1:
            raise DomainError(ErrorCode.OWNER_MUST_TRANSFER_FIRST)
        await _delete_team(db, team)
        team_deleted = True
        log.info("team.deleted", team_id=str(team_id), reason="owner_left")
    else:
        await db.delete(membership)
        await db.flush()
        log.info("team.member_left", team_id=str(team_id), user_id=str(caller.user_id))

    await users.recompute_global_role(db, caller.user_id)
    return team, team_deleted


async def update_settings(
    db: AsyncSession, caller: SessionUser, req: TeamSettingsRequest
) -> tuple[Team, Optional[TeamRole]]:
    team = await memberships.lock_scope(db, TEAM, req.team_id)
    role = await authorize_caller(db, caller, TEAM, req.team_id, Action.UPDATE_SETTINGS)

    if req.max_members is not None:
        count = await memberships.count_members(db, TEAM, team.id)
        guard.check_capacity_not_below_members(req.max_members, count).raise_for_violation()
        team.max_members = req.max_members
    if req.name is not None:
        team.name = req.name
    if req.description is not None:
        team.description = req.description
    team.updated_at = utcnow()
    db.add(team)
    await db.flush()

    log.info("team.settings_updated", team_id=str(team.id), actor_id=str(caller.user_id))
    return team, role


# ---------------------------------------------------------------------------
# Platform-admin controls
# ---------------------------------------------------------------------------

async def admin_create(
    db: AsyncSession, caller: SessionUser, req: AdminTeamCreateRequest
) -> Team:
    owner = await users.get_active_user(db, user_id=req.owner_id)
    await _ensure_single_team_allowed(db, owner.id)
    if req.organization_id is not None:
        await _reserve_org_slot(db, caller, req.organization_id, check_caller=False)

    team = await _create(
        db,
        owner_id=owner.id,
        name=req.name,
        slug=None,
        description=req.description,
        organization_id=req.organization_id,
        max_members=req.max_members,
    )
    log.info("admin.team_created", team_id=str(team.id), actor_id=str(caller.user_id))
    return team


async def admin_update(
    db: AsyncSession, caller: SessionUser, team_id: uuid.UUID, req: AdminTeamUpdateRequest
) -> Team:
    team = await memberships.lock_scope(db, TEAM, team_id)
    if req.max_members is not None:
        count = await memberships.count_members(db, TEAM, team.id)
        guard.check_capacity_not_below_members(req.max_members, count).raise_for_violation()
        team.max_members = req.max_members
    if req.name is not None:
        team.name = req.name
    if req.description is not None:
        team.description = req.description
    if req.is_active is not None:
        team.is_active = req.is_active
    team.updated_at = utcnow()
    db.add(team)
    await db.flush()

    log.info("admin.team_updated", team_id=str(team_id), actor_id=str(caller.user_id))
    return team


async def admin_delete(db: AsyncSession, caller: SessionUser, team_id: uuid.UUID) -> None:
    team = await memberships.lock_scope(db, TEAM, team_id)
    former = await _delete_team(db, team)
    for user_id in former:
        await users.recompute_global_role(db, user_id)
    log.info("admin.team_deleted", team_id=str(team_id), actor_id=str(caller.user_id))
