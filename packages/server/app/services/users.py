"""
User service: lookups used by the membership engine, the derived global role,
and the platform-admin user controls.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import DomainError, ErrorCode
from app.models.base import utcnow
from app.models.team_member import TeamMember
from app.models.user import User
from supplyhub_shared.schemas.roles import TeamRole, UserRole, derive_global_role

log = structlog.get_logger()


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise DomainError(ErrorCode.USER_NOT_FOUND)
    return user


async def get_active_user(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
    email: Optional[str] = None,
) -> User:
    """Resolve a membership target by id or email. Inactive users count as missing."""
    if user_id is not None:
        user = await db.get(User, user_id)
    elif email is not None:
        result = await db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        user = result.scalar_one_or_none()
    else:
        raise DomainError(ErrorCode.VALIDATION_ERROR, "A user id or email is required")

    if user is None or not user.is_active:
        raise DomainError(ErrorCode.USER_NOT_FOUND)
    return user


async def team_roles_for(db: AsyncSession, user_id: uuid.UUID) -> list[TeamRole]:
    result = await db.execute(select(TeamMember.role).where(TeamMember.user_id == user_id))
    return [TeamRole(role) for role in result.scalars().all()]


async def recompute_global_role(
    db: AsyncSession, user_id: uuid.UUID, *, promote_only: bool = False
) -> Optional[User]:
    """Re-derive the user's global role from their current team memberships.

    With ``promote_only`` the role is raised but never lowered.
    """
    user = await db.get(User, user_id)
    if user is None:
        return None

    current = UserRole(user.role)
    derived = derive_global_role(current, await team_roles_for(db, user_id))
    if derived != current and not (promote_only and derived.level < current.level):
        user.role = derived.value
        user.updated_at = utcnow()
        db.add(user)
        await db.flush()
        log.info(
            "user.global_role_changed",
            user_id=str(user_id),
            old_role=current.value,
            new_role=derived.value,
        )
    return user


async def is_in_any_team(db: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(TeamMember.id).where(TeamMember.user_id == user_id).limit(1)
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Platform-admin controls
# ---------------------------------------------------------------------------

async def set_global_role(
    db: AsyncSession, actor_id: uuid.UUID, user_id: uuid.UUID, role: UserRole
) -> User:
    user = await get_user(db, user_id)
    if user.id == actor_id and role != UserRole.ADMIN:
        raise DomainError(ErrorCode.FORBIDDEN, "You cannot remove your own admin role")

    previous = user.role
    user.role = UserRole(role).value
    user.updated_at = utcnow()
    db.add(user)
    await db.flush()

    log.info(
        "user.role_set",
        user_id=str(user_id),
        old_role=previous,
        new_role=user.role,
        actor_id=str(actor_id),
    )
    return user


async def set_active(
    db: AsyncSession, actor_id: uuid.UUID, user_id: uuid.UUID, is_active: bool
) -> User:
    user = await get_user(db, user_id)
    if user.id == actor_id and not is_active:
        raise DomainError(ErrorCode.FORBIDDEN, "You cannot deactivate your own account")

    user.is_active = is_active
    user.updated_at = utcnow()
    db.add(user)
    await db.flush()

    log.info(
        "user.status_set",
        user_id=str(user_id),
        is_active=is_active,
        actor_id=str(actor_id),
    )
    return user
