"""
Membership lifecycle engine shared by organizations and teams.

Every mutation expects the scope row to be locked with ``lock_scope`` in the
current transaction, runs its guard checks, then writes. Nothing here commits;
the request's session does, so a failure anywhere rolls the whole transition
back.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import DomainError, ErrorCode
from app.models.base import utcnow
from app.models.user import User
from app.services import guard
from app.services.scopes import ScopeKind

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_scope(db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID) -> Any:
    scope = await db.get(kind.model, scope_id)
    if scope is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"{kind.label} not found")
    return scope


async def lock_scope(db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID) -> Any:
    """Load the scope row ``FOR UPDATE`` so concurrent mutations serialize on it."""
    result = await db.execute(
        select(kind.model)
        .where(kind.model.id == scope_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    scope = result.scalar_one_or_none()
    if scope is None:
        raise DomainError(ErrorCode.NOT_FOUND, f"{kind.label} not found")
    return scope


async def get_membership(
    db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[Any]:
    result = await db.execute(
        select(kind.member_model).where(
            kind.member_fk == scope_id,
            kind.member_model.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def require_membership(
    db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID, user_id: uuid.UUID
) -> Any:
    membership = await get_membership(db, kind, scope_id, user_id)
    if membership is None:
        raise DomainError(ErrorCode.MEMBER_NOT_FOUND)
    return membership


async def get_role(
    db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID, user_id: uuid.UUID
):
    """The user's role in the scope, or None if they are not a member."""
    membership = await get_membership(db, kind, scope_id, user_id)
    return kind.parse_role(membership.role) if membership else None


async def count_members(db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(kind.member_model).where(kind.member_fk == scope_id)
    )
    return result.scalar_one()


async def list_members(
    db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID
) -> list[tuple[Any, User]]:
    """Members with their user rows, owner first, then by join time."""
    member = kind.member_model
    owner_first = case((member.role == kind.owner_role.value, 0), else_=1)
    result = await db.execute(
        select(member, User)
        .join(User, User.id == member.user_id)
        .where(kind.member_fk == scope_id)
        .order_by(owner_first, member.joined_at, member.id)
    )
    return list(result.all())


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

async def create_owner_membership(
    db: AsyncSession, kind: ScopeKind, scope: Any, user_id: uuid.UUID
) -> Any:
    """Owner auto-membership written alongside a newly created scope."""
    membership = kind.member_model(
        **{kind.fk_name: scope.id},
        user_id=user_id,
        role=kind.owner_role.value,
    )
    db.add(membership)
    await db.flush()
    return membership


async def add_member(
    db: AsyncSession, kind: ScopeKind, scope: Any, user: User, role
) -> Any:
    """NonMember -> Member(role). ``scope`` must already be locked."""
    role = kind.parse_role(role)
    if role == kind.owner_role:
        raise DomainError(
            ErrorCode.VALIDATION_ERROR, "Ownership can only be transferred, not granted"
        )
    if not scope.is_active:
        raise DomainError(ErrorCode.SCOPE_INACTIVE, f"{kind.label} is inactive")

    (await guard.check_not_already_member(db, kind, user.id, scope.id)).raise_for_violation()
    count = await count_members(db, kind, scope.id)
    guard.check_capacity(scope.id, count, scope.max_members).raise_for_violation()

    membership = kind.member_model(
        **{kind.fk_name: scope.id},
        user_id=user.id,
        role=role.value,
    )
    db.add(membership)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent insert won the race on the (user, scope) constraint.
        raise DomainError(
            ErrorCode.ALREADY_MEMBER,
            f"User is already a member of this {kind.label.lower()}",
        )

    log.info(
        f"{kind.scope_type.value}.member_added",
        scope_id=str(scope.id),
        user_id=str(user.id),
        role=role.value,
    )
    return membership


async def change_role(
    db: AsyncSession, kind: ScopeKind, scope: Any, user_id: uuid.UUID, new_role
) -> Any:
    """Member(r1) -> Member(r2). Asking for the owner role transfers ownership."""
    new_role = kind.parse_role(new_role)
    if new_role == kind.owner_role:
        return await transfer_ownership(db, kind, scope, user_id)

    membership = await require_membership(db, kind, scope.id, user_id)
    if membership.role == kind.owner_role.value:
        raise DomainError(ErrorCode.CANNOT_CHANGE_OWNER_ROLE)

    previous = membership.role
    membership.role = new_role.value
    db.add(membership)
    await db.flush()

    log.info(
        f"{kind.scope_type.value}.member_role_changed",
        scope_id=str(scope.id),
        user_id=str(user_id),
        old_role=previous,
        new_role=new_role.value,
    )
    return membership


async def transfer_ownership(
    db: AsyncSession, kind: ScopeKind, scope: Any, new_owner_id: uuid.UUID
) -> Any:
    """Demote the current owner, promote ``new_owner_id`` and repoint ``owner_id``.

    The single-owner check runs before returning; a violation raises and the
    surrounding transaction rolls every step back.
    """
    target = await require_membership(db, kind, scope.id, new_owner_id)
    if target.role == kind.owner_role.value and scope.owner_id == new_owner_id:
        return target

    result = await db.execute(
        select(kind.member_model).where(
            kind.member_fk == scope.id,
            kind.member_model.role == kind.owner_role.value,
        )
    )
    previous_owners = list(result.scalars().all())
    try:
        for membership in previous_owners:
            membership.role = kind.demoted_owner_role.value
            db.add(membership)
        # The demotion must reach the database before the promotion or the
        # single-owner index rejects the update.
        await db.flush()

        target.role = kind.owner_role.value
        scope.owner_id = new_owner_id
        scope.updated_at = utcnow()
        db.add(target)
        db.add(scope)
        await db.flush()
    except IntegrityError:
        log.error(
            f"{kind.scope_type.value}.ownership_transfer_conflict",
            scope_id=str(scope.id),
            new_owner_id=str(new_owner_id),
        )
        raise DomainError(ErrorCode.OWNER_INVARIANT_VIOLATED)

    (await guard.check_single_owner_invariant(db, kind, scope, new_owner_id)).raise_for_violation()

    log.info(
        f"{kind.scope_type.value}.ownership_transferred",
        scope_id=str(scope.id),
        previous_owner_ids=[str(m.user_id) for m in previous_owners],
        new_owner_id=str(new_owner_id),
    )
    return target


async def remove_member(
    db: AsyncSession, kind: ScopeKind, scope: Any, user_id: uuid.UUID
) -> Any:
    """Member(r) -> Removed. The owner has to transfer ownership first."""
    membership = await require_membership(db, kind, scope.id, user_id)
    if membership.role == kind.owner_role.value:
        raise DomainError(ErrorCode.CANNOT_REMOVE_OWNER)

    await db.delete(membership)
    await db.flush()

    log.info(
        f"{kind.scope_type.value}.member_removed",
        scope_id=str(scope.id),
        user_id=str(user_id),
        role=membership.role,
    )
    return membership


async def delete_all_memberships(db: AsyncSession, kind: ScopeKind, scope_id: uuid.UUID) -> int:
    """Delete every membership row of a scope that is about to be deleted."""
    result = await db.execute(select(kind.member_model).where(kind.member_fk == scope_id))
    rows = list(result.scalars().all())
    for membership in rows:
        await db.delete(membership)
    await db.flush()
    return len(rows)
