"""
Capacity and uniqueness checks run before every membership mutation.

Checks never write. Callers lock the scope row first and run the check in the
same transaction as the write that follows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import DomainError, ErrorCode
from app.services.scopes import ScopeKind


@dataclass(frozen=True)
class GuardResult:
    ok: bool
    code: Optional[ErrorCode] = None
    reason: Optional[str] = None

    @classmethod
    def passed(cls) -> "GuardResult":
        return cls(ok=True)

    @classmethod
    def violation(cls, code: ErrorCode, reason: str) -> "GuardResult":
        return cls(ok=False, code=code, reason=reason)

    def raise_for_violation(self) -> None:
        if not self.ok:
            raise DomainError(self.code, self.reason)


def check_capacity(
    scope_id: uuid.UUID, current_member_count: int, max_members: int
) -> GuardResult:
    if current_member_count >= max_members:
        return GuardResult.violation(
            ErrorCode.CAPACITY_EXCEEDED,
            f"Maximum member capacity ({max_members}) reached",
        )
    return GuardResult.passed()


async def check_not_already_member(
    db: AsyncSession, kind: ScopeKind, user_id: uuid.UUID, scope_id: uuid.UUID
) -> GuardResult:
    result = await db.execute(
        select(kind.member_model.id).where(
            kind.member_fk == scope_id,
            kind.member_model.user_id == user_id,
        )
    )
    if result.first() is not None:
        return GuardResult.violation(
            ErrorCode.ALREADY_MEMBER,
            f"User is already a member of this {kind.label.lower()}",
        )
    return GuardResult.passed()


async def check_single_owner_invariant(
    db: AsyncSession, kind: ScopeKind, scope: Any, proposed_owner_id: uuid.UUID
) -> GuardResult:
    """Exactly one owner row, held by ``proposed_owner_id``, matching ``scope.owner_id``."""
    result = await db.execute(
        select(kind.member_model.user_id).where(
            kind.member_fk == scope.id,
            kind.member_model.role == kind.owner_role.value,
        )
    )
    owners = list(result.scalars().all())
    if owners != [proposed_owner_id] or scope.owner_id != proposed_owner_id:
        return GuardResult.violation(
            ErrorCode.OWNER_INVARIANT_VIOLATED,
            f"{kind.label} must have exactly one owner",
        )
    return GuardResult.passed()


def check_team_capacity(
    org_id: uuid.UUID, current_team_count: int, max_teams: int
) -> GuardResult:
    if current_team_count >= max_teams:
        return GuardResult.violation(
            ErrorCode.TEAM_LIMIT_REACHED,
            f"Organization has reached its team limit ({max_teams})",
        )
    return GuardResult.passed()


def check_capacity_not_below_members(new_max: int, current_count: int) -> GuardResult:
    if new_max < current_count:
        return GuardResult.violation(
            ErrorCode.VALIDATION_ERROR,
            f"Cannot set max members below current member count ({current_count})",
        )
    return GuardResult.passed()
