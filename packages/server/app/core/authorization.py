"""
Authorization gate for membership operations.

``authorize`` is a pure predicate over (caller, scope type, caller's role in
the scope, action). ``authorize_caller`` looks the role up and raises the
matching error. Platform admins pass every check; that branch is evaluated
first.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import SessionUser
from app.core.errors import DomainError, ErrorCode
from app.services import memberships
from app.services.scopes import ScopeKind
from supplyhub_shared.schemas.roles import AnyRole, OrgRole, ScopeType, TeamRole, has_at_least

log = structlog.get_logger()


class Action(str, Enum):
    VIEW_MEMBERS = "view_members"
    ADD_MEMBER = "add_member"
    CHANGE_ROLE = "change_role"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    REMOVE_MEMBER = "remove_member"
    UPDATE_SETTINGS = "update_settings"
    DELETE_SCOPE = "delete_scope"
    ADMIN_OVERRIDE = "admin_override"


# Minimum scope role per action. ADMIN_OVERRIDE is absent: only platform admins pass it.
PERMISSIONS: dict[ScopeType, dict[Action, AnyRole]] = {
    ScopeType.ORGANIZATION: {
        Action.VIEW_MEMBERS: OrgRole.GUEST,
        Action.ADD_MEMBER: OrgRole.ADMIN,
        Action.CHANGE_ROLE: OrgRole.ADMIN,
        Action.TRANSFER_OWNERSHIP: OrgRole.OWNER,
        Action.REMOVE_MEMBER: OrgRole.ADMIN,
        Action.UPDATE_SETTINGS: OrgRole.ADMIN,
        Action.DELETE_SCOPE: OrgRole.OWNER,
    },
    ScopeType.TEAM: {
        Action.VIEW_MEMBERS: TeamRole.VIEWER,
        Action.ADD_MEMBER: TeamRole.LEADER,
        Action.CHANGE_ROLE: TeamRole.LEADER,
        Action.TRANSFER_OWNERSHIP: TeamRole.OWNER,
        Action.REMOVE_MEMBER: TeamRole.LEADER,
        Action.UPDATE_SETTINGS: TeamRole.LEADER,
        Action.DELETE_SCOPE: TeamRole.OWNER,
    },
}


def authorize(
    caller: SessionUser,
    scope_type: ScopeType,
    scope_role: Optional[AnyRole],
    action: Action,
) -> bool:
    if caller.is_admin:
        return True
    required = PERMISSIONS[scope_type].get(action)
    if required is None or scope_role is None:
        return False
    return has_at_least(scope_role, required)


def can_act_on_target(
    caller: SessionUser, caller_role: Optional[AnyRole], target_role: AnyRole
) -> bool:
    """Managers below Owner may only act on members ranked strictly below them."""
    if caller.is_admin:
        return True
    if caller_role is None:
        return False
    if caller_role == type(caller_role).OWNER:
        return True
    return target_role.level < caller_role.level


async def authorize_caller(
    db: AsyncSession,
    caller: SessionUser,
    kind: ScopeKind,
    scope_id: uuid.UUID,
    action: Action,
) -> Optional[AnyRole]:
    """Check ``action`` for ``caller`` in the scope and return the caller's role.

    Non-members asking to view get NOT_FOUND so the scope's existence is not
    disclosed; every other denial is FORBIDDEN.
    """
    role = await memberships.get_role(db, kind, scope_id, caller.user_id)
    if authorize(caller, kind.scope_type, role, action):
        return role

    log.info(
        "authz.denied",
        user_id=str(caller.user_id),
        scope_type=kind.scope_type.value,
        scope_id=str(scope_id),
        action=action.value,
        role=role.value if role else None,
    )
    if role is None and action == Action.VIEW_MEMBERS:
        raise DomainError(ErrorCode.NOT_FOUND, f"{kind.label} not found")
    raise DomainError(ErrorCode.FORBIDDEN)


def require_target_rank(
    caller: SessionUser, caller_role: Optional[AnyRole], target_role: AnyRole
) -> None:
    if not can_act_on_target(caller, caller_role, target_role):
        raise DomainError(
            ErrorCode.FORBIDDEN,
            "You cannot manage a member whose role is equal to or above your own",
        )
