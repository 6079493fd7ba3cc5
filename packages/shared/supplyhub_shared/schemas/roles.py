"""
Role hierarchies shared between the server and its clients.

Three independent orders, each with four levels:

- Global user role:   VIEWER < MEMBER < TEAM_LEADER < ADMIN
- Organization role:  GUEST < MEMBER < ADMIN < OWNER
- Team role:          VIEWER < MEMBER < LEADER < OWNER

Levels are only comparable within the same order.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Union


class _Role(str, Enum):
    """Case-insensitive string enum; ``"owner"`` parses as ``OWNER``."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            upper = value.upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None

    @property
    def level(self) -> int:
        return ROLE_LEVELS[type(self)][self]


class UserRole(_Role):
    VIEWER = "VIEWER"
    MEMBER = "MEMBER"
    TEAM_LEADER = "TEAM_LEADER"
    ADMIN = "ADMIN"


class OrgRole(_Role):
    GUEST = "GUEST"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


class TeamRole(_Role):
    VIEWER = "VIEWER"
    MEMBER = "MEMBER"
    LEADER = "LEADER"
    OWNER = "OWNER"


class ScopeType(str, Enum):
    ORGANIZATION = "organization"
    TEAM = "team"


AnyRole = Union[UserRole, OrgRole, TeamRole]

ROLE_LEVELS: dict[type, dict] = {
    UserRole: {
        UserRole.VIEWER: 1,
        UserRole.MEMBER: 2,
        UserRole.TEAM_LEADER: 3,
        UserRole.ADMIN: 4,
    },
    OrgRole: {
        OrgRole.GUEST: 1,
        OrgRole.MEMBER: 2,
        OrgRole.ADMIN: 3,
        OrgRole.OWNER: 4,
    },
    TeamRole: {
        TeamRole.VIEWER: 1,
        TeamRole.MEMBER: 2,
        TeamRole.LEADER: 3,
        TeamRole.OWNER: 4,
    },
}

# Role an outgoing owner is demoted to during an ownership transfer.
DEMOTED_OWNER_ROLE: dict[type, AnyRole] = {
    OrgRole: OrgRole.ADMIN,
    TeamRole: TeamRole.LEADER,
}

TEAM_LEADERSHIP_ROLES = frozenset({TeamRole.OWNER, TeamRole.LEADER})


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def has_at_least(role: AnyRole, required: AnyRole) -> bool:
    """True if ``role`` sits at or above ``required`` in the same hierarchy.

    Raises TypeError when the two roles come from different hierarchies.
    """
    if type(role) is not type(required):
        raise TypeError(
            f"Cannot compare {type(role).__name__} with {type(required).__name__}"
        )
    return role.level >= required.level


def roles_at_or_below(role: AnyRole) -> list[AnyRole]:
    """All roles of the same hierarchy at or below ``role``, lowest first."""
    return [r for r in type(role) if r.level <= role.level]


def role_display_name(role: AnyRole) -> str:
    return role.value.replace("_", " ").title()


# ---------------------------------------------------------------------------
# Global role predicates
# ---------------------------------------------------------------------------

def is_admin(role: UserRole) -> bool:
    return role == UserRole.ADMIN


def is_team_leader_or_above(role: UserRole) -> bool:
    return has_at_least(role, UserRole.TEAM_LEADER)


def is_member_or_above(role: UserRole) -> bool:
    return has_at_least(role, UserRole.MEMBER)


def can_edit(role: UserRole) -> bool:
    return has_at_least(role, UserRole.MEMBER)


def can_delete(role: UserRole) -> bool:
    return has_at_least(role, UserRole.TEAM_LEADER)


def can_manage_team(role: UserRole) -> bool:
    return has_at_least(role, UserRole.TEAM_LEADER)


def can_access_admin_console(role: UserRole) -> bool:
    return is_admin(role)


def derive_global_role(current: UserRole, team_roles: Iterable[TeamRole]) -> UserRole:
    """Recompute a user's global role from the teams they currently belong to.

    Admins keep their role. Anyone owning or leading a team is a TEAM_LEADER.
    Everyone else falls back to MEMBER.
    """
    if current == UserRole.ADMIN:
        return UserRole.ADMIN
    if any(role in TEAM_LEADERSHIP_ROLES for role in team_roles):
        return UserRole.TEAM_LEADER
    return UserRole.MEMBER
