"""Convert ORM rows into wire schemas."""

from __future__ import annotations

from typing import Any, Optional

from app.models.organization import Organization
from app.models.team import Team
from app.models.user import User
from supplyhub_shared.schemas.common import MemberResponse, UserSummary
from supplyhub_shared.schemas.organizations import OrganizationResponse
from supplyhub_shared.schemas.roles import OrgRole, TeamRole
from supplyhub_shared.schemas.teams import TeamResponse


def user_summary(user: User) -> UserSummary:
    return UserSummary.model_validate(user)


def member_response(membership: Any, user: User) -> MemberResponse:
    return MemberResponse(
        user_id=membership.user_id,
        role=membership.role,
        joined_at=membership.joined_at,
        user=user_summary(user),
    )


def organization_response(
    org: Organization,
    *,
    member_count: int = 0,
    team_count: int = 0,
    my_role: Optional[OrgRole] = None,
) -> OrganizationResponse:
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        description=org.description,
        owner_id=org.owner_id,
        max_members=org.max_members,
        max_teams=org.max_teams,
        is_active=org.is_active,
        member_count=member_count,
        team_count=team_count,
        my_role=my_role,
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


def team_response(
    team: Team,
    *,
    member_count: int = 0,
    my_role: Optional[TeamRole] = None,
) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        slug=team.slug,
        description=team.description,
        organization_id=team.organization_id,
        owner_id=team.owner_id,
        max_members=team.max_members,
        is_active=team.is_active,
        member_count=member_count,
        my_role=my_role,
        created_at=team.created_at,
        updated_at=team.updated_at,
    )
