"""Team schemas (team creation, invitations, settings, leave)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .common import APIModel, Description, Envelope, MemberTarget, Name, Slug
from .roles import TeamRole


class TeamCreateRequest(APIModel):
    name: Name
    slug: Slug
    description: Optional[Description] = None
    organization_id: Optional[uuid.UUID] = None


class TeamInviteRequest(MemberTarget):
    role: TeamRole = TeamRole.MEMBER

    @field_validator("role")
    @classmethod
    def _not_owner(cls, role: TeamRole) -> TeamRole:
        if role == TeamRole.OWNER:
            raise ValueError("Ownership can only be transferred, not granted on invite")
        return role


class TeamMemberUpdateRequest(APIModel):
    """Change a member's team role. ``OWNER`` triggers an ownership transfer."""

    role: TeamRole


class TeamLeaveRequest(APIModel):
    team_id: Optional[uuid.UUID] = Field(
        None, description="Team to leave; defaults to the earliest joined team"
    )


class TeamSettingsRequest(APIModel):
    team_id: uuid.UUID
    name: Optional[Name] = None
    description: Optional[Description] = None
    max_members: Optional[int] = Field(None, ge=2, le=50)


class TeamResponse(APIModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    organization_id: Optional[uuid.UUID] = None
    owner_id: uuid.UUID
    max_members: int
    is_active: bool
    member_count: int = 0
    my_role: Optional[TeamRole] = None
    created_at: datetime
    updated_at: datetime


class TeamEnvelope(Envelope):
    team: TeamResponse


class TeamListEnvelope(Envelope):
    teams: list[TeamResponse]
