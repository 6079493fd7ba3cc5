"""
Organization schemas: CRUD requests/responses and organization membership.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .common import APIModel, Description, Envelope, MemberTarget, Name, Slug
from .roles import OrgRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(APIModel):
    name: Name
    slug: Optional[Slug] = Field(
        None, description="URL-safe identifier; generated from the name when omitted"
    )
    description: Optional[Description] = None


class OrganizationUpdateRequest(APIModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    max_members: Optional[int] = Field(None, ge=1, le=1000)
    max_teams: Optional[int] = Field(None, ge=1, le=100)


class OrgMemberAddRequest(MemberTarget):
    """Invite a user into an organization. Ownership is never granted here."""

    role: OrgRole = OrgRole.MEMBER

    @field_validator("role")
    @classmethod
    def _not_owner(cls, role: OrgRole) -> OrgRole:
        if role == OrgRole.OWNER:
            raise ValueError("Ownership can only be transferred, not granted on invite")
        return role


class OrgMemberUpdateRequest(APIModel):
    """Change a member's role. ``OWNER`` triggers an ownership transfer."""

    role: OrgRole


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrganizationResponse(APIModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    owner_id: uuid.UUID
    max_members: int
    max_teams: int
    is_active: bool
    member_count: int = 0
    team_count: int = 0
    my_role: Optional[OrgRole] = None
    created_at: datetime
    updated_at: datetime


class OrganizationEnvelope(Envelope):
    organization: OrganizationResponse


class OrganizationListEnvelope(Envelope):
    organizations: list[OrganizationResponse]
