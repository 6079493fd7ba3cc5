"""Platform-admin request schemas and user management schemas."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import Field

from .common import APIModel, Description, Envelope, Name, UserSummary
from .roles import UserRole


class AdminOrganizationCreateRequest(APIModel):
    """Create an organization on behalf of ``owner_id``."""

    name: Name
    description: Optional[Description] = None
    owner_id: uuid.UUID
    max_teams: Optional[int] = Field(None, ge=1, le=100)
    max_members: Optional[int] = Field(None, ge=1, le=1000)


class AdminOrganizationUpdateRequest(APIModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    max_teams: Optional[int] = Field(None, ge=1, le=100)
    max_members: Optional[int] = Field(None, ge=1, le=1000)
    is_active: Optional[bool] = None


class AdminTransferOwnershipRequest(APIModel):
    new_owner_id: uuid.UUID


class AdminTeamCreateRequest(APIModel):
    name: Name
    description: Optional[Description] = None
    owner_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    max_members: Optional[int] = Field(None, ge=1, le=100)


class AdminTeamUpdateRequest(APIModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    max_members: Optional[int] = Field(None, ge=1, le=100)
    is_active: Optional[bool] = None


class UserRoleUpdateRequest(APIModel):
    role: UserRole


class UserStatusUpdateRequest(APIModel):
    is_active: bool


class UserEnvelope(Envelope):
    user: UserSummary


class SessionResponse(APIModel):
    user_id: uuid.UUID
    role: UserRole


class SessionEnvelope(Envelope):
    session: SessionResponse
