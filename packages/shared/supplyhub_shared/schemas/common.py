"""Wire primitives shared by every route: the camelCase base model, the response
envelope, validated name and slug types, and the member and user views.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, StringConstraints, model_validator
from pydantic.alias_generators import to_camel

from .roles import UserRole

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
Slug = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$"),
]
Description = Annotated[str, StringConstraints(max_length=500)]


class APIModel(BaseModel):
    """Base for wire schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(APIModel):
    """Uniform response envelope: ``{success, error?, ...payload}``."""

    success: bool = True
    message: Optional[str] = None


class ErrorEnvelope(APIModel):
    success: bool = False
    error: str
    code: str


class UserSummary(APIModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool


class MemberResponse(APIModel):
    """A membership row joined with the member's user record."""

    user_id: uuid.UUID
    role: str
    joined_at: datetime
    user: UserSummary


class MemberEnvelope(Envelope):
    member: MemberResponse


class MemberListEnvelope(Envelope):
    members: list[MemberResponse]


class MemberTarget(APIModel):
    """Identifies the user being added, by id or by email (exactly one)."""

    user_id: Optional[uuid.UUID] = None
    email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def _exactly_one_target(self):
        if (self.user_id is None) == (self.email is None):
            raise ValueError("Provide exactly one of userId or email")
        if self.email is not None:
            self.email = self.email.strip().lower()
        return self

