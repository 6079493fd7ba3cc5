"""Team model. A team optionally belongs to an organization."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Team(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "teams"

    name: str = Field(nullable=False, max_length=100)
    slug: str = Field(unique=True, nullable=False, index=True, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    organization_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="organizations.id", index=True, ondelete="SET NULL"
    )
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    max_members: int = Field(default=10, nullable=False)
    is_active: bool = Field(default=True, nullable=False)
