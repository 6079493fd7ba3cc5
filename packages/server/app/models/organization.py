"""Organization model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, index=True, max_length=100)
    slug: str = Field(unique=True, nullable=False, index=True, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    max_members: int = Field(default=50, nullable=False)
    max_teams: int = Field(default=5, nullable=False)
    is_active: bool = Field(default=True, nullable=False)
