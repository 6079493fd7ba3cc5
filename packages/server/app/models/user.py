"""User model. Rows are created by the auth subsystem; this service only reads
them and adjusts ``role`` and ``is_active``."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False, max_length=255)
    first_name: str = Field(default="", nullable=False, max_length=100)
    last_name: str = Field(default="", nullable=False, max_length=100)
    role: str = Field(default="MEMBER", nullable=False, max_length=20)  # UserRole
    is_active: bool = Field(default=True, nullable=False)
    avatar_url: Optional[str] = None
