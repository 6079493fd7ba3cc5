"""Team membership: a (user, team) edge carrying the team role."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import MembershipMixin, UUIDMixin


class TeamMember(UUIDMixin, MembershipMixin, SQLModel, table=True):
    __tablename__ = "team_members"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "team_id", name="uq_team_members_user_team"),
        sa.Index(
            "uq_team_members_owner",
            "team_id",
            unique=True,
            postgresql_where=sa.text("role = 'OWNER'"),
            sqlite_where=sa.text("role = 'OWNER'"),
        ),
    )

    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True, ondelete="CASCADE")
