"""Organization membership: a (user, organization) edge carrying the org role."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import MembershipMixin, UUIDMixin


class OrganizationMember(UUIDMixin, MembershipMixin, SQLModel, table=True):
    __tablename__ = "organization_members"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "organization_id", name="uq_organization_members_user_org"),
        # At most one owner per organization.
        sa.Index(
            "uq_organization_members_owner",
            "organization_id",
            unique=True,
            postgresql_where=sa.text("role = 'OWNER'"),
            sqlite_where=sa.text("role = 'OWNER'"),
        ),
    )

    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True, ondelete="CASCADE"
    )
