"""
Scope descriptors.

Organizations and teams share one membership lifecycle. A ``ScopeKind``
tells the generic engine which tables, foreign key and role hierarchy a
scope uses, so the same code paths serve both.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Type

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.organization import Organization
from app.models.organization_member import OrganizationMember
from app.models.team import Team
from app.models.team_member import TeamMember
from supplyhub_shared.schemas.roles import (
    DEMOTED_OWNER_ROLE,
    OrgRole,
    ScopeType,
    TeamRole,
)


@dataclass(frozen=True)
class ScopeKind:
    scope_type: ScopeType
    model: Type[Any]
    member_model: Type[Any]
    fk_name: str
    role_enum: Type[Any]
    label: str

    @property
    def owner_role(self):
        return self.role_enum.OWNER

    @property
    def demoted_owner_role(self):
        return DEMOTED_OWNER_ROLE[self.role_enum]

    @property
    def member_fk(self):
        return getattr(self.member_model, self.fk_name)

    def parse_role(self, value):
        return self.role_enum(value)


ORGANIZATION = ScopeKind(
    scope_type=ScopeType.ORGANIZATION,
    model=Organization,
    member_model=OrganizationMember,
    fk_name="organization_id",
    role_enum=OrgRole,
    label="Organization",
)

TEAM = ScopeKind(
    scope_type=ScopeType.TEAM,
    model=Team,
    member_model=TeamMember,
    fk_name="team_id",
    role_enum=TeamRole,
    label="Team",
)


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    slug = _NON_SLUG.sub("-", name.lower()).strip("-")
    return slug[:40] or "scope"


async def slug_exists(db: AsyncSession, kind: ScopeKind, slug: str) -> bool:
    result = await db.execute(select(kind.model.id).where(kind.model.slug == slug))
    return result.first() is not None


async def unique_slug(db: AsyncSession, kind: ScopeKind, name: str) -> str:
    """Slug for ``name``, suffixed ``-1``, ``-2``... until no scope uses it."""
    base = slugify(name)
    slug = base
    counter = 1
    while await slug_exists(db, kind, slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
