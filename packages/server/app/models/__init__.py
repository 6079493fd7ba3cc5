# SQLModel definitions: imported here to ensure metadata is populated for Alembic.
from .base import MembershipMixin, TimestampMixin, UUIDMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .organization_member import OrganizationMember  # noqa: F401
from .team import Team  # noqa: F401
from .team_member import TeamMember  # noqa: F401
