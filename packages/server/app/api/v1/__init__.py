"""
API v1 Router

Organization, team, platform-admin and session endpoints.
"""

from fastapi import APIRouter

from . import admin, auth, organizations, teams

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Session"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth/session",
            "/organizations",
            "/organizations/{orgId}/members",
            "/teams",
            "/teams/{teamId}/members",
            "/admin",
        ],
    }
