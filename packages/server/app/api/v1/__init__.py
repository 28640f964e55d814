"""
API v1 Router

Authorization lifecycle routes. Business routes of the surrounding application
mount beside these and guard themselves with ``require_permission``.
"""

from fastapi import APIRouter

from . import auth, organizations, roles

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(roles.router, tags=["Roles"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth/login",
            "/auth/switch-organization",
            "/auth/verify-session",
            "/auth/logout",
            "/auth/me/permissions",
            "/organizations",
            "/roles",
            "/roles/{role_id}/permissions",
            "/permissions",
        ],
    }
