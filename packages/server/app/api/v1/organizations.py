"""
Organization API endpoints.

GET    /api/v1/organizations      List the caller's memberships
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_authenticated
from app.core.database import get_session
from app.core.resolver import ResolvedAuthorization
from app.services.memberships import list_memberships_with_organizations
from wampums_shared.schemas.auth import MembershipItem, MembershipListResponse

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=MembershipListResponse)
async def list_organizations(
    auth: ResolvedAuthorization = Depends(require_authenticated),
    session: AsyncSession = Depends(get_session),
):
    """List organizations the authenticated user belongs to.

    Only names the caller's own memberships; ``active`` marks the organization
    the presented token is scoped to.
    """
    pairs = await list_memberships_with_organizations(auth.user_id, session)
    return MembershipListResponse(
        data=[
            MembershipItem(
                organization_id=membership.organization_id,
                name=org.name,
                slug=org.slug,
                roles=sorted(membership.role_ids),
                active=membership.organization_id == auth.organization_id,
            )
            for membership, org in pairs
        ]
    )
