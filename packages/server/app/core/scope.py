"""
Organization scoping.

Every downstream query is parameterized by the organization id returned here;
it is the tenant isolation boundary of the whole application.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import structlog
from fastapi import Depends, Request

from app.core.auth import require_authenticated
from app.core.errors import CrossTenantAttempt, MembershipNotFound, OrganizationRequired
from app.core.resolver import Membership, ResolvedAuthorization

log = structlog.get_logger()

ORGANIZATION_HEADER = "X-Organization-ID"
ORGANIZATION_PARAM = "organization_id"


def requested_organization_ids(request: Request) -> list[str]:
    """Every organization id the client supplied (header, path, query)."""
    values = [
        request.headers.get(ORGANIZATION_HEADER),
        request.path_params.get(ORGANIZATION_PARAM),
        request.query_params.get(ORGANIZATION_PARAM),
    ]
    return [str(v).strip() for v in values if v is not None and str(v).strip() != ""]


def resolve_organization_id(
    requested: Iterable[str | int],
    auth: ResolvedAuthorization,
) -> int:
    """Return the organization a request is scoped to.

    The token's organization is authoritative. A client-supplied id that differs
    from it (or is not an integer at all) is a cross-tenant attempt.
    """
    for value in requested:
        try:
            candidate = int(value)
        except (TypeError, ValueError):
            candidate = None
        if candidate != auth.organization_id:
            log.warning(
                "scope.cross_tenant_attempt",
                user_id=str(auth.user_id),
                token_organization_id=auth.organization_id,
                requested=str(value),
            )
            raise CrossTenantAttempt(
                f"Token is scoped to organization {auth.organization_id}"
            )
    return auth.organization_id


def select_organization(
    memberships: Sequence[Membership],
    requested: Optional[int],
) -> Membership:
    """Pick the membership a new token is issued for at login.

    A user with several memberships must name the organization explicitly, and
    the named organization must be one they belong to.
    """
    if not memberships:
        raise MembershipNotFound("User has no organization memberships")

    if requested is None:
        if len(memberships) > 1:
            raise OrganizationRequired()
        return memberships[0]

    for membership in memberships:
        if membership.organization_id == requested:
            return membership
    raise MembershipNotFound()


async def get_organization_id(
    request: Request,
    auth: ResolvedAuthorization = Depends(require_authenticated),
) -> int:
    """FastAPI dependency: the organization id every query must be filtered by."""
    return resolve_organization_id(requested_organization_ids(request), auth)
