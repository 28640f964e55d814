"""
Membership store: read access to users' role assignments per organization.

Lookups are bounded by ``membership_timeout_seconds``. Timeouts, pool exhaustion and
driver failures surface as ServiceUnavailable, never as an authorization failure.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Optional, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.catalog import get_catalog
from app.core.config import get_settings
from app.core.errors import MembershipNotFound, ServiceUnavailable
from app.core.resolver import Membership
from app.models.organization import Organization
from app.models.user_org import UserOrganization
from wampums_shared.schemas.common import OrgStatus

log = structlog.get_logger()
settings = get_settings()

T = TypeVar("T")


async def bounded(operation: str, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    try:
        return await asyncio.wait_for(awaitable, timeout or settings.membership_timeout_seconds)
    except asyncio.TimeoutError as exc:
        log.error("memberships.timeout", operation=operation)
        raise ServiceUnavailable("Membership lookup timed out") from exc
    except (SQLAlchemyError, OSError) as exc:
        log.error("memberships.backend_error", operation=operation, error=str(exc))
        raise ServiceUnavailable("Membership store unavailable") from exc


def to_membership(row: UserOrganization, default_role: Optional[str] = None) -> Membership:
    """Convert a stored row; an empty role list reads as the default role."""
    role_ids = frozenset(str(role_id) for role_id in (row.role_ids or []))
    if not role_ids:
        fallback = default_role if default_role is not None else get_catalog().default_role
        if fallback:
            role_ids = frozenset({fallback})
    return Membership(
        user_id=row.user_id,
        organization_id=row.organization_id,
        role_ids=role_ids,
    )


async def get_membership(
    user_id: uuid.UUID,
    organization_id: int,
    session: AsyncSession,
    *,
    timeout: Optional[float] = None,
) -> Membership:
    """Fetch one membership in an active organization or raise MembershipNotFound."""
    stmt = (
        select(UserOrganization)
        .join(Organization, Organization.id == UserOrganization.organization_id)
        .where(
            UserOrganization.user_id == user_id,
            UserOrganization.organization_id == organization_id,
            Organization.status == OrgStatus.ACTIVE.value,
        )
    )
    result = await bounded("get_membership", session.execute(stmt), timeout)
    row = result.scalar_one_or_none()
    if row is None:
        raise MembershipNotFound()
    return to_membership(row)


async def list_memberships_with_organizations(
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    timeout: Optional[float] = None,
) -> list[tuple[Membership, Organization]]:
    stmt = (
        select(UserOrganization, Organization)
        .join(Organization, Organization.id == UserOrganization.organization_id)
        .where(
            UserOrganization.user_id == user_id,
            Organization.status == OrgStatus.ACTIVE.value,
        )
        .order_by(UserOrganization.organization_id)
    )
    result: Any = await bounded("list_memberships", session.execute(stmt), timeout)
    return [(to_membership(row), org) for row, org in result.all()]


async def list_memberships(
    user_id: uuid.UUID,
    session: AsyncSession,
    *,
    timeout: Optional[float] = None,
) -> list[Membership]:
    """All of a user's memberships in active organizations, by organization id."""
    pairs = await list_memberships_with_organizations(user_id, session, timeout=timeout)
    return [membership for membership, _ in pairs]
