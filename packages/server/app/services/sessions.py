"""
Token issuance flows: email/password login and organization switch.

Both flows end the same way: read one Membership, resolve it against the role
catalog and sign the result. A token is always scoped to exactly one
organization.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from functools import lru_cache
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, verify_password
from app.core.catalog import RoleCatalog, get_catalog
from app.core.config import get_settings
from app.core.errors import (
    AccountNotVerified,
    CrossTenantAttempt,
    InvalidCredentials,
    MembershipNotFound,
)
from app.core.redis import clear_login_attempts, register_login_attempt
from app.core.resolver import Membership, ResolvedAuthorization, resolve
from app.core.scope import select_organization
from app.core.tokens import IssuedToken, issue
from app.models.user import User
from app.services.memberships import bounded, get_membership, list_memberships
from wampums_shared.schemas.auth import LoginRequest

log = structlog.get_logger()
settings = get_settings()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def token_ttl() -> timedelta:
    return timedelta(minutes=settings.jwt_expire_minutes)


@lru_cache
def _unknown_user_hash() -> str:
    # Compared against when the email is unknown so both failures cost one bcrypt check
    return hash_password(uuid.uuid4().hex)


def issue_for(
    membership: Membership,
    catalog: Optional[RoleCatalog] = None,
) -> tuple[IssuedToken, ResolvedAuthorization]:
    """Resolve a membership and sign the snapshot."""
    resolved = resolve(membership, catalog or get_catalog())
    issued = issue(
        resolved,
        settings.secret_key,
        token_ttl(),
        algorithm=settings.jwt_algorithm,
    )
    log.info(
        "auth.token_issued",
        user_id=str(resolved.user_id),
        organization_id=resolved.organization_id,
        roles=resolved.role_ids,
        is_demo=resolved.is_demo,
        jti=issued.token_id,
    )
    return issued, resolved


async def authenticate_user(email: str, password: str, session: AsyncSession) -> User:
    """Check credentials. Unknown email and wrong password look the same."""
    result = await bounded(
        "get_user",
        session.execute(select(User).where(User.email == normalize_email(email))),
        None,
    )
    user = result.scalar_one_or_none()

    if not user or not user.password_hash:
        verify_password(password, _unknown_user_hash())
        log.warning("auth.login_failure", email=normalize_email(email), reason="unknown_user")
        raise InvalidCredentials()

    if not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", email=normalize_email(email), reason="bad_password")
        raise InvalidCredentials()

    if not user.is_verified:
        log.warning("auth.login_failure", email=normalize_email(email), reason="not_verified")
        raise AccountNotVerified()

    return user


async def login(
    body: LoginRequest,
    session: AsyncSession,
) -> tuple[IssuedToken, ResolvedAuthorization]:
    """Email/password login scoped to one of the user's organizations."""
    identifier = normalize_email(body.email)
    await register_login_attempt(identifier)

    user = await authenticate_user(body.email, body.password, session)
    memberships = await list_memberships(user.id, session)
    membership = select_organization(memberships, body.organization_id)

    await clear_login_attempts(identifier)
    issued, resolved = issue_for(membership)
    log.info(
        "auth.login_success",
        user_id=str(user.id),
        organization_id=membership.organization_id,
    )
    return issued, resolved


async def switch_organization(
    user_id: uuid.UUID,
    current_organization_id: int,
    organization_id: int,
    session: AsyncSession,
) -> tuple[IssuedToken, ResolvedAuthorization]:
    """Re-issue a token for another organization the user belongs to."""
    try:
        membership = await get_membership(user_id, organization_id, session)
    except MembershipNotFound:
        log.warning(
            "scope.cross_tenant_attempt",
            user_id=str(user_id),
            token_organization_id=current_organization_id,
            requested=str(organization_id),
        )
        raise CrossTenantAttempt("You do not have access to this organization")

    issued, resolved = issue_for(membership)
    log.info(
        "auth.organization_switched",
        user_id=str(user_id),
        from_organization_id=current_organization_id,
        to_organization_id=organization_id,
    )
    return issued, resolved
