"""
Authentication endpoints.

- Email/password login, scoped to one organization
- Organization switch (re-issue for another membership)
- Session introspection (verify-session, me/permissions)
- Logout (stateless: the client discards its token)
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import authorization_header, extract_bearer, require_authenticated
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AccessError
from app.core.resolver import ResolvedAuthorization
from app.core.tokens import IssuedToken, verify
from app.services import sessions as session_service
from wampums_shared.schemas.auth import (
    LoginRequest,
    RoleRefResponse,
    SessionResponse,
    SwitchOrganizationRequest,
    TokenResponse,
)

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


def session_response(auth: ResolvedAuthorization) -> SessionResponse:
    return SessionResponse(
        user_id=auth.user_id,
        organization_id=auth.organization_id,
        roles=[RoleRefResponse(id=role.id, name=role.name) for role in auth.roles],
        permissions=sorted(auth.permissions),
        effective_role=auth.effective_role.id if auth.effective_role else None,
        is_demo=auth.is_demo,
        data_scope=auth.data_scope,
        expires_at=auth.expires_at,
    )


def token_response(issued: IssuedToken, auth: ResolvedAuthorization) -> TokenResponse:
    session = session_response(auth).model_copy(update={"expires_at": issued.expires_at})
    return TokenResponse(token=issued.token, expires_at=issued.expires_at, session=session)


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a token for one organization."""
    issued, resolved = await session_service.login(body, session)
    return token_response(issued, resolved)


@router.post("/switch-organization", response_model=TokenResponse)
async def switch_organization(
    body: SwitchOrganizationRequest,
    auth: ResolvedAuthorization = Depends(require_authenticated),
    session: AsyncSession = Depends(get_session),
):
    """Exchange the current token for one scoped to another of the user's organizations."""
    issued, resolved = await session_service.switch_organization(
        auth.user_id,
        auth.organization_id,
        body.organization_id,
        session,
    )
    return token_response(issued, resolved)


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------

@router.post("/verify-session", response_model=SessionResponse)
async def verify_session(
    auth: ResolvedAuthorization = Depends(require_authenticated),
):
    """Echo the snapshot carried by a valid token."""
    return session_response(auth)


@router.get("/me/permissions", response_model=SessionResponse)
async def my_permissions(
    auth: ResolvedAuthorization = Depends(require_authenticated),
):
    return session_response(auth)


@router.post("/logout")
async def logout(
    authorization: Optional[str] = Depends(authorization_header),
):
    """Acknowledge a logout. Tokens stay valid until they expire."""
    token = extract_bearer(authorization)
    if token:
        try:
            auth = verify(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        except AccessError as exc:
            log.info("auth.logout", token_state=exc.code)
        else:
            log.info("auth.logout", user_id=str(auth.user_id), jti=auth.token_id)
    return {"message": "Logged out"}
