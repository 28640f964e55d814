"""
Authentication schemas shared between the server and API consumers.

Covers: login and organization-switch requests, the issued-token response,
and the session snapshot echoed back to clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .common import DataScope


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    organization_id: Optional[int] = Field(
        default=None,
        gt=0,
        description="Target organization; required when the user belongs to several",
    )


class SwitchOrganizationRequest(BaseModel):
    organization_id: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class RoleRefResponse(BaseModel):
    id: str
    name: str


class SessionResponse(BaseModel):
    """Snapshot of a resolved authorization, as carried by a token."""

    user_id: uuid.UUID
    organization_id: int
    roles: list[RoleRefResponse]
    permissions: list[str]
    effective_role: Optional[str] = None
    is_demo: bool
    data_scope: DataScope
    expires_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    session: SessionResponse


class MembershipItem(BaseModel):
    organization_id: int
    name: str
    slug: str
    roles: list[str]
    active: bool  # true for the organization the presented token is scoped to


class MembershipListResponse(BaseModel):
    data: list[MembershipItem]
