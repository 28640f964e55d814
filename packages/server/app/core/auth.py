"""
Authentication and Authorization for the Wampums access core.

Supports:
- Password hashing for email/password login
- Bearer token extraction and verification
- A total authorization decision (Allow / Deny) per request
- Declarative permission dependencies for FastAPI routes
- Demo-account mutation blocking
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Union

import bcrypt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from app.core.config import get_settings
from app.core.errors import (
    AccessError,
    AuthMissing,
    DemoBlocked,
    PermissionDenied,
)
from app.core.resolver import ResolvedAuthorization
from app.core.tokens import verify

log = structlog.get_logger()
settings = get_settings()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash.

    Hashes written by the legacy PHP frontend use the ``$2y$`` prefix, which is
    the same algorithm as ``$2b$``.
    """
    if hashed.startswith("$2y$"):
        hashed = "$2b$" + hashed[4:]
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Authorization decision
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Allow:
    auth: ResolvedAuthorization


@dataclass(frozen=True)
class Deny:
    error: AccessError


Decision = Union[Allow, Deny]


def extract_bearer(header_value: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` value."""
    if not header_value:
        return None
    scheme, _, credentials = header_value.partition(" ")
    if scheme.lower() != "bearer":
        return None
    credentials = credentials.strip()
    return credentials or None


def is_mutating(method: str) -> bool:
    return method.upper() not in SAFE_METHODS


def authorize(
    token: Optional[str],
    required: Sequence[str],
    *,
    mutating: bool,
    secret: str,
    algorithms: Sequence[str] = ("HS256",),
    now: Optional[datetime] = None,
) -> Decision:
    """Decide whether a request may proceed.

    Order: credential check (401), permission check (403 naming the missing
    key), then the demo check for mutating requests (403 with isDemo). Reads
    never hit the demo check.
    """
    if not token:
        return Deny(AuthMissing())
    try:
        auth = verify(token, secret, algorithms=algorithms, now=now)
    except AccessError as exc:
        return Deny(exc)

    missing = auth.missing_permissions(required)
    if missing:
        return Deny(PermissionDenied(missing))

    if mutating and auth.is_demo:
        return Deny(DemoBlocked())

    return Allow(auth)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

def _decide(request: Request, authorization: Optional[str], required: Sequence[str], mutating: bool):
    decision = authorize(
        extract_bearer(authorization),
        required,
        mutating=mutating,
        secret=settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    if isinstance(decision, Deny):
        log.info(
            "access.denied",
            reason=decision.error.code,
            method=request.method,
            path=request.url.path,
            required=list(required),
        )
        raise decision.error

    request.state.auth = decision.auth
    return decision.auth


async def require_authenticated(
    request: Request,
    authorization: Optional[str] = Depends(authorization_header),
) -> ResolvedAuthorization:
    """Any valid token; used by session endpoints that demo accounts must reach."""
    return _decide(request, authorization, (), False)


require_authenticated.required_permissions = ()  # type: ignore[attr-defined]


def require_permission(*keys: str, mutating: Optional[bool] = None):
    """
    FastAPI dependency requiring every permission key in ``keys``.

    Usage:
        @router.post("/participants")
        async def create_participant(
            auth: ResolvedAuthorization = Depends(require_permission("participants.create")),
        ):
            ...

    ``mutating`` defaults to the request method (anything except GET, HEAD and
    OPTIONS mutates); pass it explicitly for POST endpoints that only read.
    """
    if not keys:
        raise ValueError("require_permission needs at least one permission key")

    async def permission_dependency(
        request: Request,
        authorization: Optional[str] = Depends(authorization_header),
    ) -> ResolvedAuthorization:
        is_write = is_mutating(request.method) if mutating is None else mutating
        return _decide(request, authorization, keys, is_write)

    permission_dependency.required_permissions = keys  # type: ignore[attr-defined]
    return permission_dependency
