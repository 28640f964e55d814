"""
Token issuance and verification.

A token is an HMAC-signed JWT carrying a full ResolvedAuthorization snapshot.
The server keeps no state for it: the snapshot is authoritative until ``exp``,
so role changes take effect when a new token is issued (login or organization
switch). Rotating the secret invalidates every outstanding token.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import jwt

from app.core.errors import AuthExpired, AuthInvalidSignature, AuthMalformed
from app.core.resolver import ResolvedAuthorization, RoleRef
from wampums_shared.schemas.common import DataScope

REQUIRED_CLAIMS = ["sub", "org_id", "roles", "permissions", "is_demo", "iat", "exp"]


def _utc(moment: Optional[datetime]) -> datetime:
    """Current time, or ``moment`` with naive values read as UTC."""
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class IssuedToken:
    token: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


def issue(
    resolved: ResolvedAuthorization,
    secret: str,
    ttl: timedelta,
    *,
    algorithm: str = "HS256",
    now: Optional[datetime] = None,
) -> IssuedToken:
    """Sign a snapshot of ``resolved`` valid for ``ttl``."""
    # JWT timestamps are whole seconds
    issued_at = _utc(now).replace(microsecond=0)
    expires_at = issued_at + ttl
    jti = str(uuid.uuid4())
    payload = {
        "sub": str(resolved.user_id),
        "org_id": resolved.organization_id,
        "roles": [{"id": role.id, "name": role.name} for role in resolved.roles],
        "permissions": sorted(resolved.permissions),
        "effective_role": resolved.effective_role.id if resolved.effective_role else None,
        "is_demo": resolved.is_demo,
        "data_scope": resolved.data_scope.value,
        "iat": issued_at,
        "exp": expires_at,
        "jti": jti,
    }
    token = jwt.encode(payload, secret, algorithm=algorithm)
    return IssuedToken(token=token, token_id=jti, issued_at=issued_at, expires_at=expires_at)


def verify(
    token: str,
    secret: str,
    *,
    algorithms: Sequence[str] = ("HS256",),
    now: Optional[datetime] = None,
) -> ResolvedAuthorization:
    """Verify a token and rebuild its ResolvedAuthorization.

    Raises AuthInvalidSignature, AuthMalformed or AuthExpired. Expiry is checked
    against ``now`` so the clock can be injected; a naive ``now`` is UTC.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
        )
    except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError):
        raise AuthInvalidSignature()
    except jwt.MissingRequiredClaimError as exc:
        raise AuthMalformed(f"Token is missing the {exc.claim!r} claim")
    except jwt.PyJWTError:
        raise AuthMalformed()

    exp = payload["exp"]
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise AuthMalformed("Token expiry is not a timestamp")
    current = _utc(now)
    if current.timestamp() > exp:
        raise AuthExpired()

    try:
        issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise AuthMalformed("Token timestamps are invalid") from exc

    resolved = _payload_to_authorization(payload)
    return replace(
        resolved,
        token_id=payload.get("jti"),
        issued_at=issued_at,
        expires_at=expires_at,
    )


def _payload_to_authorization(payload: dict) -> ResolvedAuthorization:
    try:
        user_id = uuid.UUID(payload["sub"])
        org_id = payload["org_id"]
        if isinstance(org_id, bool) or not isinstance(org_id, int):
            raise TypeError("org_id")
        roles = tuple(RoleRef(id=r["id"], name=r["name"]) for r in payload["roles"])
        if not all(isinstance(r.id, str) and isinstance(r.name, str) for r in roles):
            raise TypeError("roles")
        permissions = payload["permissions"]
        if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
            raise TypeError("permissions")
        is_demo = payload["is_demo"]
        if not isinstance(is_demo, bool):
            raise TypeError("is_demo")
        data_scope = DataScope(payload.get("data_scope", DataScope.LINKED.value))

        effective_id = payload.get("effective_role")
        effective_role = None
        if effective_id is not None:
            effective_role = next((r for r in roles if r.id == effective_id), None)
            if effective_role is None:
                raise ValueError("effective_role")
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise AuthMalformed(f"Token claim is invalid: {exc}") from exc

    return ResolvedAuthorization(
        user_id=user_id,
        organization_id=org_id,
        roles=roles,
        permissions=frozenset(permissions),
        effective_role=effective_role,
        is_demo=is_demo,
        data_scope=data_scope,
    )
