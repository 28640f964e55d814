"""
Permission resolution.

Turns a Membership (a user's role ids inside one organization) into a
ResolvedAuthorization: the permission union, the effective role, the demo flag
and the data scope. Pure and deterministic; no I/O.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

import structlog

from app.core.catalog import Role, RoleCatalog
from wampums_shared.schemas.common import DataScope

log = structlog.get_logger()


@dataclass(frozen=True)
class Membership:
    user_id: uuid.UUID
    organization_id: int
    role_ids: frozenset[str]


@dataclass(frozen=True)
class RoleRef:
    id: str
    name: str


@dataclass(frozen=True)
class ResolvedAuthorization:
    user_id: uuid.UUID
    organization_id: int
    roles: tuple[RoleRef, ...]  # ordered by precedence
    permissions: frozenset[str]
    effective_role: Optional[RoleRef]
    is_demo: bool
    data_scope: DataScope = DataScope.LINKED
    # Populated only when read back from a verified token
    token_id: Optional[str] = field(default=None, compare=False)
    issued_at: Optional[datetime] = field(default=None, compare=False)
    expires_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def role_ids(self) -> list[str]:
        return [role.id for role in self.roles]

    def has_permission(self, key: str) -> bool:
        return key in self.permissions

    def has_any_permission(self, *keys: str) -> bool:
        return any(key in self.permissions for key in keys)

    def has_all_permissions(self, *keys: str) -> bool:
        return all(key in self.permissions for key in keys)

    def missing_permissions(self, keys: Iterable[str]) -> list[str]:
        return [key for key in keys if key not in self.permissions]


def resolve(membership: Membership, catalog: RoleCatalog) -> ResolvedAuthorization:
    """Resolve a membership against the catalog.

    Unknown role ids are dropped (privilege can only shrink). Permissions are
    the union of every held role's grants. The effective role is the held role
    with the lowest priority value, ties going to the first-declared role. Any
    demo role puts the whole session in demo mode, even alongside real roles.
    """
    held: list[Role] = []
    for role_id in membership.role_ids:
        role = catalog.find_role(role_id)
        if role is None:
            log.warning(
                "resolver.unknown_role",
                role_id=role_id,
                user_id=str(membership.user_id),
                organization_id=membership.organization_id,
            )
            continue
        held.append(role)

    held.sort(key=catalog.precedence)

    permissions: frozenset[str] = frozenset().union(*(role.grants for role in held))
    is_demo = any(role.is_demo for role in held)
    data_scope = (
        DataScope.ORGANIZATION
        if any(role.data_scope == DataScope.ORGANIZATION for role in held)
        else DataScope.LINKED
    )
    refs = tuple(RoleRef(id=role.id, name=role.display_name) for role in held)

    return ResolvedAuthorization(
        user_id=membership.user_id,
        organization_id=membership.organization_id,
        roles=refs,
        permissions=permissions,
        effective_role=refs[0] if refs else None,
        is_demo=is_demo,
        data_scope=data_scope,
    )
