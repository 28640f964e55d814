"""
Role and permission catalog endpoints (read-only).

GET    /api/v1/roles                        Roles, by precedence
GET    /api/v1/roles/{role_id}/permissions  Grants of one role
GET    /api/v1/permissions                  Permission catalog grouped by category
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import require_permission
from app.core.catalog import Permission, Role, RoleCatalog, get_catalog
from app.core.errors import RoleNotFound
from app.core.resolver import ResolvedAuthorization
from wampums_shared.schemas.catalog import (
    PermissionCatalogResponse,
    PermissionResponse,
    RoleListResponse,
    RolePermissionsResponse,
    RoleResponse,
)

router = APIRouter()

# Roles only callers holding this permission may see or inspect
RESTRICTED_ROLES = {"district": "users.assign_district"}


def _visible(role: Role, auth: ResolvedAuthorization) -> bool:
    required = RESTRICTED_ROLES.get(role.id)
    return required is None or auth.has_permission(required)


def _permission_response(perm: Permission) -> PermissionResponse:
    return PermissionResponse(
        key=perm.key,
        name=perm.name,
        category=perm.category,
        description=perm.description,
    )


@router.get("/roles", response_model=RoleListResponse)
async def list_roles(
    auth: ResolvedAuthorization = Depends(require_permission("roles.view")),
    catalog: RoleCatalog = Depends(get_catalog),
):
    """List assignable roles ordered by precedence."""
    return RoleListResponse(
        data=[
            RoleResponse(
                id=role.id,
                display_name=role.display_name,
                description=role.description,
                priority=role.priority,
                is_demo=role.is_demo,
                data_scope=role.data_scope,
            )
            for role in catalog.roles
            if _visible(role, auth)
        ]
    )


@router.get("/roles/{role_id}/permissions", response_model=RolePermissionsResponse)
async def get_role_permissions(
    role_id: str,
    auth: ResolvedAuthorization = Depends(require_permission("roles.view")),
    catalog: RoleCatalog = Depends(get_catalog),
):
    role = catalog.find_role(role_id)
    if role is None or not _visible(role, auth):
        raise RoleNotFound()

    perms = (catalog.get_permission(key) for key in sorted(catalog.get_permissions_for_role(role.id)))
    return RolePermissionsResponse(
        role_id=role.id,
        data=[_permission_response(perm) for perm in perms if perm is not None],
    )


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def list_permissions(
    auth: ResolvedAuthorization = Depends(require_permission("roles.view")),
    catalog: RoleCatalog = Depends(get_catalog),
):
    """All permission keys grouped by category."""
    return PermissionCatalogResponse(
        data={
            category: [_permission_response(perm) for perm in perms]
            for category, perms in catalog.by_category().items()
        }
    )
