"""Role and permission catalog schemas (read-only introspection)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from .common import DataScope


class PermissionResponse(BaseModel):
    key: str
    name: str
    category: str
    description: Optional[str] = None


class RoleResponse(BaseModel):
    id: str
    display_name: str
    description: Optional[str] = None
    priority: int
    is_demo: bool
    data_scope: DataScope


class RoleListResponse(BaseModel):
    data: list[RoleResponse]


class RolePermissionsResponse(BaseModel):
    role_id: str
    data: list[PermissionResponse]


class PermissionCatalogResponse(BaseModel):
    # category -> permissions, categories and keys sorted
    data: dict[str, list[PermissionResponse]]
