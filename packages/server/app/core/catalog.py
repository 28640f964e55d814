"""
Role and Permission catalog.

The single source of truth for which roles exist, their relative priority and
the permission keys each one grants. Built once at process start and never
mutated; every priority comparison in the codebase goes through it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from app.core.config import get_settings
from wampums_shared.schemas.common import DataScope

PERMISSION_KEY_RE = re.compile(r"^[a-z][a-z_]*\.[a-z][a-z_]*$")


class CatalogError(ValueError):
    """Raised when catalog definitions are inconsistent."""


@dataclass(frozen=True)
class Permission:
    key: str
    name: str
    description: Optional[str] = None

    @property
    def category(self) -> str:
        return self.key.split(".", 1)[0]


@dataclass(frozen=True)
class Role:
    id: str
    display_name: str
    priority: int  # lower value = higher precedence
    grants: frozenset[str] = frozenset()
    is_demo: bool = False
    data_scope: DataScope = DataScope.ORGANIZATION
    grants_nothing: bool = False
    description: Optional[str] = None


class RoleCatalog:
    """Immutable, ordered role and permission catalog."""

    def __init__(
        self,
        roles: Iterable[Role],
        permissions: Iterable[Permission],
        *,
        default_role: Optional[str] = None,
    ):
        self._permissions: dict[str, Permission] = {}
        for perm in permissions:
            if not PERMISSION_KEY_RE.match(perm.key):
                raise CatalogError(f"Invalid permission key {perm.key!r}")
            if perm.key in self._permissions:
                raise CatalogError(f"Duplicate permission key {perm.key!r}")
            self._permissions[perm.key] = perm

        self._roles: dict[str, Role] = {}
        for role in roles:
            if role.id in self._roles:
                raise CatalogError(f"Duplicate role id {role.id!r}")
            unknown = role.grants - self._permissions.keys()
            if unknown:
                raise CatalogError(
                    f"Role {role.id!r} grants unknown permissions: {sorted(unknown)}"
                )
            if role.grants_nothing and role.grants:
                raise CatalogError(f"Role {role.id!r} is permission-less but grants keys")
            if not role.grants_nothing and not role.grants:
                raise CatalogError(f"Role {role.id!r} grants no permissions")
            self._roles[role.id] = role

        # declaration order breaks priority ties
        self._order = {role_id: idx for idx, role_id in enumerate(self._roles)}

        if default_role is not None:
            if default_role not in self._roles:
                raise CatalogError(f"Default role {default_role!r} is not in the catalog")
            if not self._roles[default_role].grants_nothing:
                raise CatalogError(f"Default role {default_role!r} must grant nothing")
        self.default_role = default_role

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._roles

    @property
    def roles(self) -> tuple[Role, ...]:
        return tuple(self._roles.values())

    @property
    def permissions(self) -> tuple[Permission, ...]:
        return tuple(self._permissions.values())

    def get_role(self, role_id: str) -> Role:
        try:
            return self._roles[role_id]
        except KeyError:
            raise KeyError(f"Unknown role {role_id!r}") from None

    def find_role(self, role_id: str) -> Optional[Role]:
        return self._roles.get(role_id)

    def get_permission(self, key: str) -> Optional[Permission]:
        return self._permissions.get(key)

    def get_permissions_for_role(self, role_id: str) -> frozenset[str]:
        return self.get_role(role_id).grants

    def precedence(self, role: Role) -> tuple[int, int]:
        """Sort key: priority first, then declaration order."""
        return role.priority, self._order[role.id]

    def by_category(self) -> dict[str, list[Permission]]:
        grouped: dict[str, list[Permission]] = {}
        for perm in sorted(self._permissions.values(), key=lambda p: p.key):
            grouped.setdefault(perm.category, []).append(perm)
        return dict(sorted(grouped.items()))


# ---------------------------------------------------------------------------
# Default scout-organization catalog
# ---------------------------------------------------------------------------

_PERMISSION_DEFINITIONS: list[tuple[str, str, str]] = [
    ("org.create", "Create Organizations", "Create new organizations in the system"),
    ("org.view", "View Organization", "View organization details"),
    ("org.edit", "Edit Organization", "Edit organization settings"),
    ("org.delete", "Delete Organization", "Delete organizations"),
    ("users.view", "View Users", "View user lists and details"),
    ("users.invite", "Invite Users", "Invite new users to the organization"),
    ("users.edit", "Edit Users", "Edit user information and settings"),
    ("users.delete", "Delete Users", "Remove users from the organization"),
    ("users.assign_roles", "Assign Roles", "Assign roles to users"),
    ("users.assign_district", "Assign District Role", "Assign the district administrator role"),
    ("participants.view", "View Participants", "View participant lists and details"),
    ("participants.create", "Create Participants", "Add new participants"),
    ("participants.edit", "Edit Participants", "Edit participant information"),
    ("participants.delete", "Delete Participants", "Remove participants"),
    ("participants.transfer", "Transfer Participants", "Transfer participants between groups"),
    ("finance.view", "View Finances", "View financial information and reports"),
    ("finance.manage", "Manage Finances", "Manage financial transactions and settings"),
    ("finance.approve", "Approve Payments", "Approve and process payments"),
    ("budget.view", "View Budget", "View budget information"),
    ("budget.manage", "Manage Budget", "Create and edit budgets"),
    ("fundraisers.view", "View Fundraisers", "View fundraiser information"),
    ("fundraisers.create", "Create Fundraisers", "Create new fundraisers"),
    ("fundraisers.edit", "Edit Fundraisers", "Edit fundraiser details"),
    ("fundraisers.delete", "Delete Fundraisers", "Remove fundraisers"),
    ("inventory.view", "View Inventory", "View equipment and inventory"),
    ("inventory.manage", "Manage Inventory", "Add, edit and remove inventory items"),
    ("inventory.reserve", "Reserve Equipment", "Reserve equipment for activities"),
    ("inventory.value", "View Inventory Values", "View monetary values of inventory"),
    ("badges.view", "View Badges", "View badge information and progress"),
    ("badges.approve", "Approve Badges", "Approve badge completions"),
    ("badges.manage", "Manage Badges", "Create and configure badges"),
    ("activities.view", "View Activities", "View activities and events"),
    ("activities.create", "Create Activities", "Create new activities"),
    ("activities.edit", "Edit Activities", "Edit activity details"),
    ("activities.delete", "Delete Activities", "Remove activities"),
    ("attendance.view", "View Attendance", "View attendance records"),
    ("attendance.manage", "Manage Attendance", "Record and edit attendance"),
    ("points.view", "View Points", "View points and honors"),
    ("points.manage", "Manage Points", "Award and manage points"),
    ("carpools.view", "View Carpools", "View carpool information"),
    ("carpools.manage", "Manage Carpools", "Create and manage carpool arrangements"),
    ("reports.view", "View Reports", "Access all system reports"),
    ("reports.export", "Export Reports", "Export reports to various formats"),
    ("groups.view", "View Groups", "View group information"),
    ("groups.create", "Create Groups", "Create new groups"),
    ("groups.edit", "Edit Groups", "Edit group details"),
    ("groups.delete", "Delete Groups", "Remove groups"),
    ("forms.view", "View Forms", "View submitted forms"),
    ("forms.create", "Create Forms", "Create form submissions"),
    ("forms.edit", "Edit Forms", "Edit form submissions"),
    ("forms.manage", "Manage Forms", "Configure form templates"),
    ("communications.send", "Send Communications", "Send messages to parents and participants"),
    ("roles.view", "View Roles", "View available roles and permissions"),
    ("roles.manage", "Manage Roles", "Create and edit custom roles"),
]

_ALL_KEYS = frozenset(key for key, _, _ in _PERMISSION_DEFINITIONS)


def _category(*categories: str) -> frozenset[str]:
    return frozenset(k for k in _ALL_KEYS if k.split(".", 1)[0] in categories)


_PARENT_VIEWS = frozenset({
    "participants.view",
    "activities.view",
    "badges.view",
    "finance.view",
    "carpools.view",
    "attendance.view",
    "points.view",
})

DEFAULT_ROLES: list[Role] = [
    Role(
        id="district",
        display_name="District Administrator",
        priority=1,
        grants=_ALL_KEYS,
        description="Full system access including organization creation",
    ),
    Role(
        id="unitadmin",
        display_name="Unit Administrator",
        priority=2,
        grants=_ALL_KEYS - {"org.create", "users.assign_district"},
        description="Full organizational access except organization creation and district role assignment",
    ),
    Role(
        id="leader",
        display_name="Leader",
        priority=3,
        grants=_category(
            "participants", "activities", "attendance", "points", "carpools", "groups", "communications"
        ) | {"users.view", "badges.view", "badges.approve", "finance.view", "inventory.view", "org.view"},
        description="Group leaders with access to most organizational features",
    ),
    Role(
        id="finance",
        display_name="Finance Manager",
        priority=4,
        grants=_category("finance", "budget", "fundraisers") | {
            "inventory.view", "inventory.value", "inventory.manage", "participants.view",
            "users.view", "org.view", "reports.view", "reports.export",
        },
        description="Budget, fundraisers and financial reporting",
    ),
    Role(
        id="equipment",
        display_name="Equipment Manager",
        priority=5,
        grants=_category("inventory") | {"activities.view", "org.view"},
        description="Manages inventory and equipment reservations",
    ),
    Role(
        id="administration",
        display_name="Administration",
        priority=6,
        grants=_category("reports") | {
            "participants.view", "users.view", "activities.view", "attendance.view",
            "finance.view", "badges.view", "points.view", "groups.view", "org.view",
        },
        description="Access to all reports and administrative analytics",
    ),
    Role(
        id="parent",
        display_name="Parent/Guardian",
        priority=7,
        grants=_PARENT_VIEWS | {"carpools.manage"},
        data_scope=DataScope.LINKED,
        description="Limited access to their own children's information",
    ),
    Role(
        id="demoadmin",
        display_name="Demo Administrator",
        priority=8,
        grants=frozenset(k for k in _ALL_KEYS if k.endswith(".view")),
        is_demo=True,
        description="Read-only administrator for demonstration purposes",
    ),
    Role(
        id="demoparent",
        display_name="Demo Parent",
        priority=9,
        grants=_PARENT_VIEWS,
        is_demo=True,
        data_scope=DataScope.LINKED,
        description="Read-only parent for demonstration purposes",
    ),
    Role(
        id="pending",
        display_name="Pending Approval",
        priority=100,
        grants_nothing=True,
        data_scope=DataScope.LINKED,
        description="Account awaiting approval by an administrator",
    ),
]


def build_default_catalog(default_role: Optional[str] = "pending") -> RoleCatalog:
    permissions = [Permission(key=k, name=n, description=d) for k, n, d in _PERMISSION_DEFINITIONS]
    return RoleCatalog(DEFAULT_ROLES, permissions, default_role=default_role)


@lru_cache
def get_catalog() -> RoleCatalog:
    return build_default_catalog(get_settings().default_role)


def reload_catalog() -> RoleCatalog:
    """Explicit reload hook; tokens already issued keep their snapshot."""
    get_catalog.cache_clear()
    return get_catalog()
