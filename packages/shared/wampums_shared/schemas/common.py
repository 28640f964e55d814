from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DataScope(str, Enum):
    ORGANIZATION = "organization"
    LINKED = "linked"


class OrgStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ErrorBody(BaseModel):
    """Machine-readable body returned with every 4xx/5xx from the access core."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    message: str
    required_permission: Optional[str] = Field(default=None, alias="requiredPermission")
    missing_permissions: Optional[list[str]] = Field(default=None, alias="missingPermissions")
    is_demo: Optional[bool] = Field(default=None, alias="isDemo")
