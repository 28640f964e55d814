"""User-Organization membership with its role assignment."""

import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel


class UserOrganization(SQLModel, table=True):
    __tablename__ = "user_organizations"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    organization_id: int = Field(foreign_key="organizations.id", primary_key=True)
    # Role catalog ids, e.g. ["leader", "finance"]
    role_ids: list[str] = Field(
        default_factory=list,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
