"""Organization (tenant) model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class Organization(TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    status: str = Field(default="active", nullable=False)  # active | suspended
