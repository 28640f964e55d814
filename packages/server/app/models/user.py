"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDPrimaryKey


class User(UUIDPrimaryKey, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)  # stored lower-cased
    full_name: str = Field(default="", nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt
    is_verified: bool = Field(default=False, nullable=False)
