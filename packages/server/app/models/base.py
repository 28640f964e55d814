"""
Column mixins shared by the membership store tables.

Timestamps are timezone-aware and written in UTC. Users are keyed by UUID,
the same value a token carries in its ``sub`` claim.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def utc_timestamp() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin(SQLModel):
    created_at: datetime = Field(default_factory=utc_timestamp, sa_type=sa.DateTime(timezone=True))
    # Refreshed by SQLAlchemy on every UPDATE issued through the ORM
    updated_at: datetime = Field(
        default_factory=utc_timestamp,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"onupdate": utc_timestamp},
    )


class UUIDPrimaryKey(SQLModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
