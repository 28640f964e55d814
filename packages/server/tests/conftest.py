"""
Shared fixtures.

The environment is set before any ``app`` module is imported so the
module-level settings, engine and session factory point at an in-memory
SQLite database and a test signing secret.
"""

from __future__ import annotations

import os

os.environ["WAMPUMS_SECRET_KEY"] = "test-secret-key-0123456789abcdef-wampums"
os.environ["WAMPUMS_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["WAMPUMS_LOG_FORMAT"] = "text"

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import bcrypt
import pytest
from sqlmodel import SQLModel

from app.core.catalog import get_catalog
from app.core.config import get_settings
from app.core.database import async_session_factory, engine, init_db
from app.core.resolver import Membership, resolve
from app.core.tokens import issue
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrganization

SECRET = get_settings().secret_key
PASSWORD = "Scout-Master-2024!"


@pytest.fixture(scope="session")
def password_hash() -> str:
    # Low cost factor: tests only need a valid bcrypt hash
    return bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()


@pytest.fixture
async def db():
    """Fresh schema per test on the shared in-memory connection."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest.fixture
async def seeded(db, password_hash):
    """Two organizations and a handful of users.

    - leader@example.org: leader in org 1, parent in org 2
    - demo@example.org: demoadmin in org 1
    - pending@example.org: verified, member of org 1 with no roles
    - unverified@example.org: unverified leader in org 1
    - Org 3 is suspended; the leader holds unitadmin there
    """
    users = {
        "leader": User(email="leader@example.org", full_name="Lea Leader", password_hash=password_hash, is_verified=True),
        "demo": User(email="demo@example.org", full_name="Demo Account", password_hash=password_hash, is_verified=True),
        "pending": User(email="pending@example.org", full_name="New Parent", password_hash=password_hash, is_verified=True),
        "unverified": User(email="unverified@example.org", full_name="Not Yet", password_hash=password_hash, is_verified=False),
    }
    async with async_session_factory() as session:
        session.add_all([
            Organization(id=1, name="1st Riverside", slug="riverside"),
            Organization(id=2, name="2nd Hilltop", slug="hilltop"),
            Organization(id=3, name="3rd Closed", slug="closed", status="suspended"),
        ])
        session.add_all(users.values())
        await session.flush()
        session.add_all([
            UserOrganization(user_id=users["leader"].id, organization_id=1, role_ids=["leader"]),
            UserOrganization(user_id=users["leader"].id, organization_id=2, role_ids=["parent"]),
            UserOrganization(user_id=users["leader"].id, organization_id=3, role_ids=["unitadmin"]),
            UserOrganization(user_id=users["demo"].id, organization_id=1, role_ids=["demoadmin"]),
            UserOrganization(user_id=users["pending"].id, organization_id=1, role_ids=[]),
            UserOrganization(user_id=users["unverified"].id, organization_id=1, role_ids=["leader"]),
        ])
        await session.commit()
    return {name: user.id for name, user in users.items()}


@pytest.fixture
def redis_client():
    """Redis stand-in for the login throttle: every attempt is the first."""
    client = AsyncMock()
    client.incr.return_value = 1
    with patch("app.core.redis.get_redis", AsyncMock(return_value=client)):
        yield client


def make_token(role_ids, *, organization_id: int = 1, user_id: uuid.UUID | None = None, ttl=timedelta(minutes=60)) -> str:
    membership = Membership(
        user_id=user_id or uuid.uuid4(),
        organization_id=organization_id,
        role_ids=frozenset(role_ids),
    )
    return issue(resolve(membership, get_catalog()), SECRET, ttl).token


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
