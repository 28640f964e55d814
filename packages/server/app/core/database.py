"""
Database connection and session management.

The access core only reads organizations, users and memberships; every other
table belongs to the surrounding application.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; in-memory SQLite shares one connection."""
    in_memory = database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.endswith("://")
    )
    if in_memory:
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(bind: AsyncEngine = engine):
    """Create all tables (development only, use migrations in production)."""
    from app import models  # noqa: F401  populate metadata

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
