"""Async database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from role_permission.config import Settings
from role_permission.core.database.base import Base


def create_engine(settings: Settings, **kwargs: object) -> AsyncEngine:
    """Create an async engine for the configured database.

    Args:
        settings: Settings carrying ``database_url``
        **kwargs: Extra engine options (pool sizing, poolclass, ...)

    Returns:
        AsyncEngine bound to the database
    """
    return create_async_engine(
        settings.async_database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create the roles, permissions and role_permissions tables."""
    # Registers the models with Base.metadata
    from role_permission.permissions import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session that commits on success and rolls back on error.

    Usage:
        async with session_scope(factory) as session:
            store = SQLAlchemyPermissionStore(session)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
