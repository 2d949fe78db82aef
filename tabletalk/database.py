"""
Database Connection Module
Handles the SQLAlchemy async engine, session factory and declarative base.

PostgreSQL (psycopg) in production, SQLite (aiosqlite) for tests and local
experiments. The store's transaction isolation is the only concurrency
control the ordering core relies on.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
import logging

from tabletalk.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,  # Connection pool size
        max_overflow=10,  # Extra connections when pool is full
        pool_pre_ping=True,
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory - creates new database sessions
async_session_maker = build_session_maker(engine)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Register models on the metadata before create_all
    import tabletalk.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
