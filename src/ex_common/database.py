"""Async engine and session factory for the ledger database.

Request handlers get a session per request through ``get_db_session``.
Trade resolution jobs and the overdue sweep run after their request has
finished, so they open their own sessions from ``async_session_factory``.
Every service commits or rolls back explicitly; nothing here autocommits.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Only the users table is ORM-mapped; balances, trades and requests use raw SQL."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    # Scheduler sessions can sit idle for minutes between trades
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
