"""
Database Connection Management
Async SQLAlchemy engine and sessions for the audit ledger
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from claimflow.models.base import Base
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


def create_ledger_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the ledger database.

    Args:
        url: SQLAlchemy async URL (e.g. postgresql+asyncpg://..., sqlite+aiosqlite://...)
        echo: Log SQL statements
    """
    logger.info(f"Creating ledger database engine: {url.split('@')[-1]}")
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with explicit transaction management."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create ledger tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ledger tables ready")
