"""
Database engine and session factories (SQLAlchemy async + asyncpg)
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Engine without a connection pool.

    An import invocation may be the only thing a worker does for several
    minutes and then sit idle, so connections are opened per session and
    released with it.
    """
    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


# Application engine and session factory
engine = build_engine(settings.DATABASE_URL)
async_session_maker = build_session_factory(engine)


async def dispose_engine() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
