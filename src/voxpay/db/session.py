from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from ..config import Settings, get_settings

Base = declarative_base()


def build_engine(settings: Optional[Settings] = None, url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async engine from DATABASE_URL (or an explicit url).
    """
    settings = settings or get_settings()
    database_url = url or settings.require_database_url()
    return create_async_engine(database_url, echo=settings.database_echo, future=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # Async session factory
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create all tables (idempotent). Used for local runs and tests.
    """
    from . import models  # noqa: F401  register mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
