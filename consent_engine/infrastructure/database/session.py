# consent_engine/infrastructure/database/session.py

from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base

from consent_engine.config.settings import get_settings

Base = declarative_base()


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=get_engine(),
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


async def get_db() -> AsyncSession:
    async with get_sessionmaker()() as session:
        yield session


async def create_schema() -> None:
    """Create tables that do not exist yet. Migrations are out of scope; used on startup and in dev."""
    from consent_engine.infrastructure.database import models  # noqa: F401 registers tables

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
