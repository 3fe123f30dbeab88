"""Async database engine for the pipeline.

The API lifespan and the retention job each build their own engine from
``Settings``; requests, the job store and the audit sink all draw sessions
from the factory returned here.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from foundry.core.config import Settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""


def create_engine(settings: Settings) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build the engine and an ``expire_on_commit=False`` session factory.

    Job store writes commit per call and their rows are read back after
    the commit, so instances must stay usable once committed.
    """
    engine = create_async_engine(
        settings.database_url or "",
        echo=settings.db_echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle_seconds,
    )
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory
