"""Shared FastAPI dependencies.

Provides the database session dependency used by all route files and the
caller identity forwarded by the upstream gateway.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.tasks import TaskRunner


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state via FastAPI dependency injection.

    Yields a session from the async session factory stored in app.state.
    The session is scoped to the request lifecycle.
    """
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory for writes that must not share the request transaction (audit)."""
    return request.app.state.db_session_factory


def get_task_runner(request: Request) -> TaskRunner | None:
    return getattr(request.app.state, "task_runner", None)


def _parse_uuid_header(name: str, value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} header must be a UUID",
        ) from None


async def get_organization_id(x_organization_id: str = Header(...)) -> uuid.UUID:
    """Caller's organization, as asserted by the gateway."""
    return _parse_uuid_header("X-Organization-Id", x_organization_id)


async def get_user_id(x_user_id: str | None = Header(default=None)) -> uuid.UUID | None:
    if not x_user_id:
        return None
    return _parse_uuid_header("X-User-Id", x_user_id)
