"""Health check endpoint.

Returns overall system health plus PostgreSQL and background runner status.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from foundry import __version__

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/api/v1/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Check the health of the service.

    Returns:
        JSON object with overall status and per-service health:
        {
            "status": "healthy" | "unhealthy",
            "services": {"postgres": "up" | "down"},
            "active_jobs": 0,
            "version": "0.1.0"
        }
    """
    services: dict[str, str] = {}

    try:
        db_session_factory = request.app.state.db_session_factory
        async with db_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            services["postgres"] = "up"
    except (SQLAlchemyError, ConnectionError, OSError):
        logger.warning("PostgreSQL health check failed")
        services["postgres"] = "down"

    runner = getattr(request.app.state, "task_runner", None)
    active_jobs = len(runner.active_task_ids) if runner is not None else 0

    return {
        "status": "healthy" if services["postgres"] == "up" else "unhealthy",
        "services": services,
        "active_jobs": active_jobs,
        "version": __version__,
    }
