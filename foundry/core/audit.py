"""Audit logging for pipeline operations.

Audit writes never block the operation being audited: every failure is
logged and swallowed here.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.models import AuditAction, AuditLog

logger = logging.getLogger(__name__)


async def log_audit(
    session_factory: async_sessionmaker[AsyncSession],
    action: AuditAction,
    resource_type: str,
    resource_id: uuid.UUID,
    user_id: uuid.UUID | None = None,
    organization_id: uuid.UUID | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Persist an audit entry in its own session.

    A separate session keeps an audit failure from rolling back the
    caller's transaction.

    Args:
        session_factory: Factory for the audit session.
        action: The audit action type.
        resource_type: Kind of resource acted on (``job``, ``source``, ``export``).
        resource_id: Identifier of that resource.
        user_id: Acting user, if known.
        organization_id: Owning organization, if known.
        details: Additional structured context. Must not contain PII values.
    """
    logger.info(
        "AUDIT action=%s resource=%s:%s user=%s org=%s",
        action.value,
        resource_type,
        resource_id,
        user_id or "system",
        organization_id or "none",
    )
    try:
        async with session_factory() as session:
            session.add(
                AuditLog(
                    action=action.value,
                    resource_type=resource_type,
                    resource_id=resource_id,
                    user_id=user_id,
                    organization_id=organization_id,
                    details=details or {},
                )
            )
            await session.commit()
    except Exception:
        logger.exception("Failed to write audit log entry for %s on %s:%s", action.value, resource_type, resource_id)
