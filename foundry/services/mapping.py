"""Field mapping service: read, save and auto-detect a source's mappings."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.audit import log_audit
from foundry.core.exceptions import NotFoundError
from foundry.core.models import AuditAction, MappingConfidence, Project, Source, SourceMapping
from foundry.processing.mapping import auto_detect, build_preview, validate_mappings
from foundry.processing.schemas import FieldMapping
from foundry.processing.store import mapping_from_row

logger = logging.getLogger(__name__)


async def get_source_for_org(session: AsyncSession, source_id: uuid.UUID, organization_id: uuid.UUID) -> Source:
    """Load a source through its project's organization.

    Raises:
        NotFoundError: The source does not exist or belongs to another organization.
    """
    result = await session.execute(
        select(Source)
        .join(Project, Project.id == Source.project_id)
        .where(Source.id == source_id, Project.organization_id == organization_id)
    )
    source = result.scalar_one_or_none()
    if source is None:
        raise NotFoundError("Source", source_id)
    return source


class MappingService:
    """Mapping operations for one request."""

    def __init__(self, session: AsyncSession, audit_session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session
        self._audit_session_factory = audit_session_factory

    async def _load_mappings(self, source_id: uuid.UUID) -> list[FieldMapping]:
        result = await self._session.execute(
            select(SourceMapping).where(SourceMapping.source_id == source_id).order_by(SourceMapping.position)
        )
        return [mapping_from_row(row) for row in result.scalars().all()]

    async def _replace_mappings(
        self,
        source_id: uuid.UUID,
        mappings: list[FieldMapping],
        confidence: MappingConfidence | None = None,
    ) -> None:
        await self._session.execute(delete(SourceMapping).where(SourceMapping.source_id == source_id))
        for position, mapping in enumerate(mappings):
            self._session.add(
                SourceMapping(
                    source_id=source_id,
                    position=position,
                    source_field=mapping.source_field,
                    target_field=mapping.target_field,
                    confidence=confidence or mapping.confidence,
                    is_pii=mapping.is_pii,
                )
            )
        await self._session.commit()

    async def get_mappings(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> list[FieldMapping]:
        source = await get_source_for_org(self._session, source_id, organization_id)
        return await self._load_mappings(source.id)

    async def update_mappings(
        self,
        source_id: uuid.UUID,
        organization_id: uuid.UUID,
        mappings: list[FieldMapping],
        user_id: uuid.UUID | None = None,
    ) -> list[FieldMapping]:
        """Replace the source's mappings with a user-reviewed set.

        Saved mappings are stored with ``high`` confidence.

        Raises:
            NotFoundError: Unknown source.
            ValidationFailure: Unknown target field or duplicate source field.
        """
        source = await get_source_for_org(self._session, source_id, organization_id)
        validate_mappings(mappings)
        await self._replace_mappings(source.id, mappings, confidence=MappingConfidence.HIGH)

        logger.info("Saved %d mapping(s) for source %s", len(mappings), source.id)
        await log_audit(
            self._audit_session_factory,
            AuditAction.MAPPING_UPDATED,
            "source",
            source.id,
            user_id=user_id,
            organization_id=organization_id,
            details={"mappingCount": len(mappings)},
        )
        return [m.model_copy(update={"confidence": MappingConfidence.HIGH}) for m in mappings]

    async def auto_detect(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> list[FieldMapping]:
        """Detect mappings from the source's raw schema and store them."""
        source = await get_source_for_org(self._session, source_id, organization_id)
        detected = auto_detect(source.raw_schema or [])
        await self._replace_mappings(source.id, detected)
        logger.info("Auto-detected %d mapping(s) for source %s", len(detected), source.id)
        return detected

    async def get_preview(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> dict[str, Any]:
        """Current mappings plus the schema samples re-keyed through them."""
        source = await get_source_for_org(self._session, source_id, organization_id)
        mappings = await self._load_mappings(source.id)
        return {
            "mappings": mappings,
            "preview": build_preview(source.raw_schema or [], mappings),
        }
