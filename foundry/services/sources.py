"""Source service: connection checks, previews and schema detection."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from foundry.core.config import Settings, get_settings
from foundry.core.models import SourceStatus
from foundry.integrations import ConnectionTestResult, SourcePreview, create_connector
from foundry.processing.schemas import RawSchemaField
from foundry.services.mapping import get_source_for_org

logger = logging.getLogger(__name__)


class SourceService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    async def test_connection(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> ConnectionTestResult:
        """Check the source and record the outcome on its ``status``."""
        source = await get_source_for_org(self._session, source_id, organization_id)
        connector = create_connector(source, self._settings)
        try:
            result = await connector.test_connection()
        finally:
            await connector.disconnect()

        source.status = SourceStatus.CONNECTED if result.success else SourceStatus.ERROR
        await self._session.commit()
        logger.info("Connection test for source %s: success=%s", source.id, result.success)
        return result

    async def get_preview(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> SourcePreview:
        source = await get_source_for_org(self._session, source_id, organization_id)
        connector = create_connector(source, self._settings)
        try:
            return await connector.get_preview()
        finally:
            await connector.disconnect()

    async def refresh_schema(self, source_id: uuid.UUID, organization_id: uuid.UUID) -> list[RawSchemaField]:
        """Re-detect the source's raw schema and store it on the source.

        Raises:
            ConnectorFailure: The source could not be read.
        """
        source = await get_source_for_org(self._session, source_id, organization_id)
        connector = create_connector(source, self._settings)
        try:
            schema = await connector.detect_schema()
        finally:
            await connector.disconnect()

        source.raw_schema = [f.model_dump(mode="json") for f in schema]
        source.last_sync_at = datetime.now(UTC)
        await self._session.commit()
        logger.info("Detected %d field(s) for source %s", len(schema), source.id)
        return schema
