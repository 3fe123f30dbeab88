"""Source routes: connector catalogue, connection tests, previews and schema detection."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from foundry.api.deps import get_organization_id, get_session
from foundry.integrations import ConnectorRegistry
from foundry.services.sources import SourceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sources", tags=["sources"])


# -- Request/Response Schemas ------------------------------------------------


class ConnectionTestResponse(BaseModel):
    """Schema for connection test results."""

    source_id: str
    success: bool
    message: str


class PreviewResponse(BaseModel):
    source_id: str
    columns: list[str]
    sample_data: list[dict[str, Any]]


class SchemaResponse(BaseModel):
    """Schema for detected raw fields."""

    source_id: str
    fields: list[dict[str, Any]]


# -- Routes -------------------------------------------------------------------


@router.get("/connectors", response_model=list[dict[str, str]])
async def list_connectors() -> list[dict[str, str]]:
    """List available source types."""
    return [
        {"type": name, "description": connector.description}
        for name, connector in ConnectorRegistry.list_connectors().items()
    ]


@router.post("/{source_id}/test", response_model=ConnectionTestResponse)
async def test_connection(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Check that the source can be read."""
    result = await SourceService(session).test_connection(source_id, organization_id)
    return {"source_id": str(source_id), "success": result.success, "message": result.message}


@router.get("/{source_id}/preview", response_model=PreviewResponse)
async def preview_source(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """First rows of the source as fetched."""
    preview = await SourceService(session).get_preview(source_id, organization_id)
    return {"source_id": str(source_id), "columns": preview.columns, "sample_data": preview.sample_data}


@router.post("/{source_id}/schema", response_model=SchemaResponse)
async def detect_schema(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Re-detect and store the source's raw schema."""
    fields = await SourceService(session).refresh_schema(source_id, organization_id)
    return {"source_id": str(source_id), "fields": [f.model_dump(mode="json") for f in fields]}
