"""Field mapping routes for a source."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.api.deps import get_organization_id, get_session, get_session_factory, get_user_id
from foundry.processing.schemas import FieldMapping
from foundry.services.mapping import MappingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sources", tags=["mappings"])


# -- Request/Response Schemas ------------------------------------------------


class MappingUpdate(BaseModel):
    """Schema for replacing a source's mappings."""

    mappings: list[FieldMapping]


class MappingResponse(BaseModel):
    source_field: str
    target_field: str
    confidence: str
    is_pii: bool


class MappingList(BaseModel):
    """Schema for listing mappings."""

    source_id: str
    mappings: list[MappingResponse]


class MappingPreview(BaseModel):
    """Schema for the mapped sample rows."""

    source_id: str
    mappings: list[MappingResponse]
    preview: list[dict[str, Any]]


def _mapping_to_response(mapping: FieldMapping) -> dict[str, Any]:
    return {
        "source_field": mapping.source_field,
        "target_field": mapping.target_field,
        "confidence": str(mapping.confidence),
        "is_pii": mapping.is_pii,
    }


# -- Routes -------------------------------------------------------------------


@router.get("/{source_id}/mappings", response_model=MappingList)
async def get_mappings(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Get the source's saved mappings."""
    service = MappingService(session, session_factory)
    mappings = await service.get_mappings(source_id, organization_id)
    return {"source_id": str(source_id), "mappings": [_mapping_to_response(m) for m in mappings]}


@router.put("/{source_id}/mappings", response_model=MappingList)
async def update_mappings(
    source_id: UUID,
    payload: MappingUpdate,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
    user_id: UUID | None = Depends(get_user_id),
) -> dict[str, Any]:
    """Replace the source's mappings with a reviewed set."""
    service = MappingService(session, session_factory)
    mappings = await service.update_mappings(source_id, organization_id, payload.mappings, user_id=user_id)
    return {"source_id": str(source_id), "mappings": [_mapping_to_response(m) for m in mappings]}


@router.post("/{source_id}/mappings/auto-detect", response_model=MappingList)
async def auto_detect_mappings(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Detect mappings from the source's raw schema and save them."""
    service = MappingService(session, session_factory)
    mappings = await service.auto_detect(source_id, organization_id)
    return {"source_id": str(source_id), "mappings": [_mapping_to_response(m) for m in mappings]}


@router.get("/{source_id}/mappings/preview", response_model=MappingPreview)
async def preview_mappings(
    source_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Show the schema samples re-keyed through the current mappings."""
    service = MappingService(session, session_factory)
    result = await service.get_preview(source_id, organization_id)
    return {
        "source_id": str(source_id),
        "mappings": [_mapping_to_response(m) for m in result["mappings"]],
        "preview": result["preview"],
    }
