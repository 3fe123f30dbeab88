"""Export routes: generate, list and download training-data files."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.api.deps import get_organization_id, get_session, get_session_factory, get_user_id
from foundry.core.models import Export
from foundry.processing.schemas import ExportOptions
from foundry.services.export import ExportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["exports"])


# -- Request/Response Schemas ------------------------------------------------


class ExportCreate(BaseModel):
    """Schema for requesting an export."""

    format: str = Field(..., min_length=1)
    options: ExportOptions = Field(default_factory=ExportOptions)


class ExportResponse(BaseModel):
    """Schema for export responses."""

    id: str
    job_id: str
    format: str
    file_size: int
    record_count: int
    expires_at: str
    created_at: str | None = None


class ExportList(BaseModel):
    items: list[ExportResponse]
    total: int


def _export_to_response(export: Export) -> dict[str, Any]:
    """Convert an Export model to response dict. The server-side path is not exposed."""
    return {
        "id": str(export.id),
        "job_id": str(export.job_id),
        "format": str(export.format),
        "file_size": export.file_size,
        "record_count": export.record_count,
        "expires_at": export.expires_at.isoformat(),
        "created_at": export.created_at.isoformat() if export.created_at else None,
    }


# -- Routes -------------------------------------------------------------------


@router.post("/jobs/{job_id}/exports", response_model=ExportResponse, status_code=status.HTTP_201_CREATED)
async def create_export(
    job_id: UUID,
    payload: ExportCreate,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
    user_id: UUID | None = Depends(get_user_id),
) -> dict[str, Any]:
    """Generate an export file from a completed job."""
    service = ExportService(session, session_factory)
    export = await service.create_export(
        job_id, organization_id, payload.format, payload.options, user_id=user_id
    )
    return _export_to_response(export)


@router.get("/jobs/{job_id}/exports", response_model=ExportList)
async def list_exports(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """List a job's exports, newest first."""
    exports = await ExportService(session, session_factory).list_exports(job_id, organization_id)
    return {"items": [_export_to_response(e) for e in exports], "total": len(exports)}


@router.get("/exports/{export_id}", response_model=ExportResponse)
async def get_export(
    export_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    export = await ExportService(session, session_factory).get_export(export_id, organization_id)
    return _export_to_response(export)


@router.get("/exports/{export_id}/download")
async def download_export(
    export_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> FileResponse:
    """Stream the export file. Expired exports are refused."""
    download = await ExportService(session, session_factory).open_download(export_id, organization_id)
    return FileResponse(download.path, media_type=download.content_type, filename=download.filename)
