"""Processing job routes: start, list, inspect and cancel jobs."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.api.deps import get_organization_id, get_session, get_session_factory, get_task_runner, get_user_id
from foundry.core.models import ProcessingJob
from foundry.core.tasks import TaskRunner
from foundry.services.processing import ProcessingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["processing"])


# -- Request/Response Schemas ------------------------------------------------


class JobStartRequest(BaseModel):
    """Schema for starting a job. Omit ``source_ids`` to process every source."""

    model_config = ConfigDict(populate_by_name=True)

    source_ids: list[UUID] | None = Field(default=None, alias="sourceIds")


class JobResponse(BaseModel):
    """Schema for processing job responses."""

    id: str
    project_id: str
    status: str
    progress: int
    records_total: int
    records_processed: int
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    config_snapshot: dict[str, Any] = Field(default_factory=dict)
    started_at: str | None = None
    completed_at: str | None = None
    created_at: str | None = None


class JobList(BaseModel):
    """Schema for listing jobs."""

    items: list[JobResponse]
    total: int
    page: int
    limit: int


def _job_to_response(job: ProcessingJob) -> dict[str, Any]:
    """Convert a ProcessingJob model to response dict."""
    return {
        "id": str(job.id),
        "project_id": str(job.project_id),
        "status": str(job.status),
        "progress": job.progress or 0,
        "records_total": job.records_total or 0,
        "records_processed": job.records_processed or 0,
        "warnings": job.warnings or [],
        "errors": job.errors or [],
        "config_snapshot": job.config_snapshot or {},
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "created_at": job.created_at.isoformat() if job.created_at else None,
    }


# -- Routes -------------------------------------------------------------------


@router.post("/projects/{project_id}/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def start_job(
    project_id: UUID,
    payload: JobStartRequest | None = None,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    runner: TaskRunner | None = Depends(get_task_runner),
    organization_id: UUID = Depends(get_organization_id),
    user_id: UUID | None = Depends(get_user_id),
) -> dict[str, Any]:
    """Start a processing job over the project's sources."""
    service = ProcessingService(session, session_factory, runner)
    job = await service.start_job(
        project_id,
        organization_id,
        source_ids=payload.source_ids if payload else None,
        user_id=user_id,
    )
    return _job_to_response(job)


@router.get("/projects/{project_id}/jobs", response_model=JobList)
async def list_jobs(
    project_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """List a project's jobs, newest first."""
    service = ProcessingService(session, session_factory)
    jobs, total = await service.list_jobs(project_id, organization_id, page=page, limit=limit)
    return {"items": [_job_to_response(j) for j in jobs], "total": total, "page": page, "limit": limit}


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
) -> dict[str, Any]:
    """Get a job's status and progress."""
    service = ProcessingService(session, session_factory)
    return _job_to_response(await service.get_job(job_id, organization_id))


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: UUID,
    session: AsyncSession = Depends(get_session),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    organization_id: UUID = Depends(get_organization_id),
    user_id: UUID | None = Depends(get_user_id),
) -> dict[str, Any]:
    """Cancel a pending or running job."""
    service = ProcessingService(session, session_factory)
    job = await service.cancel_job(job_id, organization_id, user_id=user_id)
    return _job_to_response(job)
