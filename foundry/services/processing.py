"""Processing job service: start, inspect and cancel pipeline runs.

Jobs are created here and handed to the background :class:`TaskRunner`;
the orchestrator takes over from the ``pending`` state.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.audit import log_audit
from foundry.core.exceptions import NotEligible, NotFoundError, ValidationFailure
from foundry.core.models import AuditAction, JobStatus, ProcessingJob, Project, Source
from foundry.core.tasks import TaskRunner
from foundry.processing.orchestrator import ProcessingJobWorker
from foundry.processing.schemas import FilterSettings, JobConfigSnapshot, PiiSettings

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (JobStatus.PENDING, JobStatus.PROCESSING)


async def get_project_for_org(
    session: AsyncSession, project_id: uuid.UUID, organization_id: uuid.UUID
) -> Project:
    """Load a project owned by the organization.

    Raises:
        NotFoundError: The project does not exist or belongs to another organization.
    """
    result = await session.execute(
        select(Project).where(Project.id == project_id, Project.organization_id == organization_id)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


async def get_job_for_org(
    session: AsyncSession, job_id: uuid.UUID, organization_id: uuid.UUID
) -> ProcessingJob:
    """Load a processing job through its project's organization.

    Raises:
        NotFoundError: The job does not exist or belongs to another organization.
    """
    result = await session.execute(
        select(ProcessingJob)
        .join(Project, Project.id == ProcessingJob.project_id)
        .where(ProcessingJob.id == job_id, Project.organization_id == organization_id)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError("Processing job", job_id)
    return job


def build_config_snapshot(project: Project, sources: list[Source]) -> JobConfigSnapshot:
    """Freeze the project's current settings and the selected sources."""
    try:
        pii_settings = PiiSettings.model_validate(project.pii_settings or {})
        filter_settings = FilterSettings.model_validate(project.filter_settings or {})
    except ValidationError as e:
        raise ValidationFailure("Project settings are invalid", details={"errors": e.errors()}) from e
    return JobConfigSnapshot(
        pii_settings=pii_settings,
        filter_settings=filter_settings,
        source_ids=[s.id for s in sources],
    )


class ProcessingService:
    """Job lifecycle operations for one request.

    Args:
        session: Request-scoped database session.
        audit_session_factory: Factory for audit writes, kept apart from
            the request transaction.
        runner: Background runner; when None the job is only persisted.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_session_factory: async_sessionmaker[AsyncSession],
        runner: TaskRunner | None = None,
    ) -> None:
        self._session = session
        self._audit_session_factory = audit_session_factory
        self._runner = runner

    async def start_job(
        self,
        project_id: uuid.UUID,
        organization_id: uuid.UUID,
        source_ids: list[uuid.UUID] | None = None,
        user_id: uuid.UUID | None = None,
    ) -> ProcessingJob:
        """Create a pending job over the selected sources and start it.

        Args:
            project_id: Project whose sources are processed.
            organization_id: Caller's organization.
            source_ids: Subset of the project's sources; all when None.
            user_id: Acting user, for the audit trail.

        Raises:
            NotFoundError: Unknown project.
            NotEligible: No sources to process, or a job is already active.
        """
        project = await get_project_for_org(self._session, project_id, organization_id)

        result = await self._session.execute(
            select(Source).where(Source.project_id == project.id).order_by(Source.created_at)
        )
        sources = list(result.scalars().all())
        if source_ids is not None:
            wanted = set(source_ids)
            sources = [s for s in sources if s.id in wanted]
        if not sources:
            raise NotEligible("No sources available to process")

        active = await self._session.execute(
            select(ProcessingJob.id)
            .where(ProcessingJob.project_id == project.id, ProcessingJob.status.in_(_ACTIVE_STATUSES))
            .limit(1)
        )
        if active.scalar_one_or_none() is not None:
            raise NotEligible("A processing job is already running for this project")

        snapshot = build_config_snapshot(project, sources)
        job = ProcessingJob(
            id=uuid.uuid4(),
            project_id=project.id,
            status=JobStatus.PENDING,
            progress=0,
            records_total=0,
            records_processed=0,
            config_snapshot=snapshot.to_json(),
        )
        self._session.add(job)
        try:
            await self._session.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent start; the partial unique index rejected us.
            await self._session.rollback()
            raise NotEligible("A processing job is already running for this project") from e
        await self._session.refresh(job)

        logger.info("Created processing job %s for project %s over %d source(s)", job.id, project.id, len(sources))
        await log_audit(
            self._audit_session_factory,
            AuditAction.JOB_STARTED,
            "processing_job",
            job.id,
            user_id=user_id,
            organization_id=organization_id,
            details={"projectId": str(project.id), "sourceCount": len(sources)},
        )

        if self._runner is not None:
            self._runner.submit(ProcessingJobWorker.task_type, {"job_id": str(job.id)}, task_id=str(job.id))
        else:
            logger.warning("No task runner configured; job %s stays pending", job.id)
        return job

    async def list_jobs(
        self,
        project_id: uuid.UUID,
        organization_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[ProcessingJob], int]:
        """Page through a project's jobs, newest first.

        Returns:
            Tuple of (jobs on this page, total job count).
        """
        project = await get_project_for_org(self._session, project_id, organization_id)

        total_result = await self._session.execute(
            select(func.count()).select_from(ProcessingJob).where(ProcessingJob.project_id == project.id)
        )
        total = total_result.scalar() or 0

        result = await self._session.execute(
            select(ProcessingJob)
            .where(ProcessingJob.project_id == project.id)
            .order_by(ProcessingJob.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_job(self, job_id: uuid.UUID, organization_id: uuid.UUID) -> ProcessingJob:
        return await get_job_for_org(self._session, job_id, organization_id)

    async def cancel_job(
        self,
        job_id: uuid.UUID,
        organization_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
    ) -> ProcessingJob:
        """Mark an active job cancelled.

        The running orchestrator notices the status change at its next
        poll and stops; records already written stay in place.

        Raises:
            NotFoundError: Unknown job.
            NotEligible: The job already reached a terminal state.
        """
        job = await get_job_for_org(self._session, job_id, organization_id)
        if not JobStatus(job.status).is_active:
            raise NotEligible("Job cannot be cancelled")

        # Conditional so a job finishing concurrently keeps its terminal status.
        result = await self._session.execute(
            update(ProcessingJob)
            .where(ProcessingJob.id == job.id, ProcessingJob.status.in_(_ACTIVE_STATUSES))
            .values(status=JobStatus.CANCELLED, completed_at=datetime.now(UTC))
        )
        if result.rowcount == 0:
            await self._session.rollback()
            raise NotEligible("Job cannot be cancelled")
        await self._session.commit()
        await self._session.refresh(job)

        logger.info("Cancelled processing job %s", job.id)
        await log_audit(
            self._audit_session_factory,
            AuditAction.JOB_CANCELLED,
            "processing_job",
            job.id,
            user_id=user_id,
            organization_id=organization_id,
        )
        return job
