"""Export service: turn a completed job's records into a training-data file.

Files are written under ``{export_dir}/{organization_id}/`` and expire
after ``export_retention_days``; :mod:`foundry.jobs.export_cleanup`
removes them afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.audit import log_audit
from foundry.core.config import Settings, get_settings
from foundry.core.exceptions import NotEligible, NotFoundError
from foundry.core.models import AuditAction, Export, ExportFormat, JobStatus, ProcessedRecord, ProcessingJob, Project
from foundry.processing.export import CONTENT_TYPES, FILE_EXTENSIONS, ExportEngine, parse_format
from foundry.processing.schemas import ExportOptions
from foundry.services.processing import get_job_for_org

logger = logging.getLogger(__name__)


@dataclass
class ExportDownload:
    """What the HTTP layer needs to stream an export file."""

    path: Path
    filename: str
    content_type: str


def export_filename(job_id: uuid.UUID, export_format: ExportFormat, created_at: datetime) -> str:
    timestamp = int(created_at.timestamp() * 1000)
    return f"export-{job_id}-{export_format.value}-{timestamp}{FILE_EXTENSIONS[export_format]}"


def _write_file(path: Path, content: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8")
    path.write_bytes(data)
    return len(data)


class ExportService:
    """Export operations for one request.

    Args:
        session: Request-scoped database session.
        audit_session_factory: Factory for audit writes.
        settings: Export directory and retention window.
        engine: Renderer; a default :class:`ExportEngine` when None.
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        engine: ExportEngine | None = None,
    ) -> None:
        self._session = session
        self._audit_session_factory = audit_session_factory
        self._settings = settings or get_settings()
        self._engine = engine or ExportEngine()

    async def create_export(
        self,
        job_id: uuid.UUID,
        organization_id: uuid.UUID,
        export_format: str | ExportFormat,
        options: ExportOptions | None = None,
        user_id: uuid.UUID | None = None,
    ) -> Export:
        """Render the job's processed records and store the file.

        Raises:
            ValidationFailure: Unknown format.
            NotFoundError: Unknown job.
            NotEligible: The job is not completed or produced no records.
        """
        fmt = parse_format(export_format)
        job = await get_job_for_org(self._session, job_id, organization_id)
        if job.status != JobStatus.COMPLETED:
            raise NotEligible("Can only export completed jobs")

        result = await self._session.execute(
            select(ProcessedRecord.processed_data)
            .where(ProcessedRecord.job_id == job.id)
            .order_by(ProcessedRecord.created_at, ProcessedRecord.id)
        )
        records = list(result.scalars().all())
        if not records:
            raise NotEligible("No records to export")

        rendered = self._engine.render(records, fmt, options)

        now = datetime.now(UTC)
        path = Path(self._settings.export_dir) / str(organization_id) / export_filename(job.id, fmt, now)
        file_size = await asyncio.to_thread(_write_file, path, rendered.content)

        export = Export(
            id=uuid.uuid4(),
            job_id=job.id,
            format=fmt,
            file_path=str(path),
            file_size=file_size,
            record_count=rendered.record_count,
            expires_at=now + timedelta(days=self._settings.export_retention_days),
        )
        self._session.add(export)
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            path.unlink(missing_ok=True)
            raise
        await self._session.refresh(export)

        logger.info(
            "Created %s export %s for job %s: %d record(s), %d bytes",
            fmt.value, export.id, job.id, rendered.record_count, file_size,
        )
        await log_audit(
            self._audit_session_factory,
            AuditAction.EXPORT_CREATED,
            "export",
            export.id,
            user_id=user_id,
            organization_id=organization_id,
            details={"jobId": str(job.id), "format": fmt.value, "recordCount": rendered.record_count},
        )
        return export

    async def list_exports(self, job_id: uuid.UUID, organization_id: uuid.UUID) -> list[Export]:
        job = await get_job_for_org(self._session, job_id, organization_id)
        result = await self._session.execute(
            select(Export).where(Export.job_id == job.id).order_by(Export.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_export(self, export_id: uuid.UUID, organization_id: uuid.UUID) -> Export:
        result = await self._session.execute(
            select(Export)
            .join(ProcessingJob, ProcessingJob.id == Export.job_id)
            .join(Project, Project.id == ProcessingJob.project_id)
            .where(Export.id == export_id, Project.organization_id == organization_id)
        )
        export = result.scalar_one_or_none()
        if export is None:
            raise NotFoundError("Export", export_id)
        return export

    async def open_download(
        self,
        export_id: uuid.UUID,
        organization_id: uuid.UUID,
        now: datetime | None = None,
    ) -> ExportDownload:
        """Locate an export file for download.

        Raises:
            NotFoundError: Unknown export, or its file is gone.
            NotEligible: The export has expired.
        """
        export = await self.get_export(export_id, organization_id)
        now = now or datetime.now(UTC)
        if export.expires_at <= now:
            raise NotEligible("Export has expired")

        path = Path(export.file_path)
        if not path.is_file():
            logger.warning("Export %s points at a missing file", export.id)
            raise NotFoundError("Export file", export.id)

        fmt = ExportFormat(export.format)
        return ExportDownload(path=path, filename=path.name, content_type=CONTENT_TYPES[fmt])
