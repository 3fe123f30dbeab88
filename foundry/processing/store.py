"""Persistence collaborator for the job orchestrator.

``JobStore`` is everything the orchestrator needs from the system of
record. ``SqlJobStore`` implements it over an async session factory and
commits on every call, so a status read always observes the job's own
latest write.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from foundry.core.models import JobStatus, ProcessedRecord, ProcessingJob, Source, SourceMapping
from foundry.processing.export import json_default
from foundry.processing.schemas import FieldMapping, JobConfigSnapshot

logger = logging.getLogger(__name__)


def to_jsonable(data: dict[str, Any]) -> dict[str, Any]:
    """Coerce connector output (datetimes, UUIDs) into JSONB-safe values."""
    return json.loads(json.dumps(data, default=json_default))


def mapping_from_row(row: SourceMapping) -> FieldMapping:
    return FieldMapping(
        source_field=row.source_field,
        target_field=row.target_field,
        confidence=row.confidence,
        is_pii=bool(row.is_pii),
    )


class JobStore(Protocol):
    """Storage operations used while running one processing job."""

    async def mark_processing(self, job_id: uuid.UUID) -> JobConfigSnapshot | None:
        """Move the job from pending to processing and stamp ``started_at``.

        Returns:
            The job's frozen config, or None when the job was not pending.
        """
        ...

    async def get_status(self, job_id: uuid.UUID) -> JobStatus | None: ...

    async def get_source(self, source_id: uuid.UUID) -> Source | None: ...

    async def get_mappings(self, source_id: uuid.UUID) -> list[FieldMapping]: ...

    async def set_records_total(self, job_id: uuid.UUID, records_total: int) -> None: ...

    async def add_processed_record(
        self,
        job_id: uuid.UUID,
        source_id: uuid.UUID,
        original_data: dict[str, Any],
        processed_data: dict[str, Any],
        tokens_map: dict[str, str],
    ) -> None: ...

    async def update_progress(self, job_id: uuid.UUID, records_processed: int, progress: int) -> None: ...

    async def complete_job(self, job_id: uuid.UUID, warnings: list[str] | None) -> bool:
        """Mark a still-processing job completed. Returns False if it was not processing."""
        ...

    async def fail_job(self, job_id: uuid.UUID, message: str) -> bool:
        """Mark a still-processing job failed. Returns False if it was not processing."""
        ...


class SqlJobStore:
    """JobStore backed by PostgreSQL through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def mark_processing(self, job_id: uuid.UUID) -> JobConfigSnapshot | None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(ProcessingJob)
                .where(ProcessingJob.id == job_id, ProcessingJob.status == JobStatus.PENDING)
                .values(status=JobStatus.PROCESSING, started_at=datetime.now(UTC))
                .returning(ProcessingJob.config_snapshot)
            )
            snapshot = result.scalar_one_or_none()
            await session.commit()
        if snapshot is None:
            return None
        return JobConfigSnapshot.model_validate(snapshot or {})

    async def get_status(self, job_id: uuid.UUID) -> JobStatus | None:
        async with self._session_factory() as session:
            result = await session.execute(select(ProcessingJob.status).where(ProcessingJob.id == job_id))
            return result.scalar_one_or_none()

    async def get_source(self, source_id: uuid.UUID) -> Source | None:
        async with self._session_factory() as session:
            return await session.get(Source, source_id)

    async def get_mappings(self, source_id: uuid.UUID) -> list[FieldMapping]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceMapping)
                .where(SourceMapping.source_id == source_id)
                .order_by(SourceMapping.position)
            )
            return [mapping_from_row(row) for row in result.scalars().all()]

    async def set_records_total(self, job_id: uuid.UUID, records_total: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ProcessingJob).where(ProcessingJob.id == job_id).values(records_total=records_total)
            )
            await session.commit()

    async def add_processed_record(
        self,
        job_id: uuid.UUID,
        source_id: uuid.UUID,
        original_data: dict[str, Any],
        processed_data: dict[str, Any],
        tokens_map: dict[str, str],
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                ProcessedRecord(
                    job_id=job_id,
                    source_id=source_id,
                    original_data=to_jsonable(original_data),
                    processed_data=to_jsonable(processed_data),
                    pii_tokens_map=tokens_map,
                )
            )
            await session.commit()

    async def update_progress(self, job_id: uuid.UUID, records_processed: int, progress: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ProcessingJob)
                .where(ProcessingJob.id == job_id)
                .values(records_processed=records_processed, progress=progress)
            )
            await session.commit()

    async def complete_job(self, job_id: uuid.UUID, warnings: list[str] | None) -> bool:
        return await self._finish(
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            warnings=warnings,
        )

    async def fail_job(self, job_id: uuid.UUID, message: str) -> bool:
        return await self._finish(job_id, status=JobStatus.FAILED, errors=[message])

    async def _finish(self, job_id: uuid.UUID, **values: Any) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(ProcessingJob)
                .where(ProcessingJob.id == job_id, ProcessingJob.status == JobStatus.PROCESSING)
                .values(completed_at=datetime.now(UTC), **values)
            )
            await session.commit()
            return (result.rowcount or 0) > 0
