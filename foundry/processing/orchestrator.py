"""Job orchestrator: runs one processing job across its sources.

State machine::

    pending → processing → completed
                         ↘ failed
    pending | processing → cancelled   (set externally, discovered by polling)

Per source, records flow through mapping, then filtering, then PII
tokenization, and survivors are persisted as ProcessedRecords. Sources
are processed sequentially and this class is the only writer of the
job's progress columns while it runs.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from foundry.core.config import Settings, get_settings
from foundry.core.models import JobStatus, Source
from foundry.core.tasks import TaskWorker
from foundry.integrations import SourceConnector, create_connector
from foundry.processing.filters import FilterEngine
from foundry.processing.mapping import apply_mappings
from foundry.processing.pii import PiiEngine
from foundry.processing.schemas import JobConfigSnapshot
from foundry.processing.store import JobStore

logger = logging.getLogger(__name__)

FILTERED_WARNING = "Record filtered out by quality rules"
INTERRUPTED_ERROR = "Job interrupted by service shutdown"

ConnectorFactory = Callable[[Source], SourceConnector]


def compute_progress(records_processed: int, records_total: int) -> int:
    """Percentage of records processed, rounded half up."""
    if records_total <= 0:
        return 0
    return min(100, math.floor(100 * records_processed / records_total + 0.5))


@dataclass
class JobRunResult:
    """Summary of one orchestrator run."""

    job_id: uuid.UUID
    status: JobStatus | None
    records_total: int = 0
    records_processed: int = 0
    records_written: int = 0
    warnings: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": str(self.job_id),
            "status": self.status.value if self.status else None,
            "records_total": self.records_total,
            "records_processed": self.records_processed,
            "records_written": self.records_written,
            "warnings": self.warnings,
            "error": self.error,
        }


class _JobStopped(Exception):
    """The job left the processing state while it was running."""


class ProcessingOrchestrator:
    """Executes processing jobs against a :class:`JobStore`.

    Args:
        store: Persistence collaborator.
        connector_factory: Builds the connector for a source row.
        filter_engine: Record quality filter.
        pii_engine_factory: Creates a fresh PII engine for each run so
            token numbering restarts per job.
        settings: Warning cap and cancellation poll interval.
    """

    def __init__(
        self,
        store: JobStore,
        connector_factory: ConnectorFactory | None = None,
        *,
        filter_engine: FilterEngine | None = None,
        pii_engine_factory: Callable[[], PiiEngine] = PiiEngine,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._connector_factory = connector_factory or (lambda source: create_connector(source, settings))
        self._filter = filter_engine or FilterEngine()
        self._pii_engine_factory = pii_engine_factory
        self._warning_limit = settings.job_warning_limit
        self._cancel_check_interval = settings.job_cancel_check_interval

    async def run(self, job_id: uuid.UUID) -> JobRunResult:
        """Run a pending job to a terminal state.

        Never raises for pipeline errors: they become the job's ``failed``
        status. Only a failure to record that status propagates.

        Args:
            job_id: The job to run.

        Returns:
            JobRunResult describing where the job ended up.
        """
        snapshot = await self._store.mark_processing(job_id)
        if snapshot is None:
            status = await self._store.get_status(job_id)
            logger.info("Job %s is not pending (status=%s); nothing to run", job_id, status)
            return JobRunResult(job_id=job_id, status=status)

        logger.info("Job %s started over %d source(s)", job_id, len(snapshot.source_ids))
        result = JobRunResult(job_id=job_id, status=JobStatus.PROCESSING)
        warnings: list[str] = []
        try:
            await self._run_sources(job_id, snapshot, result, warnings)
        except _JobStopped:
            result.status = await self._store.get_status(job_id)
            logger.info(
                "Job %s stopped at %d/%d records (status=%s)",
                job_id, result.records_processed, result.records_total, result.status,
            )
            return result
        except asyncio.CancelledError:
            logger.warning(
                "Job %s interrupted at %d/%d records", job_id, result.records_processed, result.records_total
            )
            await self._store.fail_job(job_id, INTERRUPTED_ERROR)
            raise
        except Exception as e:
            logger.exception("Job %s failed", job_id)
            result.error = str(e) or type(e).__name__
            if await self._store.fail_job(job_id, result.error):
                result.status = JobStatus.FAILED
            else:
                result.status = await self._store.get_status(job_id)
            return result

        if await self._store.complete_job(job_id, warnings or None):
            result.status = JobStatus.COMPLETED
        else:
            result.status = await self._store.get_status(job_id)
        logger.info(
            "Job %s finished with status %s: %d processed, %d written, %d warning(s)",
            job_id, result.status, result.records_processed, result.records_written, result.warnings,
        )
        return result

    async def _ensure_processing(self, job_id: uuid.UUID) -> None:
        status = await self._store.get_status(job_id)
        if status != JobStatus.PROCESSING:
            raise _JobStopped()

    async def _run_sources(
        self,
        job_id: uuid.UUID,
        snapshot: JobConfigSnapshot,
        result: JobRunResult,
        warnings: list[str],
    ) -> None:
        pii_engine = self._pii_engine_factory()
        interval = self._cancel_check_interval

        for source_id in snapshot.source_ids:
            await self._ensure_processing(job_id)

            source = await self._store.get_source(source_id)
            if source is None:
                logger.warning("Job %s: source %s no longer exists, skipping", job_id, source_id)
                continue

            mappings = await self._store.get_mappings(source_id)
            connector = self._connector_factory(source)
            try:
                raw_records = await connector.fetch_data()
            finally:
                await connector.disconnect()

            result.records_total += len(raw_records)
            await self._store.set_records_total(job_id, result.records_total)
            logger.info("Job %s: source %s yielded %d record(s)", job_id, source_id, len(raw_records))

            for index, raw in enumerate(raw_records, start=1):
                if interval > 0 and index % interval == 0:
                    await self._ensure_processing(job_id)

                mapped = apply_mappings(raw, mappings)
                if self._filter.should_include(mapped, snapshot.filter_settings):
                    pii = await asyncio.to_thread(pii_engine.process, mapped, mappings, snapshot.pii_settings)
                    await self._store.add_processed_record(
                        job_id, source_id, raw, pii.processed_data, pii.tokens_map
                    )
                    result.records_written += 1
                else:
                    result.warnings += 1
                    if len(warnings) < self._warning_limit:
                        warnings.append(FILTERED_WARNING)

                result.records_processed += 1
                await self._store.update_progress(
                    job_id,
                    result.records_processed,
                    compute_progress(result.records_processed, result.records_total),
                )


class ProcessingJobWorker(TaskWorker):
    """Background worker that runs one processing job per task.

    Payload: ``{"job_id": "<uuid>"}``. A job is never retried within one
    run; the user starts a new job instead.
    """

    task_type = "processing_job"
    max_retries = 1

    def __init__(self, orchestrator: ProcessingOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        job_id = uuid.UUID(str(payload["job_id"]))
        result = await self._orchestrator.run(job_id)
        return result.to_dict()
