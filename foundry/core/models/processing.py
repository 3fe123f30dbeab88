"""Processing models: ProcessingJob, ProcessedRecord, Export."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from foundry.core.database import Base


class JobStatus(enum.StrEnum):
    """Lifecycle of a processing job.

    ``pending`` and ``processing`` are the only non-terminal states.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.PROCESSING)


class ExportFormat(enum.StrEnum):
    """Training-data file formats."""

    JSONL_CONVERSATION = "jsonl_conversation"
    JSONL_QA = "jsonl_qa"
    JSON_RAW = "json_raw"


class ProcessingJob(Base):
    """One execution of the mapping, filter and PII pipeline over a project's sources.

    ``config_snapshot`` freezes ``{pii_settings, filter_settings, source_ids}``
    at start time. Progress columns are written only by the running job.
    """

    __tablename__ = "processing_jobs"
    __table_args__ = (
        Index("ix_processing_jobs_project_id", "project_id"),
        Index("ix_processing_jobs_status", "status"),
        Index("ix_processing_jobs_created_at", "created_at"),
        Index(
            "uq_processing_jobs_one_active",
            "project_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'processing')"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=JobStatus.PENDING,
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    config_snapshot: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    warnings: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    errors: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    records: Mapped[list[ProcessedRecord]] = relationship(
        "ProcessedRecord", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )
    exports: Mapped[list[Export]] = relationship(
        "Export", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<ProcessingJob(id={self.id}, status={self.status}, progress={self.progress})>"


class ProcessedRecord(Base):
    """One record that survived filtering, after mapping and PII tokenization.

    Immutable once written.
    """

    __tablename__ = "processed_records"
    __table_args__ = (
        Index("ix_processed_records_job_id", "job_id"),
        Index("ix_processed_records_source_id", "source_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("processing_jobs.id", ondelete="CASCADE"), nullable=False
    )
    source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sources.id", ondelete="CASCADE"), nullable=False
    )
    original_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    processed_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    pii_tokens_map: Mapped[dict[str, str]] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    job: Mapped[ProcessingJob] = relationship("ProcessingJob", back_populates="records")

    def __repr__(self) -> str:
        return f"<ProcessedRecord(id={self.id}, job_id={self.job_id})>"


class Export(Base):
    """A generated training-data file for a completed job."""

    __tablename__ = "exports"
    __table_args__ = (
        Index("ix_exports_job_id", "job_id"),
        Index("ix_exports_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("processing_jobs.id", ondelete="CASCADE"), nullable=False
    )
    format: Mapped[ExportFormat] = mapped_column(
        Enum(ExportFormat, values_callable=lambda e: [x.value for x in e]), nullable=False
    )
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    job: Mapped[ProcessingJob] = relationship("ProcessingJob", back_populates="exports")

    def __repr__(self) -> str:
        return f"<Export(id={self.id}, format={self.format}, records={self.record_count})>"
