"""Project and source models: Project, Source, SourceMapping."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from foundry.core.database import Base


class SourceType(enum.StrEnum):
    """Origin of a source's raw records."""

    FILE = "file"
    TEAMWORK = "teamwork"
    GOHIGHLEVEL = "gohighlevel"


class SourceStatus(enum.StrEnum):
    """Connection state of a source."""

    PENDING = "pending"
    CONNECTED = "connected"
    ERROR = "error"


class MappingConfidence(enum.StrEnum):
    """How sure the detector (or the user) is about a field mapping."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Project(Base):
    """A data-preparation project owned by one organization.

    ``pii_settings`` and ``filter_settings`` hold the live settings; a
    processing job freezes a copy of both when it starts.
    """

    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_projects_org_name"),
        Index("ix_projects_organization_id", "organization_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    pii_settings: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    filter_settings: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    sources: Mapped[list[Source]] = relationship("Source", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name='{self.name}')>"


class Source(Base):
    """A configured origin of raw records: an uploaded file or an API connection.

    ``config`` is connector-specific. API connectors keep their ``api_key``
    Fernet-encrypted inside it.
    """

    __tablename__ = "sources"
    __table_args__ = (
        Index("ix_sources_project_id", "project_id"),
        Index("ix_sources_type", "type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[SourceType] = mapped_column(
        Enum(SourceType, values_callable=lambda e: [x.value for x in e]), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[SourceStatus] = mapped_column(
        Enum(SourceStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=SourceStatus.PENDING,
    )
    file_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    raw_schema: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    project: Mapped[Project] = relationship("Project", back_populates="sources")
    mappings: Mapped[list[SourceMapping]] = relationship(
        "SourceMapping", back_populates="source", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Source(id={self.id}, type={self.type}, name='{self.name}')>"


class SourceMapping(Base):
    """Association of one raw field of a source with a canonical target field."""

    __tablename__ = "source_mappings"
    __table_args__ = (
        UniqueConstraint("source_id", "source_field", name="uq_source_mappings_source_field"),
        Index("ix_source_mappings_source_id", "source_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sources.id", ondelete="CASCADE"), nullable=False
    )
    source_field: Mapped[str] = mapped_column(String(255), nullable=False)
    target_field: Mapped[str] = mapped_column(String(255), nullable=False)
    confidence: Mapped[MappingConfidence] = mapped_column(
        Enum(MappingConfidence, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=MappingConfidence.LOW,
    )
    is_pii: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Saved order; a later mapping to the same target wins when applied.
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    source: Mapped[Source] = relationship("Source", back_populates="mappings")

    def __repr__(self) -> str:
        return f"<SourceMapping(source_field='{self.source_field}', target_field='{self.target_field}')>"
