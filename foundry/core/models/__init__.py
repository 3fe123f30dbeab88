"""SQLAlchemy models for the Foundry pipeline.

This package re-exports all models and enums from domain-specific modules
so that code can use ``from foundry.core.models import X``.
"""

from foundry.core.models.audit import AuditAction, AuditLog
from foundry.core.models.processing import (
    Export,
    ExportFormat,
    JobStatus,
    ProcessedRecord,
    ProcessingJob,
)
from foundry.core.models.project import (
    MappingConfidence,
    Project,
    Source,
    SourceMapping,
    SourceStatus,
    SourceType,
)

__all__ = [
    "AuditAction",
    "AuditLog",
    "Export",
    "ExportFormat",
    "JobStatus",
    "MappingConfidence",
    "ProcessedRecord",
    "ProcessingJob",
    "Project",
    "Source",
    "SourceMapping",
    "SourceStatus",
    "SourceType",
]
