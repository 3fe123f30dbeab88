"""Background task architecture for long-running pipeline operations.

Provides an in-process task runner with retry logic and failure capture.
"""

from foundry.core.tasks.base import TaskStatus, TaskWorker
from foundry.core.tasks.runner import TaskOutcome, TaskRunner

__all__ = [
    "TaskOutcome",
    "TaskRunner",
    "TaskStatus",
    "TaskWorker",
]
