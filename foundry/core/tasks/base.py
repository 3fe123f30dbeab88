"""Task worker base class and outcome status.

``TaskWorker`` is the abstract base class for background work run by
:class:`~foundry.core.tasks.runner.TaskRunner`. Subclasses set
``task_type`` and override ``execute(payload)``. Workers hold no per-task
state; one registered instance serves every task of its type.

Lifecycle of one task::

    attempt 1 → COMPLETED
              ↘ retry (up to max_retries) → FAILED
    (still running at runner shutdown) → cancelled

Example subclass::

    class ProcessingJobWorker(TaskWorker):
        task_type = "processing_job"

        async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
            job_id = payload["job_id"]
            # ... record-by-record pipeline ...
            return {"job_id": job_id, "status": "completed"}
"""

from __future__ import annotations

import abc
import enum
from typing import Any


class TaskStatus(enum.StrEnum):
    """Final state of a background task that ran to the end."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TaskWorker(abc.ABC):
    """Abstract base class for background task workers.

    Attributes:
        task_type: Identifies the kind of work this worker handles.
        max_retries: Maximum number of attempts before the task is
            reported FAILED. Defaults to 3.
    """

    task_type: str = ""
    max_retries: int = 3

    @abc.abstractmethod
    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Execute the task with the given payload.

        Args:
            payload: Task-specific input data.

        Returns:
            Result dict kept on the task's outcome.

        Raises:
            Exception: Any unhandled exception triggers retry logic.
        """
