"""In-process task runner: submit and shutdown.

Provides ``TaskRunner``, which spawns one asyncio task per submitted unit
of work and dispatches it to the registered ``TaskWorker``. Submission
is fire-and-forget for the caller. Failures end up on the task's
:class:`TaskOutcome` and in the log, never raised into the code that
submitted the work. Job state itself lives in the database.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from foundry.core.tasks.base import TaskStatus, TaskWorker

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """How one task ended.

    Attributes:
        task_id: Unique task identifier.
        task_type: The kind of task (e.g. ``processing_job``).
        status: COMPLETED or FAILED.
        error: Last error message if the task failed.
        attempt_count: Number of execution attempts.
        result: Worker result payload (only when COMPLETED).
        completed_at: When the task finished.
    """

    task_id: str
    task_type: str
    status: TaskStatus = TaskStatus.FAILED
    error: str = ""
    attempt_count: int = 0
    result: dict[str, Any] = field(default_factory=dict)
    completed_at: str = ""


class TaskRunner:
    """Runs background tasks as asyncio tasks on the current event loop.

    Tasks are tracked by id until they finish; ``shutdown`` cancels any
    that are still running.
    """

    def __init__(self) -> None:
        self._workers: dict[str, TaskWorker] = {}
        self._tasks: dict[str, asyncio.Task[TaskOutcome]] = {}

    def register_worker(self, worker: TaskWorker) -> None:
        """Register the worker for its ``task_type``.

        Raises:
            ValueError: If ``task_type`` is empty.
        """
        if not worker.task_type:
            raise ValueError("TaskWorker.task_type must be set")
        self._workers[worker.task_type] = worker

    @property
    def active_task_ids(self) -> list[str]:
        return list(self._tasks)

    def submit(self, task_type: str, payload: dict[str, Any], task_id: str | None = None) -> str:
        """Schedule a task and return its id immediately.

        Must be called from inside a running event loop.

        Args:
            task_type: Type of task (must match a registered worker).
            payload: Task-specific input data.
            task_id: Optional caller-chosen id, e.g. the job id.
        """
        task_id = task_id or str(uuid.uuid4())
        task = asyncio.create_task(self.execute_task(task_id, task_type, payload), name=f"{task_type}:{task_id}")
        self._tasks[task_id] = task
        task.add_done_callback(lambda t: self._on_done(task_id, t))
        logger.info("Submitted task %s (type=%s)", task_id, task_type)
        return task_id

    def _on_done(self, task_id: str, task: asyncio.Task[TaskOutcome]) -> None:
        self._tasks.pop(task_id, None)
        if task.cancelled():
            logger.info("Task %s cancelled", task_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Task %s crashed outside its worker: %s", task_id, exc, exc_info=exc)
            return
        outcome = task.result()
        if outcome.status == TaskStatus.FAILED:
            logger.error("Task %s failed after %d attempt(s): %s", task_id, outcome.attempt_count, outcome.error)
        else:
            logger.info("Task %s completed", task_id)

    async def execute_task(self, task_id: str, task_type: str, payload: dict[str, Any]) -> TaskOutcome:
        """Execute a single task through its registered worker, with retries."""
        outcome = TaskOutcome(task_id=task_id, task_type=task_type)
        worker = self._workers.get(task_type)
        if worker is None:
            outcome.error = f"No worker registered for task type: {task_type}"
            outcome.completed_at = datetime.now(UTC).isoformat()
            return outcome

        max_retries = max(1, worker.max_retries)
        while outcome.attempt_count < max_retries:
            outcome.attempt_count += 1
            try:
                outcome.result = await worker.execute(payload)
            except Exception as exc:
                outcome.error = str(exc)
                logger.warning(
                    "Task %s attempt %d/%d failed: %s", task_id, outcome.attempt_count, max_retries, outcome.error
                )
                continue
            outcome.status = TaskStatus.COMPLETED
            outcome.error = ""
            break

        outcome.completed_at = datetime.now(UTC).isoformat()
        return outcome

    async def shutdown(self) -> None:
        """Cancel every task that is still running and wait for them to unwind."""
        pending = list(self._tasks.values())
        if not pending:
            return
        logger.info("Cancelling %d running task(s)", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
