"""Tests for the in-process background task runner (foundry/core/tasks)."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from foundry.core.tasks import TaskOutcome, TaskRunner, TaskStatus, TaskWorker

# -- Test workers -------------------------------------------------------------


class SuccessWorker(TaskWorker):
    """Worker that always succeeds."""

    task_type = "test_success"

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {"result": "ok", "job_id": payload.get("job_id")}


class FailWorker(TaskWorker):
    """Worker that always raises."""

    task_type = "test_fail"
    max_retries = 3

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        raise RuntimeError("simulated failure")


class EventualSuccessWorker(TaskWorker):
    """Worker that fails twice then succeeds."""

    task_type = "test_eventual"
    max_retries = 3

    def __init__(self) -> None:
        self.calls = 0

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls += 1
        if self.calls < 3:
            raise RuntimeError(f"attempt {self.calls} failed")
        return {"recovered": True}


class SingleAttemptWorker(FailWorker):
    task_type = "test_single"
    max_retries = 1


class BlockingWorker(TaskWorker):
    """Worker that waits until released."""

    task_type = "test_blocking"

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.started.set()
        await self.release.wait()
        return {}


@pytest.fixture
def runner() -> TaskRunner:
    r = TaskRunner()
    r.register_worker(SuccessWorker())
    r.register_worker(FailWorker())
    r.register_worker(EventualSuccessWorker())
    r.register_worker(SingleAttemptWorker())
    return r


def _submitted(task_type: str, task_id: str) -> asyncio.Task[TaskOutcome]:
    name = f"{task_type}:{task_id}"
    return next(t for t in asyncio.all_tasks() if t.get_name() == name)


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    def test_empty_task_type_rejected(self) -> None:
        class Nameless(TaskWorker):
            async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
                return {}

        with pytest.raises(ValueError, match="task_type must be set"):
            TaskRunner().register_worker(Nameless())


# =============================================================================
# Execution
# =============================================================================


class TestExecution:
    """Retry handling and the final TaskOutcome."""

    async def test_success(self, runner: TaskRunner) -> None:
        outcome = await runner.execute_task("j1", "test_success", {"job_id": "j1"})

        assert outcome.status == TaskStatus.COMPLETED
        assert outcome.result == {"result": "ok", "job_id": "j1"}
        assert outcome.attempt_count == 1
        assert outcome.completed_at

    async def test_failure_after_retries(self, runner: TaskRunner) -> None:
        outcome = await runner.execute_task("t1", "test_fail", {})

        assert outcome.status == TaskStatus.FAILED
        assert outcome.error == "simulated failure"
        assert outcome.attempt_count == 3

    async def test_eventual_success(self, runner: TaskRunner) -> None:
        outcome = await runner.execute_task("t1", "test_eventual", {})

        assert outcome.status == TaskStatus.COMPLETED
        assert outcome.attempt_count == 3
        assert outcome.error == ""
        assert outcome.result == {"recovered": True}

    async def test_single_attempt_worker_not_retried(self, runner: TaskRunner) -> None:
        outcome = await runner.execute_task("t1", "test_single", {})

        assert outcome.status == TaskStatus.FAILED
        assert outcome.attempt_count == 1

    async def test_unknown_task_type(self, runner: TaskRunner) -> None:
        outcome = await runner.execute_task("t1", "nope", {})

        assert outcome.status == TaskStatus.FAILED
        assert outcome.attempt_count == 0
        assert "No worker registered" in outcome.error


# =============================================================================
# Submission and shutdown
# =============================================================================


class TestLifecycle:
    async def test_submit_runs_in_background(self, runner: TaskRunner) -> None:
        task_id = runner.submit("test_success", {"job_id": "j1"}, task_id="j1")
        assert task_id == "j1"

        outcome = await _submitted("test_success", "j1")
        await asyncio.sleep(0)

        assert outcome.status == TaskStatus.COMPLETED
        assert runner.active_task_ids == []

    async def test_submitted_failure_is_not_raised(self, runner: TaskRunner) -> None:
        task_id = runner.submit("test_fail", {})

        outcome = await _submitted("test_fail", task_id)

        assert outcome.status == TaskStatus.FAILED

    async def test_active_ids_while_running(self) -> None:
        runner = TaskRunner()
        worker = BlockingWorker()
        runner.register_worker(worker)

        task_id = runner.submit("test_blocking", {})
        await worker.started.wait()
        assert runner.active_task_ids == [task_id]

        worker.release.set()
        await _submitted("test_blocking", task_id)
        await asyncio.sleep(0)
        assert runner.active_task_ids == []

    async def test_shutdown_cancels_running_tasks(self) -> None:
        runner = TaskRunner()
        worker = BlockingWorker()
        runner.register_worker(worker)

        task_id = runner.submit("test_blocking", {})
        await worker.started.wait()
        task = _submitted("test_blocking", task_id)
        await runner.shutdown()

        assert task.cancelled()
        assert runner.active_task_ids == []

    async def test_shutdown_without_tasks(self) -> None:
        await TaskRunner().shutdown()
