"""Deadline- and cancellation-aware execution of subagent tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from codescout.runtime.cancellation import (
    CancellationSource,
    CancellationToken,
    TaskCanceledError,
    TaskTimeoutError,
)
from codescout.runtime.worker_pool import WorkerPool
from codescout.schemas import TaskError, TaskResult, TaskStatus, TaskTiming

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_MS = 30_000


@dataclass
class Task:
    """One unit of subagent work.

    ``run`` receives the combined cancellation token and must poll it between
    file operations. A Task is consumed by the first ``SubagentRuntime.run``.
    """

    role: str
    run: Callable[[CancellationToken], Awaitable[Any]]
    deadline_ms: int | None = None
    consumed: bool = field(default=False, init=False)


class SubagentRuntime:
    """Runs tasks through a shared WorkerPool and wraps every outcome in a TaskResult."""

    def __init__(
        self,
        worker_pool: WorkerPool | None = None,
        default_deadline_ms: int = DEFAULT_DEADLINE_MS,
    ):
        if default_deadline_ms <= 0:
            raise ValueError("default_deadline_ms must be positive")
        self.worker_pool = worker_pool or WorkerPool()
        self.default_deadline_ms = default_deadline_ms

    async def run(self, task: Task, token: CancellationToken | None = None) -> TaskResult:
        """Execute ``task`` under its deadline and return its outcome.

        Task failures never propagate: timeouts, cancellations and exceptions
        are all reported through the returned TaskResult.

        Args:
            task: Task to execute (consumed)
            token: Optional external cancellation token

        Returns:
            TaskResult with status ok, timeout, canceled or error
        """
        started_at = int(time.time() * 1000)
        start = time.monotonic()

        def _settle(status: TaskStatus, value: Any = None, error: BaseException | None = None) -> TaskResult:
            elapsed_ms = round((time.monotonic() - start) * 1000, 3)
            timing = TaskTiming(started_at=started_at, elapsed_ms=elapsed_ms)
            if status is TaskStatus.OK:
                result = TaskResult(status=status, value=value, timing=timing)
            else:
                result = TaskResult(status=status, error=TaskError.from_exception(error), timing=timing)
            log = logger.warning if status is TaskStatus.ERROR else logger.debug
            log(f"Task {task.role} settled: status={status.value}, elapsed_ms={elapsed_ms}")
            return result

        if task.consumed:
            return _settle(TaskStatus.ERROR, error=RuntimeError(f"Task {task.role} was already run"))
        task.consumed = True

        deadline_ms = task.deadline_ms if task.deadline_ms is not None else self.default_deadline_ms
        controller = CancellationSource()
        combined = CancellationToken.any(token, controller.token)

        work = self.worker_pool.submit(lambda: task.run(combined), combined)
        work.add_done_callback(_consume_outcome)
        timer = asyncio.ensure_future(asyncio.sleep(deadline_ms / 1000))

        try:
            await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)

            if not work.done():
                controller.cancel(f"Deadline of {deadline_ms}ms elapsed")
                return _settle(
                    TaskStatus.TIMEOUT,
                    error=TaskTimeoutError(f"Timed out after {deadline_ms}ms"),
                )

            if work.cancelled():
                return _settle(TaskStatus.CANCELED, error=TaskCanceledError("Aborted"))

            error = work.exception()
            if error is None:
                return _settle(TaskStatus.OK, value=work.result())
            if combined.cancelled or isinstance(error, TaskCanceledError):
                return _settle(TaskStatus.CANCELED, error=error)
            return _settle(TaskStatus.ERROR, error=error)

        except asyncio.CancelledError:
            controller.cancel("Runtime caller was cancelled")
            raise
        finally:
            timer.cancel()
            combined.detach()


def _consume_outcome(future: asyncio.Future) -> None:
    """Mark a late failure as retrieved once the runtime stopped waiting for it."""
    if not future.cancelled():
        future.exception()
