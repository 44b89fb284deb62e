"""Concurrency runtime: worker pool, cancellation tokens and task runtime."""

from codescout.runtime.cancellation import (
    CancellationSource,
    CancellationToken,
    TaskCanceledError,
    TaskTimeoutError,
)
from codescout.runtime.task_runtime import SubagentRuntime, Task
from codescout.runtime.worker_pool import WorkerPool

__all__ = [
    "CancellationSource",
    "CancellationToken",
    "SubagentRuntime",
    "Task",
    "TaskCanceledError",
    "TaskTimeoutError",
    "WorkerPool",
]
