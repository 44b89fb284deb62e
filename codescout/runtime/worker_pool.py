"""Counted admission gate for asynchronous work."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from codescout.runtime.cancellation import CancellationToken, TaskCanceledError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 4

Work = Callable[[], Awaitable[Any]]


@dataclass
class _Job:
    """A unit of work waiting for (or holding) a pool slot."""

    work: Work
    future: asyncio.Future
    token: CancellationToken | None = None


class WorkerPool:
    """Runs at most ``max_concurrent`` jobs at once, queuing the rest FIFO.

    This is not a thread pool: jobs are coroutines on the running event loop
    and the queue and counter are only touched from that loop.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        if isinstance(max_concurrent, bool) or not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ValueError("max_concurrent must be a positive integer")
        self.max_concurrent = max_concurrent
        self._active = 0
        self._queue: deque[_Job] = deque()
        self._running: set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        """Number of jobs currently holding a slot."""
        return self._active

    @property
    def queued(self) -> int:
        """Number of jobs waiting for a slot."""
        return len(self._queue)

    def submit(self, work: Work, token: CancellationToken | None = None) -> asyncio.Future:
        """Queue ``work`` and return a future for its eventual value.

        A token that is already tripped, either now or when the job reaches
        the head of the queue, rejects the job with TaskCanceledError without
        calling ``work``.
        """
        if not callable(work):
            raise TypeError("WorkerPool.submit requires a callable")

        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if token is not None and token.cancelled:
            future.set_exception(TaskCanceledError(token.reason or "Aborted"))
            return future

        self._queue.append(_Job(work=work, future=future, token=token))
        self._drain()
        return future

    async def run(self, work: Work, token: CancellationToken | None = None) -> Any:
        """Submit ``work`` and wait for its result."""
        return await self.submit(work, token)

    def _drain(self) -> None:
        while self._active < self.max_concurrent and self._queue:
            job = self._queue.popleft()
            if job.future.done():
                # Caller stopped waiting while the job was queued
                continue
            if job.token is not None and job.token.cancelled:
                job.future.set_exception(TaskCanceledError(job.token.reason or "Aborted"))
                continue

            self._active += 1
            task = asyncio.ensure_future(self._execute(job))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _execute(self, job: _Job) -> None:
        try:
            value = await job.work()
        except asyncio.CancelledError:
            if not job.future.done():
                job.future.cancel()
            raise
        except Exception as e:
            if not job.future.done():
                job.future.set_exception(e)
        else:
            if not job.future.done():
                job.future.set_result(value)
        finally:
            self._active -= 1
            logger.debug(f"Job finished: active={self._active}, queued={len(self._queue)}")
            self._drain()
