"""Background task runner abstraction.

Provides a protocol for handing report jobs to background execution, with
an in-process asyncio implementation bounded by a fixed number of slots.
The runner tracks no job status; callers observe progress by reading the
job record.
Enables a future swap to Celery/ARQ without service layer changes.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from loguru import logger

JobHandler = Callable[[uuid.UUID], Awaitable[Any]]


class BackgroundTaskRunner(Protocol):
    """Protocol for background job execution."""

    def submit(self, job_id: uuid.UUID) -> None:
        """Schedule a job for background execution and return immediately.

        Args:
            job_id: Id of a persisted job to execute.
        """
        ...


class BoundedTaskRunner:
    """In-process runner executing at most ``pool_size`` jobs at once.

    Each submission becomes an asyncio task that waits for a free slot,
    then runs the handler. Submissions beyond the pool size queue on the
    semaphore. There is no cancellation: ``drain`` waits for every task.

    Args:
        handler: Coroutine function executing one job end-to-end.
        pool_size: Number of concurrent execution slots.
    """

    def __init__(self, handler: JobHandler, *, pool_size: int) -> None:
        if pool_size < 1:
            msg = "pool_size must be at least 1"
            raise ValueError(msg)
        self._handler = handler
        self._pool_size = pool_size
        self._slots = asyncio.Semaphore(pool_size)
        self._tasks: set[asyncio.Task[None]] = set()
        self._active = 0
        self._closed = False

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def active(self) -> int:
        """Number of jobs currently holding a slot."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of submitted jobs not yet finished (running or queued)."""
        return len(self._tasks)

    def submit(self, job_id: uuid.UUID) -> None:
        """Schedule a job; returns before the job starts.

        Raises:
            RuntimeError: If the runner has been closed.
        """
        if self._closed:
            msg = "Task runner is closed and no longer accepts jobs"
            raise RuntimeError(msg)
        task = asyncio.create_task(self._run(job_id), name=f"report-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job_id: uuid.UUID) -> None:
        async with self._slots:
            self._active += 1
            try:
                await self._handler(job_id)
            except Exception:
                # Handlers record failures on the job; this only guards the pool
                logger.exception("Background job {} raised out of its handler", job_id)
            finally:
                self._active -= 1

    def close(self) -> None:
        """Stop accepting new submissions."""
        self._closed = True

    async def drain(self) -> None:
        """Wait until every submitted job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
