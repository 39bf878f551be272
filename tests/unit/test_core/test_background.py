"""Tests for the bounded background task runner."""

import asyncio
import uuid

import pytest

from wastecollect_api.core.background import BoundedTaskRunner


class TestBoundedTaskRunner:
    """Tests for BoundedTaskRunner."""

    def test_rejects_non_positive_pool_size(self) -> None:
        async def handler(job_id: uuid.UUID) -> None:
            pass

        with pytest.raises(ValueError, match="at least 1"):
            BoundedTaskRunner(handler, pool_size=0)

    async def test_submit_returns_before_handler_runs(self) -> None:
        started = asyncio.Event()

        async def handler(job_id: uuid.UUID) -> None:
            started.set()

        runner = BoundedTaskRunner(handler, pool_size=1)
        runner.submit(uuid.uuid4())

        assert not started.is_set()
        await runner.drain()
        assert started.is_set()

    async def test_handler_receives_job_id(self) -> None:
        seen: list[uuid.UUID] = []

        async def handler(job_id: uuid.UUID) -> None:
            seen.append(job_id)

        runner = BoundedTaskRunner(handler, pool_size=2)
        ids = [uuid.uuid4() for _ in range(3)]
        for job_id in ids:
            runner.submit(job_id)
        await runner.drain()

        assert sorted(seen) == sorted(ids)

    async def test_concurrency_never_exceeds_pool_size(self) -> None:
        running = 0
        peak = 0
        release = asyncio.Event()

        async def handler(job_id: uuid.UUID) -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await release.wait()
            running -= 1

        runner = BoundedTaskRunner(handler, pool_size=2)
        for _ in range(5):
            runner.submit(uuid.uuid4())

        await asyncio.sleep(0.05)
        assert runner.active == 2
        assert runner.pending == 5

        release.set()
        await runner.drain()
        assert peak == 2
        assert runner.active == 0
        assert runner.pending == 0

    async def test_failing_handler_does_not_break_pool(self) -> None:
        completed: list[uuid.UUID] = []

        async def handler(job_id: uuid.UUID) -> None:
            if not completed:
                completed.append(job_id)
                msg = "boom"
                raise RuntimeError(msg)
            completed.append(job_id)

        runner = BoundedTaskRunner(handler, pool_size=1)
        runner.submit(uuid.uuid4())
        runner.submit(uuid.uuid4())
        await runner.drain()

        assert len(completed) == 2

    async def test_closed_runner_rejects_submissions(self) -> None:
        async def handler(job_id: uuid.UUID) -> None:
            pass

        runner = BoundedTaskRunner(handler, pool_size=1)
        runner.close()

        with pytest.raises(RuntimeError, match="closed"):
            runner.submit(uuid.uuid4())

    async def test_drain_waits_for_queued_jobs(self) -> None:
        done: list[uuid.UUID] = []

        async def handler(job_id: uuid.UUID) -> None:
            await asyncio.sleep(0.01)
            done.append(job_id)

        runner = BoundedTaskRunner(handler, pool_size=1)
        for _ in range(3):
            runner.submit(uuid.uuid4())
        runner.close()
        await runner.drain()

        assert len(done) == 3
