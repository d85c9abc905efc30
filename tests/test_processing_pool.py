"""Tests for the background processing pool."""

import asyncio

import pytest

from tradeintel.services.processing_pool import ProcessingPool


class TestProcessingPool:
    @pytest.mark.asyncio
    async def test_runs_inline_when_not_started(self):
        pool = ProcessingPool(size=2, capacity=10)
        ran = []

        async def job():
            ran.append(1)

        await pool.submit(job)
        assert ran == [1]
        assert pool.running is False

    @pytest.mark.asyncio
    async def test_workers_drain_queue(self):
        pool = ProcessingPool(size=2, capacity=10)
        pool.start()
        ran = []

        async def make(i):
            ran.append(i)

        try:
            for i in range(5):
                await pool.submit(lambda i=i: make(i))
            await pool.join()
        finally:
            await pool.stop()

        assert sorted(ran) == [0, 1, 2, 3, 4]
        assert pool.running is False

    @pytest.mark.asyncio
    async def test_failing_job_does_not_kill_worker(self):
        pool = ProcessingPool(size=1, capacity=10)
        pool.start()
        ran = []

        async def bad():
            raise RuntimeError("boom")

        async def good():
            ran.append("ok")

        try:
            await pool.submit(bad)
            await pool.submit(good)
            await pool.join()
        finally:
            await pool.stop()

        assert ran == ["ok"]

    @pytest.mark.asyncio
    async def test_full_queue_runs_in_caller(self):
        pool = ProcessingPool(size=1, capacity=1)
        pool.start()
        release = asyncio.Event()
        started = asyncio.Event()
        ran = []

        async def blocker():
            started.set()
            await release.wait()

        async def queued():
            ran.append("queued")

        async def overflow():
            ran.append("overflow")

        try:
            await pool.submit(blocker)
            await started.wait()
            await pool.submit(queued)
            assert pool.pending == 1
            # queue is full: this one runs before submit returns
            await pool.submit(overflow)
            assert ran == ["overflow"]
            release.set()
            await pool.join()
        finally:
            await pool.stop()

        assert ran == ["overflow", "queued"]
