"""Bounded asyncio worker pool for background extraction jobs."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable]


class ProcessingPool:
    """Fixed number of workers draining a bounded queue.

    When the queue is full the submitter runs the job itself instead of
    dropping it, so saturation slows the caller down rather than losing work.
    """

    def __init__(self, size: int, capacity: int) -> None:
        self._size = size
        self._queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=capacity)
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [asyncio.create_task(self._worker(i)) for i in range(self._size)]
        logger.info("Processing pool started: workers=%d capacity=%d", self._size, self._queue.maxsize)

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Processing pool stopped (%d job(s) left queued)", self._queue.qsize())

    async def submit(self, job: Job) -> None:
        if not self._workers:
            await self._run(job)
            return
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning("Processing queue full; running job in caller")
            await self._run(job)

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    @staticmethod
    async def _run(job: Job) -> None:
        try:
            await job()
        except Exception:
            logger.exception("Background job failed")
