"""
Event-driven admission of queued scrape jobs.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass

from app.scraping.worker import SearchJobWorker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _QueuedJob:
    job_id: uuid.UUID
    search_term: str
    max_results: int | None = None


class ConcurrencyScheduler:
    """
    FIFO queue of jobs with at most `max_concurrent_jobs` running.

    A finished job's done-callback admits the next one, so there is no
    polling loop. Must be used from within a running event loop.
    """

    def __init__(self, *, worker: SearchJobWorker, max_concurrent_jobs: int) -> None:
        self.worker = worker
        self.max_concurrent_jobs = max(1, max_concurrent_jobs)
        self._pending: deque[_QueuedJob] = deque()
        self._running: dict[uuid.UUID, asyncio.Task[str]] = {}
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running_count(self) -> int:
        return len(self._running)

    def enqueue(
        self,
        job_id: uuid.UUID,
        search_term: str,
        *,
        max_results: int | None = None,
    ) -> None:
        if self._closed:
            raise RuntimeError("Scheduler is closed.")
        self._pending.append(_QueuedJob(job_id, search_term, max_results))
        self._idle.clear()
        self._admit()

    def _admit(self) -> None:
        while self._pending and len(self._running) < self.max_concurrent_jobs:
            queued = self._pending.popleft()
            task = asyncio.get_running_loop().create_task(
                self.worker.run(queued.job_id, queued.search_term, max_results=queued.max_results),
                name=f"scrape-job-{queued.job_id}",
            )
            self._running[queued.job_id] = task
            task.add_done_callback(lambda done, job_id=queued.job_id: self._on_done(job_id, done))
            logger.debug(
                "Admitted job %s (running=%d pending=%d)",
                queued.job_id,
                len(self._running),
                len(self._pending),
            )

    def _on_done(self, job_id: uuid.UUID, task: asyncio.Task[str]) -> None:
        self._running.pop(job_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Job %s crashed outside the worker", job_id, exc_info=task.exception())
        if not self._closed:
            self._admit()
        if not self._pending and not self._running:
            self._idle.set()

    async def join(self) -> None:
        """Wait until nothing is queued or running."""
        await self._idle.wait()

    async def close(self) -> None:
        """Drop queued jobs and cancel running ones."""
        self._closed = True
        self._pending.clear()
        tasks = list(self._running.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._idle.set()
