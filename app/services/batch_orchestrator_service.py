"""
Batch orchestration: expand states into city searches, drive them through the
dispatcher at a throttled rate and keep an auditable run record.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.config import BatchSettings
from app.domain.batch import (
    BatchStartResult,
    BatchStatusSnapshot,
    BatchStopResult,
    BatchTask,
    StateProgress,
    StateProgressSnapshot,
    TaskOutcome,
)
from app.domain.errors import BatchAlreadyRunningError, EnrichmentAlreadyRunningError
from app.scraping.logging_utils import log_event
from app.scraping.storage.base import ScrapeStore
from app.scraping.targets import TargetList
from app.services.enrichment_service import EnrichmentService
from app.services.search_dispatcher_service import SearchDispatcherService
from db.models.batch_run import BatchRunStatus
from db.models.scrape_job import ScrapeJobStatus

logger = logging.getLogger(__name__)


@dataclass
class _ActiveBatch:
    """
    State for one batch run. In-flight tasks hold a reference to the run they
    were started for, so a later run never sees their updates.
    """

    batch_id: uuid.UUID
    states: list[str]
    queue: deque[BatchTask]
    state_progress: dict[str, StateProgress]
    total_tasks: int
    start_time: datetime
    status: str = BatchRunStatus.RUNNING
    is_running: bool = True
    completed_tasks: int = 0
    failed_tasks: int = 0
    timed_out_tasks: int = 0
    current_state: str | None = None
    current_city: str | None = None
    end_time: datetime | None = None
    in_flight: set[asyncio.Task[None]] = field(default_factory=set)
    stop_requested: asyncio.Event = field(default_factory=asyncio.Event)
    drain_task: asyncio.Task[None] | None = None

    @property
    def remaining_tasks(self) -> int:
        return max(0, self.total_tasks - self.completed_tasks - self.failed_tasks)


@dataclass(frozen=True)
class _TaskResult:
    outcome: str
    error_message: str | None = None


class BatchOrchestratorService:
    """
    Owns at most one running batch at a time.

    All counters are mutated from coroutines on the owning event loop, so no
    locking is needed. Persistence of run bookkeeping is best effort: failures
    are logged and the in-memory state machine carries on.
    """

    def __init__(
        self,
        *,
        store: ScrapeStore,
        dispatcher: SearchDispatcherService,
        targets: TargetList,
        settings: BatchSettings,
        enrichment: EnrichmentService | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.targets = targets
        self.settings = settings
        self.enrichment = enrichment
        self._active: _ActiveBatch | None = None

    @property
    def is_running(self) -> bool:
        return self._active is not None and self._active.is_running

    async def start_batch(self, states: Iterable[str] | None = None) -> BatchStartResult:
        if self._active is not None and self._active.is_running:
            raise BatchAlreadyRunningError(self._active.batch_id)

        selected = self.targets.resolve_states(states)
        tasks = self.targets.build_tasks(selected, self.settings.business_type)
        state_progress = {
            state: StateProgress(total_cities=len(self.targets.cities(state)))
            for state in selected
        }
        run = _ActiveBatch(
            batch_id=uuid.uuid4(),
            states=selected,
            queue=deque(tasks),
            state_progress=state_progress,
            total_tasks=len(tasks),
            start_time=datetime.now(timezone.utc),
        )
        # Claimed before any await so a concurrent start sees the running batch.
        self._active = run

        try:
            await self.store.insert_batch_run(
                run.batch_id,
                start_time=run.start_time,
                total_tasks=run.total_tasks,
                states=run.states,
            )
        except Exception:
            logger.exception("Failed to persist batch run %s", run.batch_id)
        for state in selected:
            await self._persist_state_progress(run, state)

        log_event(
            logger,
            logging.INFO,
            "batch_started",
            batch_id=run.batch_id,
            states=len(selected),
            total_tasks=run.total_tasks,
            business_type=self.settings.business_type,
        )
        run.drain_task = asyncio.get_running_loop().create_task(
            self._drain(run),
            name=f"batch-{run.batch_id}",
        )
        return BatchStartResult(
            batch_id=run.batch_id,
            total_states=len(selected),
            total_cities=run.total_tasks,
            states=list(selected),
        )

    async def stop(self) -> BatchStopResult:
        """
        Stop the running batch. Queued tasks are dropped; in-flight ones finish
        and are still counted against this run.
        """

        run = self._active
        if run is None or not run.is_running:
            return BatchStopResult(stopped=False)

        remaining = run.remaining_tasks
        run.is_running = False
        run.status = BatchRunStatus.STOPPED
        run.end_time = datetime.now(timezone.utc)
        run.queue.clear()
        run.stop_requested.set()

        await self._persist_run(run)
        log_event(
            logger,
            logging.INFO,
            "batch_stopped",
            batch_id=run.batch_id,
            completed_tasks=run.completed_tasks,
            failed_tasks=run.failed_tasks,
            remaining_tasks=remaining,
        )
        return BatchStopResult(
            stopped=True,
            completed_tasks=run.completed_tasks,
            remaining_tasks=remaining,
        )

    def get_status(self) -> BatchStatusSnapshot:
        run = self._active
        if run is None:
            return BatchStatusSnapshot(
                batch_id=None,
                is_running=False,
                status=None,
                total_tasks=0,
                completed_tasks=0,
                failed_tasks=0,
                timed_out_tasks=0,
                remaining_tasks=0,
                current_state=None,
                current_city=None,
                progress=0.0,
            )

        finished = run.completed_tasks + run.failed_tasks
        return BatchStatusSnapshot(
            batch_id=run.batch_id,
            is_running=run.is_running,
            status=run.status,
            total_tasks=run.total_tasks,
            completed_tasks=run.completed_tasks,
            failed_tasks=run.failed_tasks,
            timed_out_tasks=run.timed_out_tasks,
            remaining_tasks=run.remaining_tasks,
            current_state=run.current_state,
            current_city=run.current_city,
            progress=(finished / run.total_tasks) if run.total_tasks else 0.0,
            start_time=run.start_time,
            end_time=run.end_time,
            state_progress={
                state: StateProgressSnapshot(
                    total_cities=progress.total_cities,
                    completed_cities=progress.completed_cities,
                    failed_cities=progress.failed_cities,
                    in_progress=progress.in_progress,
                    last_updated=progress.last_updated,
                )
                for state, progress in run.state_progress.items()
            },
        )

    async def wait_until_idle(self) -> BatchStatusSnapshot:
        """Wait for the current run's drain loop, including in-flight tasks."""
        run = self._active
        if run is not None and run.drain_task is not None:
            await asyncio.shield(run.drain_task)
        return self.get_status()

    async def close(self) -> None:
        run = self._active
        if run is None or run.drain_task is None or run.drain_task.done():
            return
        run.drain_task.cancel()
        for task in list(run.in_flight):
            task.cancel()
        await asyncio.gather(run.drain_task, *run.in_flight, return_exceptions=True)

    # -- drain loop ----------------------------------------------------------

    async def _drain(self, run: _ActiveBatch) -> None:
        limit = self.settings.max_concurrent_tasks
        while run.is_running and run.queue:
            while run.is_running and run.queue and len(run.in_flight) < limit:
                task = run.queue.popleft()
                in_flight = asyncio.get_running_loop().create_task(self._run_task(run, task))
                run.in_flight.add(in_flight)
            if not run.in_flight:
                break

            done, _ = await asyncio.wait(run.in_flight, return_when=asyncio.FIRST_COMPLETED)
            run.in_flight.difference_update(done)

            if run.is_running and run.queue:
                await self._pause(run, self.settings.wait_between_tasks_seconds)

        if run.in_flight:
            await asyncio.gather(*run.in_flight, return_exceptions=True)
            run.in_flight.clear()

        if run.is_running:
            await self._complete(run)

    async def _pause(self, run: _ActiveBatch, seconds: float) -> None:
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(run.stop_requested.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_task(self, run: _ActiveBatch, task: BatchTask) -> None:
        progress = run.state_progress[task.state]
        progress.running += 1
        progress.touch()
        run.current_state = task.state
        run.current_city = task.city
        logger.info(
            "Batch %s: starting %s, %s (%d remaining)",
            run.batch_id,
            task.city,
            task.state,
            run.remaining_tasks,
        )

        try:
            job_id = await self.dispatcher.submit(
                task.search_term,
                max_results=self.settings.max_results_per_city,
            )
            result = await self._await_job(job_id)
        except Exception as exc:
            result = _TaskResult(TaskOutcome.FAILED, str(exc) or exc.__class__.__name__)
        finally:
            progress.running -= 1

        await self._record_result(run, task, result)

    async def _await_job(self, job_id: uuid.UUID) -> _TaskResult:
        for attempt in range(1, self.settings.max_polls + 1):
            if self.settings.poll_interval_seconds > 0:
                await asyncio.sleep(self.settings.poll_interval_seconds)
            try:
                job = await self.dispatcher.get_status(job_id)
            except Exception as exc:
                logger.warning("Polling job %s failed (poll %d): %s", job_id, attempt, exc)
                continue

            if job is None:
                return _TaskResult(TaskOutcome.FAILED, f"Job {job_id} not found")
            if job.status == ScrapeJobStatus.COMPLETED:
                return _TaskResult(TaskOutcome.COMPLETED)
            if job.status == ScrapeJobStatus.FAILED:
                return _TaskResult(TaskOutcome.FAILED, job.error_message or "Job failed")

        return _TaskResult(TaskOutcome.TIMED_OUT)

    async def _record_result(self, run: _ActiveBatch, task: BatchTask, result: _TaskResult) -> None:
        progress = run.state_progress[task.state]

        if result.outcome == TaskOutcome.FAILED:
            run.failed_tasks += 1
            progress.failed_cities += 1
            log_event(
                logger,
                logging.ERROR,
                "batch_task_failed",
                batch_id=run.batch_id,
                state=task.state,
                city=task.city,
                error=result.error_message,
            )
            try:
                await self.store.insert_task_failure(
                    run.batch_id,
                    state=task.state,
                    city=task.city,
                    error_message=result.error_message,
                )
            except Exception:
                logger.exception("Failed to record task failure for %s, %s", task.city, task.state)
        else:
            run.completed_tasks += 1
            progress.completed_cities += 1
            if result.outcome == TaskOutcome.TIMED_OUT:
                run.timed_out_tasks += 1
                log_event(
                    logger,
                    logging.WARNING,
                    "batch_task_timed_out",
                    batch_id=run.batch_id,
                    state=task.state,
                    city=task.city,
                    max_polls=self.settings.max_polls,
                )
            else:
                logger.info("Batch %s: completed %s, %s", run.batch_id, task.city, task.state)

        progress.touch()
        await self._persist_state_progress(run, task.state)
        await self._persist_run(run)

    async def _complete(self, run: _ActiveBatch) -> None:
        run.status = BatchRunStatus.COMPLETED
        run.end_time = datetime.now(timezone.utc)
        run.current_state = None
        run.current_city = None
        for progress in run.state_progress.values():
            progress.running = 0

        await self._persist_run(run)
        run.is_running = False
        log_event(
            logger,
            logging.INFO,
            "batch_completed",
            batch_id=run.batch_id,
            total_tasks=run.total_tasks,
            completed_tasks=run.completed_tasks,
            failed_tasks=run.failed_tasks,
            timed_out_tasks=run.timed_out_tasks,
        )

        if self.settings.auto_enrich and self.enrichment is not None:
            await self._trigger_enrichment(run)

    async def _trigger_enrichment(self, run: _ActiveBatch) -> None:
        try:
            queued = await self.enrichment.start_sweep()
        except EnrichmentAlreadyRunningError:
            logger.info("Batch %s: email sweep already running; not starting another", run.batch_id)
        except Exception:
            logger.exception("Batch %s: failed to start email sweep", run.batch_id)
        else:
            logger.info("Batch %s: queued %d businesses for email discovery", run.batch_id, queued)

    # -- best-effort persistence ---------------------------------------------

    async def _persist_run(self, run: _ActiveBatch) -> None:
        try:
            await self.store.update_batch_run(
                run.batch_id,
                status=run.status,
                completed_tasks=run.completed_tasks,
                failed_tasks=run.failed_tasks,
                timed_out_tasks=run.timed_out_tasks,
                end_time=run.end_time,
            )
        except Exception:
            logger.exception("Failed to persist batch run %s", run.batch_id)

    async def _persist_state_progress(self, run: _ActiveBatch, state: str) -> None:
        progress = run.state_progress[state]
        try:
            await self.store.upsert_state_progress(
                run.batch_id,
                state,
                total_cities=progress.total_cities,
                completed_cities=progress.completed_cities,
                failed_cities=progress.failed_cities,
            )
        except Exception:
            logger.exception("Failed to persist progress for %s in batch %s", state, run.batch_id)
