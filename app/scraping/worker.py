"""
Execution of one scrape job: search, fan out detail extraction, persist.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from app.config import ScrapeQueueSettings
from app.domain.business import BusinessRecord
from app.domain.search_job import ListingRef
from app.scraping.base import DetailSession, ListingSource
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.resources import (
    available_memory_mb,
    chunk_evenly,
    compute_worker_count,
    sub_batches,
)
from app.scraping.storage.base import ScrapeStore
from db.models.scrape_job import ScrapeJobStatus

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class _JobProgress:
    found: int = 0
    inserted: int = 0
    dropped: int = 0
    failed_items: int = 0
    flushed: int = -1


class SearchJobWorker:
    """
    Runs a scrape job end to end and records the outcome on the job row.

    `run` never raises for pipeline errors; they end the job as `failed`.
    """

    def __init__(
        self,
        *,
        store: ScrapeStore,
        listing_source: ListingSource,
        settings: ScrapeQueueSettings,
        memory_probe: Callable[[], float] = available_memory_mb,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.listing_source = listing_source
        self.settings = settings
        self._memory_probe = memory_probe
        self._sleep = sleep

    async def run(
        self,
        job_id: uuid.UUID,
        search_term: str,
        *,
        max_results: int | None = None,
    ) -> str:
        limit = max(1, max_results or self.settings.max_results_per_search)
        progress = _JobProgress()
        started = time.monotonic()

        try:
            await self.store.update_job_status(job_id, ScrapeJobStatus.RUNNING, businesses_found=0)
            log_event(logger, logging.INFO, "scrape_job_started", job_id=job_id, search_term=search_term)

            refs = list(await self.listing_source.search(search_term, limit))[:limit]
            worker_count = compute_worker_count(
                len(refs),
                free_memory_mb=self._memory_probe(),
                max_parallel_workers=self.settings.max_parallel_workers,
                memory_per_worker_mb=self.settings.memory_per_worker_mb,
                items_per_worker=self.settings.items_per_worker,
            )
            logger.info(
                "Job %s found %d listings; using %d detail workers",
                job_id,
                len(refs),
                worker_count,
            )

            if refs:
                await self._process_all(job_id, search_term, refs, worker_count, progress)

            await self.store.update_job_status(
                job_id,
                ScrapeJobStatus.COMPLETED,
                businesses_found=progress.found,
            )
            log_event(
                logger,
                logging.INFO,
                "scrape_job_completed",
                job_id=job_id,
                search_term=search_term,
                listings=len(refs),
                businesses_found=progress.found,
                businesses_inserted=progress.inserted,
                dropped=progress.dropped,
                failed_items=progress.failed_items,
                duration_ms=elapsed_ms(started),
            )
            return ScrapeJobStatus.COMPLETED
        except Exception as exc:
            await self._mark_failed(job_id, search_term, exc, progress)
            return ScrapeJobStatus.FAILED

    async def _process_all(
        self,
        job_id: uuid.UUID,
        search_term: str,
        refs: list[ListingRef],
        worker_count: int,
        progress: _JobProgress,
    ) -> None:
        done = asyncio.Event()
        flusher = asyncio.create_task(self._flush_progress(job_id, progress, done))
        try:
            results = await asyncio.gather(
                *(
                    self._process_chunk(chunk, search_term, progress)
                    for chunk in chunk_evenly(refs, worker_count)
                ),
                return_exceptions=True,
            )
        finally:
            # Let an in-flight flush write land before the final status.
            done.set()
            await flusher

        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _process_chunk(
        self,
        chunk: list[ListingRef],
        search_term: str,
        progress: _JobProgress,
    ) -> None:
        session = await self.listing_source.open_session()
        try:
            for batch in sub_batches(chunk, self.settings.sub_batch_size):
                records = await asyncio.gather(
                    *(self._extract_with_retry(session, ref, search_term) for ref in batch)
                )
                for record in records:
                    if record is None:
                        progress.failed_items += 1
                        continue
                    prepared = record.prepared_for_storage()
                    if prepared is None:
                        progress.dropped += 1
                        continue
                    if await self.store.insert_business(prepared):
                        progress.inserted += 1
                    progress.found += 1
        finally:
            try:
                await session.close()
            except Exception:
                logger.exception("Failed to close detail session")

    async def _extract_with_retry(
        self,
        session: DetailSession,
        ref: ListingRef,
        search_term: str,
    ) -> BusinessRecord | None:
        attempts = self.settings.max_item_attempts
        for attempt in range(1, attempts + 1):
            try:
                record = await session.extract_details(ref, search_term)
                if record is not None and (record.name or "").strip():
                    return record
                reason = "no name extracted"
            except Exception as exc:
                reason = str(exc) or exc.__class__.__name__

            if attempt < attempts:
                logger.debug(
                    "Retrying listing %s (attempt %d/%d): %s",
                    ref.url,
                    attempt,
                    attempts,
                    reason,
                )
                await self._sleep(attempt * self.settings.item_retry_delay_seconds)
            else:
                logger.warning("Giving up on listing %s after %d attempts: %s", ref.url, attempts, reason)
        return None

    async def _flush_progress(
        self,
        job_id: uuid.UUID,
        progress: _JobProgress,
        done: asyncio.Event,
    ) -> None:
        interval = max(self.settings.progress_flush_seconds, 0.01)
        while not done.is_set():
            try:
                await asyncio.wait_for(done.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            if progress.found == progress.flushed:
                continue

            try:
                await self.store.update_job_status(
                    job_id,
                    ScrapeJobStatus.RUNNING,
                    businesses_found=progress.found,
                )
                progress.flushed = progress.found
            except Exception:
                logger.exception("Progress flush failed for job %s", job_id)

    async def _mark_failed(
        self,
        job_id: uuid.UUID,
        search_term: str,
        exc: Exception,
        progress: _JobProgress,
    ) -> None:
        message = str(exc) or exc.__class__.__name__
        log_event(
            logger,
            logging.ERROR,
            "scrape_job_failed",
            job_id=job_id,
            search_term=search_term,
            businesses_found=progress.found,
            error=message,
        )
        try:
            await self.store.update_job_status(
                job_id,
                ScrapeJobStatus.FAILED,
                businesses_found=progress.found,
                error_message=message,
            )
        except Exception:
            logger.exception("Failed to mark job %s as failed", job_id)
