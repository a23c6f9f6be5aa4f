"""
Single-search dispatch: create a job row, queue it, return immediately.
"""

from __future__ import annotations

import logging
import uuid

from app.domain.errors import EmptySearchTermError
from app.domain.search_job import SearchJobRecord
from app.scraping.logging_utils import log_event
from app.scraping.scheduler import ConcurrencyScheduler
from app.scraping.storage.base import ScrapeStore
from db.models.scrape_job import ScrapeJobStatus

logger = logging.getLogger(__name__)


class SearchDispatcherService:
    """
    Front door for one-off searches and for batch-generated searches.
    """

    def __init__(
        self,
        *,
        store: ScrapeStore,
        scheduler: ConcurrencyScheduler,
        default_max_results: int,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.default_max_results = default_max_results

    async def submit(self, search_term: str, *, max_results: int | None = None) -> uuid.UUID:
        """
        Persist a `pending` job and queue it.

        Storage errors while creating the job propagate. Anything after that
        is reported through the job's status.
        """

        term = (search_term or "").strip()
        if not term:
            raise EmptySearchTermError()

        job = await self.store.insert_job(term)
        try:
            self.scheduler.enqueue(
                job.job_id,
                term,
                max_results=max_results or self.default_max_results,
            )
        except Exception:
            logger.exception("Failed to queue scrape job %s", job.job_id)
            await self.store.update_job_status(
                job.job_id,
                ScrapeJobStatus.FAILED,
                error_message="Failed to schedule scrape job.",
            )
            raise

        log_event(
            logger,
            logging.INFO,
            "scrape_job_queued",
            job_id=job.job_id,
            search_term=term,
            pending=self.scheduler.pending_count,
            running=self.scheduler.running_count,
        )
        return job.job_id

    async def get_status(self, job_id: uuid.UUID) -> SearchJobRecord | None:
        return await self.store.get_job(job_id)

    async def list_all(self, *, limit: int | None = None) -> list[SearchJobRecord]:
        return await self.store.list_jobs(limit=limit)
