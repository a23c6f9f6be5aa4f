"""
Repository for scrape job lifecycle persistence and status lookup.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.scrape_job import ScrapeJob, ScrapeJobStatus

logger = logging.getLogger(__name__)


class ScrapeJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(self, *, search_term: str) -> ScrapeJob:
        job = ScrapeJob(
            search_term=search_term,
            status=ScrapeJobStatus.PENDING,
            businesses_found=0,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ScrapeJob | None:
        return self._session.get(ScrapeJob, job_id)

    def list_jobs(
        self,
        *,
        limit: int | None = None,
        status: str | None = None,
    ) -> list[ScrapeJob]:
        stmt: Select[tuple[ScrapeJob]] = select(ScrapeJob)
        if status:
            stmt = stmt.where(ScrapeJob.status == status)

        stmt = stmt.order_by(ScrapeJob.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def update_status(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        businesses_found: int | None = None,
        error_message: str | None = None,
    ) -> ScrapeJob | None:
        """
        Apply a status transition, stamping started_at/completed_at as needed.

        Re-applying the current status only refreshes businesses_found, which
        is how the running job's progress counter is flushed. A completed or
        failed job is final: only a repeat of its own status may touch
        businesses_found and error_message, anything else is ignored.
        """
        job = self.get_job(job_id)
        if job is None:
            return None

        if job.status in ScrapeJobStatus.TERMINAL:
            if status == job.status:
                if businesses_found is not None:
                    job.businesses_found = businesses_found
                if error_message is not None:
                    job.error_message = error_message
            else:
                logger.warning(
                    "Ignoring %s update for job %s already %s",
                    status,
                    job_id,
                    job.status,
                )
            return job

        now = datetime.now(timezone.utc)
        if status == ScrapeJobStatus.RUNNING and job.status != ScrapeJobStatus.RUNNING:
            job.started_at = now
        elif status in ScrapeJobStatus.TERMINAL:
            job.completed_at = now

        job.status = status
        if businesses_found is not None:
            job.businesses_found = businesses_found
        if error_message is not None:
            job.error_message = error_message
        return job
