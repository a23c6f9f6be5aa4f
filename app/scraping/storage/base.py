"""
Storage layer interface for scrape jobs, batch runs and business listings.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.business import BusinessRecord, StoredBusiness
from app.domain.search_job import SearchJobRecord


class ScrapeStore(ABC):
    """
    Async storage abstraction shared by the dispatcher, worker, orchestrator
    and enrichment sweep.
    """

    # -- scrape jobs ---------------------------------------------------------

    @abstractmethod
    async def insert_job(self, search_term: str) -> SearchJobRecord:
        """
        Persist a new `pending` job and return it.
        """

    @abstractmethod
    async def update_job_status(
        self,
        job_id: uuid.UUID,
        status: str,
        *,
        businesses_found: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """
        Move a job to `status`; re-applying the same status only updates the
        progress counter.
        """

    @abstractmethod
    async def get_job(self, job_id: uuid.UUID) -> SearchJobRecord | None: ...

    @abstractmethod
    async def list_jobs(self, *, limit: int | None = None) -> list[SearchJobRecord]:
        """
        Return jobs newest first.
        """

    # -- batch runs ----------------------------------------------------------

    @abstractmethod
    async def insert_batch_run(
        self,
        batch_id: uuid.UUID,
        *,
        start_time: datetime,
        total_tasks: int,
        states: list[str],
    ) -> None: ...

    @abstractmethod
    async def update_batch_run(
        self,
        batch_id: uuid.UUID,
        *,
        status: str,
        completed_tasks: int,
        failed_tasks: int,
        timed_out_tasks: int = 0,
        end_time: datetime | None = None,
    ) -> None: ...

    @abstractmethod
    async def upsert_state_progress(
        self,
        batch_id: uuid.UUID,
        state: str,
        *,
        total_cities: int,
        completed_cities: int,
        failed_cities: int,
    ) -> None: ...

    @abstractmethod
    async def insert_task_failure(
        self,
        batch_id: uuid.UUID,
        *,
        state: str,
        city: str,
        error_message: str | None,
    ) -> None: ...

    @abstractmethod
    async def stop_running_batches(self) -> int:
        """
        Mark every persisted `running` batch as `stopped`; returns how many.
        """

    # -- businesses ----------------------------------------------------------

    @abstractmethod
    async def insert_business(self, record: BusinessRecord) -> bool:
        """
        Insert unless (domain, search_term) already exists. Returns True when
        a new row was written.
        """

    @abstractmethod
    async def list_businesses_missing_email(
        self,
        *,
        limit: int | None = None,
    ) -> list[StoredBusiness]: ...

    @abstractmethod
    async def update_business_email(self, business_id: int, email: str) -> None: ...
