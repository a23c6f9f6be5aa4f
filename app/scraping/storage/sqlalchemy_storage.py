"""
SQLAlchemy-backed implementation of the scrape store.

Repository calls are synchronous, so each operation runs in a worker thread
with its own session and transaction.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from sqlalchemy.orm import Session

from app.domain.business import BusinessRecord, StoredBusiness
from app.domain.search_job import SearchJobRecord
from app.scraping.storage.base import ScrapeStore
from db.models.scrape_job import ScrapeJob
from db.repositories.batch_run_repository import BatchRunRepository
from db.repositories.business_repository import BusinessRepository
from db.repositories.scrape_job_repository import ScrapeJobRepository
from db.session import SessionLocal

T = TypeVar("T")


def _to_record(job: ScrapeJob) -> SearchJobRecord:
    return SearchJobRecord(
        job_id=job.id,
        search_term=job.search_term,
        status=job.status,
        created_at=job.created_at,
        businesses_found=job.businesses_found,
        started_at=job.started_at,
        completed_at=job.completed_at,
        error_message=job.error_message,
    )


class SQLAlchemyScrapeStore(ScrapeStore):
    """
    Persist scrape state through the db repositories.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def _in_transaction(self, work: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    async def _run(self, work: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._in_transaction, work)

    async def insert_job(self, search_term: str) -> SearchJobRecord:
        return await self._run(
            lambda session: _to_record(ScrapeJobRepository(session).create_job(search_term=search_term))
        )

    async def update_job_status(
        self,
        job_id: uuid.UUID,
        status: str,
        *,
        businesses_found: int | None = None,
        error_message: str | None = None,
    ) -> None:
        await self._run(
            lambda session: ScrapeJobRepository(session).update_status(
                job_id=job_id,
                status=status,
                businesses_found=businesses_found,
                error_message=error_message,
            )
        )

    async def get_job(self, job_id: uuid.UUID) -> SearchJobRecord | None:
        def work(session: Session) -> SearchJobRecord | None:
            job = ScrapeJobRepository(session).get_job(job_id)
            return _to_record(job) if job is not None else None

        return await self._run(work)

    async def list_jobs(self, *, limit: int | None = None) -> list[SearchJobRecord]:
        return await self._run(
            lambda session: [_to_record(job) for job in ScrapeJobRepository(session).list_jobs(limit=limit)]
        )

    async def insert_batch_run(
        self,
        batch_id: uuid.UUID,
        *,
        start_time: datetime,
        total_tasks: int,
        states: list[str],
    ) -> None:
        await self._run(
            lambda session: BatchRunRepository(session).create_run(
                batch_id=batch_id,
                start_time=start_time,
                total_tasks=total_tasks,
                states=states,
            )
        )

    async def update_batch_run(
        self,
        batch_id: uuid.UUID,
        *,
        status: str,
        completed_tasks: int,
        failed_tasks: int,
        timed_out_tasks: int = 0,
        end_time: datetime | None = None,
    ) -> None:
        await self._run(
            lambda session: BatchRunRepository(session).update_run(
                batch_id=batch_id,
                status=status,
                completed_tasks=completed_tasks,
                failed_tasks=failed_tasks,
                timed_out_tasks=timed_out_tasks,
                end_time=end_time,
            )
        )

    async def upsert_state_progress(
        self,
        batch_id: uuid.UUID,
        state: str,
        *,
        total_cities: int,
        completed_cities: int,
        failed_cities: int,
    ) -> None:
        await self._run(
            lambda session: BatchRunRepository(session).upsert_state_progress(
                batch_id=batch_id,
                state=state,
                total_cities=total_cities,
                completed_cities=completed_cities,
                failed_cities=failed_cities,
            )
        )

    async def insert_task_failure(
        self,
        batch_id: uuid.UUID,
        *,
        state: str,
        city: str,
        error_message: str | None,
    ) -> None:
        await self._run(
            lambda session: BatchRunRepository(session).add_task_failure(
                batch_id=batch_id,
                state=state,
                city=city,
                error_message=error_message,
            )
        )

    async def stop_running_batches(self) -> int:
        return await self._run(lambda session: BatchRunRepository(session).stop_running_runs())

    async def insert_business(self, record: BusinessRecord) -> bool:
        values = {
            "name": record.name,
            "email": record.email,
            "address": record.address,
            "city": record.city,
            "country": record.country,
            "website": record.website,
            "domain": record.domain,
            "rating": record.rating,
            "phone": record.phone,
            "owner_name": record.owner_name,
            "search_term": record.search_term,
        }
        return await self._run(lambda session: BusinessRepository(session).insert_if_absent(values))

    async def list_businesses_missing_email(
        self,
        *,
        limit: int | None = None,
    ) -> list[StoredBusiness]:
        def work(session: Session) -> list[StoredBusiness]:
            rows = BusinessRepository(session).list_missing_email(limit=limit)
            return [
                StoredBusiness(
                    business_id=row.id,
                    name=row.name,
                    website=row.website or "",
                    domain=row.domain,
                )
                for row in rows
            ]

        return await self._run(work)

    async def update_business_email(self, business_id: int, email: str) -> None:
        await self._run(
            lambda session: BusinessRepository(session).update_email(business_id=business_id, email=email)
        )
