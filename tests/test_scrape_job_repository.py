"""
tests/test_scrape_job_repository.py

Status transition rules of ScrapeJobRepository.update_status, run against a
session stub so no database is needed.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import db.models  # noqa: F401  registers every mapper before instances are built
from db.models.scrape_job import ScrapeJob, ScrapeJobStatus
from db.repositories.scrape_job_repository import ScrapeJobRepository

STARTED = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)
FINISHED = STARTED + timedelta(minutes=4)


class _SessionStub:
    def __init__(self, job: ScrapeJob) -> None:
        self.job = job

    def get(self, model, job_id):
        return self.job if job_id == self.job.id else None


def _job(status: str, **fields) -> ScrapeJob:
    return ScrapeJob(
        id=uuid.uuid4(),
        search_term="Plumber - Austin - Texas",
        status=status,
        businesses_found=fields.pop("businesses_found", 0),
        **fields,
    )


class TestUpdateStatus:
    def test_running_stamps_started_at(self) -> None:
        job = _job(ScrapeJobStatus.PENDING)
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.RUNNING, businesses_found=0)

        assert job.status == ScrapeJobStatus.RUNNING
        assert job.started_at is not None
        assert job.completed_at is None

    def test_progress_flush_keeps_started_at(self) -> None:
        job = _job(ScrapeJobStatus.RUNNING, started_at=STARTED)
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.RUNNING, businesses_found=12)

        assert job.started_at == STARTED
        assert job.businesses_found == 12

    def test_failure_stamps_completed_at_and_message(self) -> None:
        job = _job(ScrapeJobStatus.RUNNING, started_at=STARTED)
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.FAILED, error_message="feed did not load")

        assert job.status == ScrapeJobStatus.FAILED
        assert job.completed_at is not None
        assert job.error_message == "feed did not load"

    def test_late_running_write_does_not_reopen_completed_job(self) -> None:
        job = _job(
            ScrapeJobStatus.COMPLETED,
            started_at=STARTED,
            completed_at=FINISHED,
            businesses_found=9,
        )
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.RUNNING, businesses_found=4)

        assert job.status == ScrapeJobStatus.COMPLETED
        assert job.started_at == STARTED
        assert job.completed_at == FINISHED
        assert job.businesses_found == 9

    def test_failed_job_cannot_become_completed(self) -> None:
        job = _job(ScrapeJobStatus.FAILED, completed_at=FINISHED, error_message="boom")
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.COMPLETED, businesses_found=3)

        assert job.status == ScrapeJobStatus.FAILED
        assert job.error_message == "boom"
        assert job.businesses_found == 0

    def test_repeating_terminal_status_only_updates_counts(self) -> None:
        job = _job(ScrapeJobStatus.COMPLETED, completed_at=FINISHED, businesses_found=2)
        repo = ScrapeJobRepository(_SessionStub(job))

        repo.update_status(job_id=job.id, status=ScrapeJobStatus.COMPLETED, businesses_found=5)

        assert job.businesses_found == 5
        assert job.completed_at == FINISHED

    def test_unknown_job_returns_none(self) -> None:
        job = _job(ScrapeJobStatus.PENDING)
        repo = ScrapeJobRepository(_SessionStub(job))

        assert repo.update_status(job_id=uuid.uuid4(), status=ScrapeJobStatus.RUNNING) is None
