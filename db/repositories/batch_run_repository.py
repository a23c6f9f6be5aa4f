"""
Repository for batch runs, their per-state progress and task failures.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.models.batch_run import (
    BatchRun,
    BatchRunStatus,
    BatchStateProgress,
    BatchTaskFailure,
)


class BatchRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_run(
        self,
        *,
        batch_id: uuid.UUID,
        start_time: datetime,
        total_tasks: int,
        states: list[str],
    ) -> BatchRun:
        run = BatchRun(
            id=batch_id,
            status=BatchRunStatus.RUNNING,
            start_time=start_time,
            total_tasks=total_tasks,
            completed_tasks=0,
            failed_tasks=0,
            timed_out_tasks=0,
            states=list(states),
        )
        self._session.add(run)
        self._session.flush()
        return run

    def get_run(self, batch_id: uuid.UUID) -> BatchRun | None:
        return self._session.get(BatchRun, batch_id)

    def update_run(
        self,
        *,
        batch_id: uuid.UUID,
        status: str,
        completed_tasks: int,
        failed_tasks: int,
        timed_out_tasks: int = 0,
        end_time: datetime | None = None,
    ) -> BatchRun | None:
        run = self.get_run(batch_id)
        if run is None:
            return None
        run.status = status
        run.completed_tasks = completed_tasks
        run.failed_tasks = failed_tasks
        run.timed_out_tasks = timed_out_tasks
        if end_time is not None:
            run.end_time = end_time
        return run

    def stop_running_runs(self) -> int:
        """Mark every run still flagged running as stopped; returns the row count."""
        stmt = (
            update(BatchRun)
            .where(BatchRun.status == BatchRunStatus.RUNNING)
            .values(status=BatchRunStatus.STOPPED, end_time=datetime.now(timezone.utc))
        )
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)

    def upsert_state_progress(
        self,
        *,
        batch_id: uuid.UUID,
        state: str,
        total_cities: int,
        completed_cities: int,
        failed_cities: int,
    ) -> None:
        now = datetime.now(timezone.utc)
        stmt = insert(BatchStateProgress).values(
            batch_id=batch_id,
            state=state,
            total_cities=total_cities,
            completed_cities=completed_cities,
            failed_cities=failed_cities,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["batch_id", "state"],
            set_={
                "total_cities": stmt.excluded.total_cities,
                "completed_cities": stmt.excluded.completed_cities,
                "failed_cities": stmt.excluded.failed_cities,
                "last_updated": stmt.excluded.last_updated,
            },
        )
        self._session.execute(stmt)

    def list_state_progress(self, batch_id: uuid.UUID) -> list[BatchStateProgress]:
        stmt = (
            select(BatchStateProgress)
            .where(BatchStateProgress.batch_id == batch_id)
            .order_by(BatchStateProgress.state)
        )
        return list(self._session.scalars(stmt).all())

    def add_task_failure(
        self,
        *,
        batch_id: uuid.UUID,
        state: str,
        city: str,
        error_message: str | None,
    ) -> BatchTaskFailure:
        failure = BatchTaskFailure(
            batch_id=batch_id,
            state=state,
            city=city,
            error_message=error_message,
            failure_time=datetime.now(timezone.utc),
        )
        self._session.add(failure)
        self._session.flush()
        return failure
