"""
Schemas for batch orchestration and enrichment endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.batch import BatchStatusSnapshot
from app.domain.enrichment import EnrichmentStatus, EnrichmentSummary


class BatchStartRequest(BaseModel):
    states: list[str] | None = Field(
        default=None,
        description="Optional state filter; omit to run every state in the target list",
    )


class BatchStartResponse(BaseModel):
    batch_id: UUID
    total_states: int
    total_cities: int
    states: list[str]


class BatchStopResponse(BaseModel):
    stopped: bool
    completed_tasks: int = 0
    remaining_tasks: int = 0


class StateProgressResponse(BaseModel):
    total_cities: int
    completed_cities: int
    failed_cities: int
    in_progress: bool
    last_updated: datetime


class BatchStatusResponse(BaseModel):
    batch_id: UUID | None = None
    is_running: bool
    status: str | None = None
    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    timed_out_tasks: int
    remaining_tasks: int
    current_state: str | None = None
    current_city: str | None = None
    progress: float
    start_time: datetime | None = None
    end_time: datetime | None = None
    state_progress: dict[str, StateProgressResponse] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: BatchStatusSnapshot) -> "BatchStatusResponse":
        return cls(
            batch_id=snapshot.batch_id,
            is_running=snapshot.is_running,
            status=snapshot.status,
            total_tasks=snapshot.total_tasks,
            completed_tasks=snapshot.completed_tasks,
            failed_tasks=snapshot.failed_tasks,
            timed_out_tasks=snapshot.timed_out_tasks,
            remaining_tasks=snapshot.remaining_tasks,
            current_state=snapshot.current_state,
            current_city=snapshot.current_city,
            progress=round(snapshot.progress, 4),
            start_time=snapshot.start_time,
            end_time=snapshot.end_time,
            state_progress={
                state: StateProgressResponse(
                    total_cities=progress.total_cities,
                    completed_cities=progress.completed_cities,
                    failed_cities=progress.failed_cities,
                    in_progress=progress.in_progress,
                    last_updated=progress.last_updated,
                )
                for state, progress in snapshot.state_progress.items()
            },
        )


class EnrichmentAcceptedResponse(BaseModel):
    queued: int


class EnrichmentSummaryResponse(BaseModel):
    examined: int
    lookups: int
    emails_found: int
    skipped: int
    failed: int


class EnrichmentStatusResponse(BaseModel):
    is_running: bool
    queued: int
    active_lookups: int
    last_summary: EnrichmentSummaryResponse | None = None

    @classmethod
    def from_status(cls, status: EnrichmentStatus) -> "EnrichmentStatusResponse":
        summary: EnrichmentSummary | None = status.last_summary
        return cls(
            is_running=status.is_running,
            queued=status.queued,
            active_lookups=status.active_lookups,
            last_summary=(
                EnrichmentSummaryResponse(
                    examined=summary.examined,
                    lookups=summary.lookups,
                    emails_found=summary.emails_found,
                    skipped=summary.skipped,
                    failed=summary.failed,
                )
                if summary is not None
                else None
            ),
        )
