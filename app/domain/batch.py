"""
app/domain/batch.py

Batch orchestration value types.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


class TaskOutcome:
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class BatchTask:
    """
    One (state, city) unit of work and the search term derived from it.
    """

    state: str
    city: str
    search_term: str


@dataclass
class StateProgress:
    """
    Mutable per-state counters owned by one batch run.
    """

    total_cities: int
    completed_cities: int = 0
    failed_cities: int = 0
    running: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def in_progress(self) -> bool:
        return self.running > 0

    def touch(self) -> None:
        self.last_updated = datetime.now(timezone.utc)


@dataclass(frozen=True)
class StateProgressSnapshot:
    total_cities: int
    completed_cities: int
    failed_cities: int
    in_progress: bool
    last_updated: datetime


@dataclass(frozen=True)
class BatchStartResult:
    batch_id: uuid.UUID
    total_states: int
    total_cities: int
    states: list[str]


@dataclass(frozen=True)
class BatchStopResult:
    stopped: bool
    completed_tasks: int = 0
    remaining_tasks: int = 0


@dataclass(frozen=True)
class BatchStatusSnapshot:
    """
    Point-in-time view of the orchestrator, read without touching storage.
    """

    batch_id: uuid.UUID | None
    is_running: bool
    status: str | None
    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    timed_out_tasks: int
    remaining_tasks: int
    current_state: str | None
    current_city: str | None
    progress: float
    start_time: datetime | None = None
    end_time: datetime | None = None
    state_progress: dict[str, StateProgressSnapshot] = field(default_factory=dict)
