"""
db/models/batch_run.py

Batch run records, per-state progress rows and the task failure log.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class BatchRunStatus:
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"


class BatchRun(Base, TimestampMixin):
    __tablename__ = "batch_runs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BatchRunStatus.RUNNING,
        comment="running, completed, stopped",
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    total_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_tasks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timed_out_tasks: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Tasks whose polling window elapsed; also counted as completed",
    )
    states: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    __table_args__ = (
        Index("ix_batch_runs_status", "status"),
        Index("ix_batch_runs_start_time", "start_time"),
    )


class BatchStateProgress(Base):
    __tablename__ = "batch_state_progress"

    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("batch_runs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    state: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_cities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_cities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_cities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class BatchTaskFailure(Base):
    __tablename__ = "batch_task_failures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("batch_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    state: Mapped[str] = mapped_column(String(64), nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_batch_task_failures_batch_id", "batch_id"),
    )
