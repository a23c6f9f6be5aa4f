"""
Schemas for single-search submission and job status endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.search_job import SearchJobRecord


class SearchJobRequest(BaseModel):
    search_term: str = Field(..., description="Free-text map search, e.g. 'Plumber - Austin - Texas'")
    max_results: int | None = Field(default=None, ge=1, le=1000)


class SearchJobAcceptedResponse(BaseModel):
    job_id: UUID
    status: str
    max_results: int


class SearchJobStatusResponse(BaseModel):
    job_id: UUID
    search_term: str
    status: str
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    businesses_found: int = 0
    error_message: str | None = None

    @classmethod
    def from_record(cls, record: SearchJobRecord) -> "SearchJobStatusResponse":
        return cls(
            job_id=record.job_id,
            search_term=record.search_term,
            status=record.status,
            created_at=record.created_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
            businesses_found=record.businesses_found,
            error_message=record.error_message,
        )


class SearchJobListResponse(BaseModel):
    jobs: list[SearchJobStatusResponse] = Field(default_factory=list)
