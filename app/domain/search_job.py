"""
app/domain/search_job.py

Read models for single-search scrape jobs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SearchJobRecord:
    """
    Snapshot of one persisted scrape job.
    """

    job_id: uuid.UUID
    search_term: str
    status: str
    created_at: datetime
    businesses_found: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ListingRef:
    """
    Opaque handle to one listing returned by a search, resolved later by a
    detail session.
    """

    url: str
    label: str | None = None
