"""
Schema for the service health endpoint.
"""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    pending_jobs: int
    running_jobs: int
    batch_running: bool
    enrichment_running: bool
