"""
app/schemas package marker.
"""

from app.schemas.batches import (
    BatchStartRequest,
    BatchStartResponse,
    BatchStatusResponse,
    BatchStopResponse,
    EnrichmentAcceptedResponse,
    EnrichmentStatusResponse,
)
from app.schemas.health import HealthResponse
from app.schemas.scrape_jobs import (
    SearchJobAcceptedResponse,
    SearchJobListResponse,
    SearchJobRequest,
    SearchJobStatusResponse,
)

__all__ = [
    "BatchStartRequest",
    "BatchStartResponse",
    "BatchStatusResponse",
    "BatchStopResponse",
    "EnrichmentAcceptedResponse",
    "EnrichmentStatusResponse",
    "HealthResponse",
    "SearchJobAcceptedResponse",
    "SearchJobListResponse",
    "SearchJobRequest",
    "SearchJobStatusResponse",
]
