"""
app/domain package marker.
"""

from app.domain.batch import (
    BatchStartResult,
    BatchStatusSnapshot,
    BatchStopResult,
    BatchTask,
    StateProgress,
)
from app.domain.business import BusinessRecord, StoredBusiness, derive_domain
from app.domain.enrichment import EnrichmentStatus, EnrichmentSummary
from app.domain.search_job import ListingRef, SearchJobRecord

__all__ = [
    "BatchStartResult",
    "BatchStatusSnapshot",
    "BatchStopResult",
    "BatchTask",
    "BusinessRecord",
    "EnrichmentStatus",
    "EnrichmentSummary",
    "ListingRef",
    "SearchJobRecord",
    "StateProgress",
    "StoredBusiness",
    "derive_domain",
]
