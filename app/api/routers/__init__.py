"""
app/api/routers package marker.
"""

from app.api.routers.batches import router as batches_router
from app.api.routers.enrichment import router as enrichment_router
from app.api.routers.search_jobs import router as search_jobs_router

__all__ = [
    "batches_router",
    "enrichment_router",
    "search_jobs_router",
]
