"""
app/services package marker.
"""

from app.services.batch_orchestrator_service import BatchOrchestratorService
from app.services.enrichment_service import EnrichmentService
from app.services.scrape_runtime import ScrapeRuntime, build_scrape_runtime
from app.services.search_dispatcher_service import SearchDispatcherService

__all__ = [
    "BatchOrchestratorService",
    "EnrichmentService",
    "ScrapeRuntime",
    "SearchDispatcherService",
    "build_scrape_runtime",
]
