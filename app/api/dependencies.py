"""
app/api/dependencies.py

Shared FastAPI dependencies resolving the process-wide scrape runtime.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.batch_orchestrator_service import BatchOrchestratorService
from app.services.enrichment_service import EnrichmentService
from app.services.scrape_runtime import ScrapeRuntime
from app.services.search_dispatcher_service import SearchDispatcherService


def get_scrape_runtime(request: Request) -> ScrapeRuntime:
    runtime: ScrapeRuntime | None = getattr(request.app.state, "scrape_runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scrape runtime is not initialised.",
        )
    return runtime


def get_dispatcher(request: Request) -> SearchDispatcherService:
    return get_scrape_runtime(request).dispatcher


def get_batch_orchestrator(request: Request) -> BatchOrchestratorService:
    return get_scrape_runtime(request).orchestrator


def get_enrichment_service(request: Request) -> EnrichmentService:
    return get_scrape_runtime(request).enrichment
