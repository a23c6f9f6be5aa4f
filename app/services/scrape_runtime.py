"""
Wiring of the scrape queue, orchestrator and enrichment services.

One runtime is built per process (API lifespan or CLI run) and shared by every
entry point in it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import (
    BatchSettings,
    EnrichmentSettings,
    ScrapeQueueSettings,
    get_batch_settings,
    get_collaborator_settings,
    get_email_discovery_settings,
    get_enrichment_settings,
    get_scrape_queue_settings,
)
from app.scraping.base import EmailFinder, ListingSource
from app.scraping.registry import build_email_finder, build_listing_source
from app.scraping.scheduler import ConcurrencyScheduler
from app.scraping.storage.base import ScrapeStore
from app.scraping.targets import TargetList
from app.scraping.worker import SearchJobWorker
from app.services.batch_orchestrator_service import BatchOrchestratorService
from app.services.enrichment_service import EnrichmentService
from app.services.search_dispatcher_service import SearchDispatcherService

logger = logging.getLogger(__name__)


@dataclass
class ScrapeRuntime:
    store: ScrapeStore
    scheduler: ConcurrencyScheduler
    dispatcher: SearchDispatcherService
    enrichment: EnrichmentService
    orchestrator: BatchOrchestratorService

    async def close(self) -> None:
        await self.orchestrator.close()
        await self.enrichment.close()
        await self.scheduler.close()
        logger.info("Scrape runtime closed")


def build_scrape_runtime(
    *,
    store: ScrapeStore | None = None,
    listing_source: ListingSource | None = None,
    email_finder: EmailFinder | None = None,
    targets: TargetList | None = None,
    queue_settings: ScrapeQueueSettings | None = None,
    batch_settings: BatchSettings | None = None,
    enrichment_settings: EnrichmentSettings | None = None,
) -> ScrapeRuntime:
    """
    Build the service graph. Anything not passed in comes from environment
    settings and the configured collaborator classes.
    """

    queue_settings = queue_settings or get_scrape_queue_settings()
    batch_settings = batch_settings or get_batch_settings()
    enrichment_settings = enrichment_settings or get_enrichment_settings()

    if store is None:
        from app.scraping.storage.sqlalchemy_storage import SQLAlchemyScrapeStore

        store = SQLAlchemyScrapeStore()
    if listing_source is None:
        listing_source = build_listing_source(get_collaborator_settings())
    if email_finder is None:
        email_finder = build_email_finder(get_collaborator_settings(), get_email_discovery_settings())
    if targets is None:
        targets = TargetList.from_file(batch_settings.targets_path)

    worker = SearchJobWorker(store=store, listing_source=listing_source, settings=queue_settings)
    scheduler = ConcurrencyScheduler(
        worker=worker,
        max_concurrent_jobs=queue_settings.max_concurrent_jobs,
    )
    dispatcher = SearchDispatcherService(
        store=store,
        scheduler=scheduler,
        default_max_results=queue_settings.max_results_per_search,
    )
    enrichment = EnrichmentService(
        store=store,
        email_finder=email_finder,
        settings=enrichment_settings,
    )
    orchestrator = BatchOrchestratorService(
        store=store,
        dispatcher=dispatcher,
        targets=targets,
        settings=batch_settings,
        enrichment=enrichment,
    )
    logger.info(
        "Scrape runtime built: max_concurrent_jobs=%d max_concurrent_tasks=%d states=%d",
        queue_settings.max_concurrent_jobs,
        batch_settings.max_concurrent_tasks,
        len(targets.states),
    )
    return ScrapeRuntime(
        store=store,
        scheduler=scheduler,
        dispatcher=dispatcher,
        enrichment=enrichment,
        orchestrator=orchestrator,
    )
