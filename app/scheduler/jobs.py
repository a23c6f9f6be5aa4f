"""
app/scheduler/jobs.py

APScheduler wiring for periodic maintenance of the listings store.

Schedule (all times UTC)
--------------------------
  email_sweep: daily at ENRICHMENT_SWEEP_CRON_HOUR:ENRICHMENT_SWEEP_CRON_MINUTE,
                only when ENRICHMENT_SWEEP_CRON_ENABLED is true.

Lifecycle
----------
Call ``build_scheduler(runtime)`` once to get a configured ``AsyncIOScheduler``.
Start it inside the running event loop on app boot; shut it down on app
shutdown. The scheduler is wired into FastAPI via the ``lifespan`` context in
main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import EnrichmentSettings, get_enrichment_settings
from app.domain.errors import EnrichmentAlreadyRunningError
from app.services.scrape_runtime import ScrapeRuntime

logger = logging.getLogger(__name__)


async def run_email_sweep(runtime: ScrapeRuntime) -> None:
    """
    Start an email sweep unless one is already running or a batch is active.
    A finishing batch triggers its own sweep.
    """
    if runtime.orchestrator.is_running:
        logger.info("Scheduler: email_sweep skipped, batch in progress")
        return
    try:
        queued = await runtime.enrichment.start_sweep()
    except EnrichmentAlreadyRunningError:
        logger.info("Scheduler: email_sweep skipped, sweep already running")
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: email_sweep failed to start: %s", exc)
        return
    logger.info("Scheduler: email_sweep queued %d businesses", queued)


def build_scheduler(
    runtime: ScrapeRuntime,
    settings: EnrichmentSettings | None = None,
) -> AsyncIOScheduler:
    """
    Build and register periodic jobs.

    Returns a configured but *not yet started* ``AsyncIOScheduler``.
    """
    settings = settings or get_enrichment_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    if settings.sweep_cron_enabled:
        scheduler.add_job(
            run_email_sweep,
            trigger="cron",
            hour=settings.sweep_cron_hour,
            minute=settings.sweep_cron_minute,
            args=[runtime],
            id="email_sweep",
            name="Daily email discovery sweep",
            replace_existing=True,
            misfire_grace_time=3600,
            coalesce=True,
            max_instances=1,
        )

    return scheduler
