"""
Email enrichment sweep over stored businesses that have a website but no email.
"""

from __future__ import annotations

import asyncio
import logging
import time

from app.config import EnrichmentSettings
from app.domain.business import StoredBusiness, derive_domain
from app.domain.enrichment import EnrichmentStatus, EnrichmentSummary
from app.domain.errors import EnrichmentAlreadyRunningError
from app.scraping.base import EmailFinder
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.storage.base import ScrapeStore

logger = logging.getLogger(__name__)


class _SweepCounters:
    def __init__(self, examined: int) -> None:
        self.examined = examined
        self.lookups = 0
        self.emails_found = 0
        self.skipped = 0
        self.failed = 0

    def summary(self) -> EnrichmentSummary:
        return EnrichmentSummary(
            examined=self.examined,
            lookups=self.lookups,
            emails_found=self.emails_found,
            skipped=self.skipped,
            failed=self.failed,
        )


class EnrichmentService:
    """
    Runs at most one sweep at a time. Lookups are bounded by a semaphore and
    shared between records of the same domain within a sweep.
    """

    def __init__(
        self,
        *,
        store: ScrapeStore,
        email_finder: EmailFinder,
        settings: EnrichmentSettings,
    ) -> None:
        self.store = store
        self.email_finder = email_finder
        self.settings = settings
        self._running = False
        self._queued = 0
        self._active_lookups = 0
        self._task: asyncio.Task[EnrichmentSummary] | None = None
        self._last_summary: EnrichmentSummary | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def status(self) -> EnrichmentStatus:
        return EnrichmentStatus(
            is_running=self._running,
            queued=self._queued,
            active_lookups=self._active_lookups,
            last_summary=self._last_summary,
        )

    async def start_sweep(self) -> int:
        """
        Queue every business missing an email and process them in the
        background. Returns how many were queued.
        """

        queued, _ = await self._start()
        return queued

    async def run_sweep(self) -> EnrichmentSummary:
        _, task = await self._start()
        return await task

    async def _start(self) -> tuple[int, asyncio.Task[EnrichmentSummary]]:
        if self._running:
            raise EnrichmentAlreadyRunningError()
        # Claimed before the first await so concurrent callers see it.
        self._running = True
        try:
            pending = await self.store.list_businesses_missing_email()
        except Exception:
            self._running = False
            raise

        self._queued = len(pending)
        task = asyncio.get_running_loop().create_task(
            self._sweep(pending),
            name="email-enrichment-sweep",
        )
        self._task = task
        return len(pending), task

    async def wait_until_idle(self) -> EnrichmentSummary | None:
        if self._task is None:
            return None
        return await self._task

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _sweep(self, pending: list[StoredBusiness]) -> EnrichmentSummary:
        started = time.monotonic()
        counters = _SweepCounters(examined=len(pending))
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_lookups)
        domain_cache: dict[str, asyncio.Task[str | None]] = {}

        log_event(logger, logging.INFO, "enrichment_sweep_started", queued=len(pending))
        try:
            await asyncio.gather(
                *(
                    self._enrich_one(business, semaphore, domain_cache, counters)
                    for business in pending
                )
            )
        finally:
            for task in domain_cache.values():
                if not task.done():
                    task.cancel()
            summary = counters.summary()
            self._last_summary = summary
            self._queued = 0
            self._running = False

        log_event(
            logger,
            logging.INFO,
            "enrichment_sweep_completed",
            examined=summary.examined,
            lookups=summary.lookups,
            emails_found=summary.emails_found,
            skipped=summary.skipped,
            failed=summary.failed,
            duration_ms=elapsed_ms(started),
        )
        return summary

    async def _enrich_one(
        self,
        business: StoredBusiness,
        semaphore: asyncio.Semaphore,
        domain_cache: dict[str, asyncio.Task[str | None]],
        counters: _SweepCounters,
    ) -> None:
        website = (business.website or "").strip()
        if not website.lower().startswith(("http://", "https://")):
            counters.skipped += 1
            return

        key = business.domain or derive_domain(website) or website
        lookup = domain_cache.get(key)
        if lookup is None:
            counters.lookups += 1
            lookup = asyncio.get_running_loop().create_task(self._lookup(website, semaphore))
            domain_cache[key] = lookup

        try:
            email = await asyncio.shield(lookup)
        except Exception as exc:
            counters.failed += 1
            logger.warning("Email lookup failed for %s (%s): %s", business.name, website, exc)
            return

        if not email:
            return
        try:
            await self.store.update_business_email(business.business_id, email)
        except Exception:
            counters.failed += 1
            logger.exception("Failed to store email for business %s", business.business_id)
            return
        counters.emails_found += 1
        logger.info("Found email for %s: %s", business.name, email)

    async def _lookup(self, website: str, semaphore: asyncio.Semaphore) -> str | None:
        async with semaphore:
            self._active_lookups += 1
            try:
                return await self.email_finder.find_email(website)
            finally:
                self._active_lookups -= 1
