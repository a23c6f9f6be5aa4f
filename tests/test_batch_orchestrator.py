"""
tests/test_batch_orchestrator.py

Batch lifecycle against the in-memory store: expansion, throttled draining,
stop/restart isolation, failure accounting and the post-batch email sweep.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from app.config import BatchSettings, EnrichmentSettings, ScrapeQueueSettings
from app.domain.errors import BatchAlreadyRunningError, NoValidStatesError
from app.scraping.scheduler import ConcurrencyScheduler
from app.scraping.targets import TargetList
from app.scraping.worker import SearchJobWorker
from app.services.batch_orchestrator_service import BatchOrchestratorService
from app.services.enrichment_service import EnrichmentService
from app.services.search_dispatcher_service import SearchDispatcherService
from db.models.batch_run import BatchRunStatus
from tests.conftest import FakeEmailFinder, FakeListingSource, InMemoryScrapeStore


class CountingEnrichmentService(EnrichmentService):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.sweeps_started = 0

    async def start_sweep(self) -> int:
        self.sweeps_started += 1
        return await super().start_sweep()


def _orchestrator(
    store: InMemoryScrapeStore,
    source: FakeListingSource,
    targets: TargetList,
    queue_settings: ScrapeQueueSettings,
    batch_settings: BatchSettings,
    enrichment_settings: EnrichmentSettings,
) -> BatchOrchestratorService:
    worker = SearchJobWorker(
        store=store,
        listing_source=source,
        settings=queue_settings,
        memory_probe=lambda: 64_000,
    )
    scheduler = ConcurrencyScheduler(worker=worker, max_concurrent_jobs=queue_settings.max_concurrent_jobs)
    dispatcher = SearchDispatcherService(
        store=store,
        scheduler=scheduler,
        default_max_results=queue_settings.max_results_per_search,
    )
    enrichment = CountingEnrichmentService(
        store=store,
        email_finder=FakeEmailFinder(),
        settings=enrichment_settings,
    )
    return BatchOrchestratorService(
        store=store,
        dispatcher=dispatcher,
        targets=targets,
        settings=batch_settings,
        enrichment=enrichment,
    )


async def _shutdown(orchestrator: BatchOrchestratorService) -> None:
    await orchestrator.close()
    await orchestrator.enrichment.close()
    await orchestrator.dispatcher.scheduler.close()


@pytest.fixture()
def build(store, queue_settings, batch_settings, enrichment_settings, targets):
    def _build(
        source: FakeListingSource | None = None,
        **batch_overrides,
    ) -> BatchOrchestratorService:
        return _orchestrator(
            store,
            source or FakeListingSource(),
            targets,
            queue_settings,
            replace(batch_settings, **batch_overrides),
            enrichment_settings,
        )

    return _build


@pytest.mark.asyncio
async def test_single_state_batch_runs_to_completion(store: InMemoryScrapeStore, build) -> None:
    source = FakeListingSource()
    orchestrator = build(source)

    started = await orchestrator.start_batch(["Texas"])
    assert started.total_states == 1
    assert started.total_cities == 3
    assert started.states == ["Texas"]

    status = await orchestrator.wait_until_idle()
    await orchestrator.enrichment.wait_until_idle()

    assert status.is_running is False
    assert status.status == BatchRunStatus.COMPLETED
    assert status.completed_tasks == 3
    assert status.failed_tasks == 0
    assert status.remaining_tasks == 0
    assert status.progress == 1.0
    assert status.end_time is not None
    assert [term for term, _ in source.searches] == [
        "Digital Marketing Agency - Houston - Texas",
        "Digital Marketing Agency - Dallas - Texas",
        "Digital Marketing Agency - Austin - Texas",
    ]

    persisted = store.batch_runs[started.batch_id]
    assert persisted["status"] == BatchRunStatus.COMPLETED
    assert persisted["completed_tasks"] == 3
    assert persisted["end_time"] is not None
    assert store.state_progress[(started.batch_id, "Texas")]["completed_cities"] == 3

    assert orchestrator.enrichment.sweeps_started == 1
    assert orchestrator.enrichment.status().last_summary.examined == 9
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_state_filter_is_case_insensitive(build) -> None:
    orchestrator = build()

    started = await orchestrator.start_batch(["texas", " OHIO "])

    assert started.states == ["Texas", "Ohio"]
    assert started.total_cities == 5
    status = await orchestrator.wait_until_idle()
    assert status.completed_tasks == 5
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_no_filter_selects_every_state(build) -> None:
    orchestrator = build()

    started = await orchestrator.start_batch()

    assert started.states == ["Texas", "Ohio", "Wyoming"]
    assert started.total_cities == 5
    await orchestrator.wait_until_idle()
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_unknown_states_only_is_rejected(store: InMemoryScrapeStore, build) -> None:
    orchestrator = build()

    with pytest.raises(NoValidStatesError):
        await orchestrator.start_batch(["Atlantis", "Narnia"])

    assert orchestrator.is_running is False
    assert store.batch_runs == {}
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_state_without_cities_completes_immediately(build) -> None:
    orchestrator = build()

    started = await orchestrator.start_batch(["Wyoming"])
    status = await orchestrator.wait_until_idle()

    assert started.total_cities == 0
    assert status.status == BatchRunStatus.COMPLETED
    assert status.progress == 0.0
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_second_start_while_running_is_rejected(build) -> None:
    orchestrator = build(FakeListingSource(search_delay=0.05))

    first = await orchestrator.start_batch(["Texas"])
    with pytest.raises(BatchAlreadyRunningError) as excinfo:
        await orchestrator.start_batch(["Ohio"])

    assert excinfo.value.batch_id == first.batch_id
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_stop_when_idle_reports_nothing_stopped(build) -> None:
    orchestrator = build()

    result = await orchestrator.stop()

    assert result.stopped is False
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_stop_then_start_keeps_runs_isolated(store: InMemoryScrapeStore, build) -> None:
    source = FakeListingSource(search_delay=0.05)
    orchestrator = build(source)

    first = await orchestrator.start_batch(["Texas"])
    first_drain = orchestrator._active.drain_task
    await asyncio.sleep(0.01)

    stopped = await orchestrator.stop()
    assert stopped.stopped is True
    assert stopped.completed_tasks == 0
    assert stopped.remaining_tasks == 3

    status = orchestrator.get_status()
    assert status.is_running is False
    assert status.status == BatchRunStatus.STOPPED
    assert store.batch_runs[first.batch_id]["status"] == BatchRunStatus.STOPPED

    second = await orchestrator.start_batch(["Ohio"])
    second_status = await orchestrator.wait_until_idle()
    await first_drain

    assert second_status.batch_id == second.batch_id
    assert second_status.total_tasks == 2
    assert second_status.completed_tasks == 2
    assert second_status.failed_tasks == 0

    # The first run's in-flight city finished against the first run only.
    first_run = store.batch_runs[first.batch_id]
    assert first_run["status"] == BatchRunStatus.STOPPED
    assert first_run["completed_tasks"] == 1
    searched = [term for term, _ in source.searches]
    assert "Digital Marketing Agency - Dallas - Texas" not in searched
    assert orchestrator.enrichment.sweeps_started == 1
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_finished_count_never_exceeds_total(build) -> None:
    orchestrator = build(FakeListingSource(search_delay=0.005), max_concurrent_tasks=2)

    await orchestrator.start_batch(["Texas", "Ohio"])
    while orchestrator.is_running:
        status = orchestrator.get_status()
        assert status.completed_tasks + status.failed_tasks <= status.total_tasks
        assert 0.0 <= status.progress <= 1.0
        await asyncio.sleep(0.002)

    final = orchestrator.get_status()
    assert final.completed_tasks == 5
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_in_flight_tasks_respect_concurrency_limit(build) -> None:
    source = FakeListingSource(search_delay=0.02)
    orchestrator = build(source, max_concurrent_tasks=2)

    await orchestrator.start_batch(["Texas", "Ohio"])
    await orchestrator.wait_until_idle()

    assert source.max_active_searches == 2
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_failed_city_is_recorded(store: InMemoryScrapeStore, build) -> None:
    failing = "Digital Marketing Agency - Dallas - Texas"
    orchestrator = build(FakeListingSource(failing_terms=(failing,)))

    started = await orchestrator.start_batch(["Texas"])
    status = await orchestrator.wait_until_idle()

    assert status.completed_tasks == 2
    assert status.failed_tasks == 1
    assert status.status == BatchRunStatus.COMPLETED
    assert status.state_progress["Texas"].failed_cities == 1
    assert store.task_failures == [
        {
            "batch_id": started.batch_id,
            "state": "Texas",
            "city": "Dallas",
            "error_message": "results feed did not load",
        }
    ]
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_polling_timeout_counts_as_completed(build) -> None:
    orchestrator = build(FakeListingSource(search_delay=0.2), max_polls=2)

    await orchestrator.start_batch(["Ohio"])
    status = await orchestrator.wait_until_idle()

    assert status.completed_tasks == 2
    assert status.timed_out_tasks == 2
    assert status.failed_tasks == 0
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_missing_job_counts_as_failed(store: InMemoryScrapeStore, build) -> None:
    store.hide_jobs = True
    orchestrator = build()

    await orchestrator.start_batch(["Ohio"])
    status = await orchestrator.wait_until_idle()

    assert status.failed_tasks == 2
    assert status.completed_tasks == 0
    assert all("not found" in failure["error_message"] for failure in store.task_failures)
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_bookkeeping_failures_do_not_stop_the_batch(store: InMemoryScrapeStore, build) -> None:
    store.fail_bookkeeping = True
    orchestrator = build()

    await orchestrator.start_batch(["Texas"])
    status = await orchestrator.wait_until_idle()

    assert status.status == BatchRunStatus.COMPLETED
    assert status.completed_tasks == 3
    assert store.batch_runs == {}
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_state_marked_in_progress_while_city_runs(build) -> None:
    orchestrator = build(FakeListingSource(search_delay=0.05))

    await orchestrator.start_batch(["Texas", "Ohio"])
    await asyncio.sleep(0.02)

    running = orchestrator.get_status()
    assert running.state_progress["Texas"].in_progress is True
    assert running.state_progress["Ohio"].in_progress is False
    assert running.current_state == "Texas"
    assert running.current_city == "Houston"

    done = await orchestrator.wait_until_idle()
    assert not any(progress.in_progress for progress in done.state_progress.values())
    assert done.current_city is None
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_auto_enrich_can_be_disabled(build) -> None:
    orchestrator = build(auto_enrich=False)

    await orchestrator.start_batch(["Ohio"])
    await orchestrator.wait_until_idle()

    assert orchestrator.enrichment.sweeps_started == 0
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_next_city_waits_for_pause_between_tasks(build) -> None:
    source = FakeListingSource()
    orchestrator = build(source, wait_between_tasks_seconds=0.2)

    await orchestrator.start_batch(["Ohio"])
    status = await orchestrator.wait_until_idle()

    assert status.completed_tasks == 2
    first, second = source.search_started_at
    assert second - first >= 0.19
    await _shutdown(orchestrator)


@pytest.mark.asyncio
async def test_stop_cuts_pause_short(build) -> None:
    source = FakeListingSource()
    orchestrator = build(source, wait_between_tasks_seconds=30)

    await orchestrator.start_batch(["Texas"])

    async def first_city_done() -> None:
        while orchestrator.get_status().completed_tasks < 1:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(first_city_done(), timeout=2)
    stopped = await orchestrator.stop()
    status = await asyncio.wait_for(orchestrator.wait_until_idle(), timeout=2)

    assert stopped.remaining_tasks == 2
    assert status.status == BatchRunStatus.STOPPED
    assert len(source.searches) == 1
    await _shutdown(orchestrator)
