"""
tests/test_enrichment_service.py

Email sweep: single-flight guard, per-domain lookup sharing, skip and failure
accounting, and the lookup concurrency bound.
"""

from __future__ import annotations

import asyncio

import pytest

from app.config import EnrichmentSettings
from app.domain.business import BusinessRecord
from app.domain.errors import EnrichmentAlreadyRunningError
from app.services.enrichment_service import EnrichmentService
from tests.conftest import FakeEmailFinder, InMemoryScrapeStore


async def _seed(store: InMemoryScrapeStore, *rows: tuple[str, str, str]) -> None:
    for name, website, search_term in rows:
        record = BusinessRecord(name=name, search_term=search_term, website=website).prepared_for_storage()
        assert record is not None
        await store.insert_business(record)


def _service(
    store: InMemoryScrapeStore,
    finder: FakeEmailFinder,
    max_concurrent_lookups: int = 5,
) -> EnrichmentService:
    return EnrichmentService(
        store=store,
        email_finder=finder,
        settings=EnrichmentSettings(max_concurrent_lookups=max_concurrent_lookups),
    )


@pytest.mark.asyncio
async def test_nothing_pending_finishes_empty(store: InMemoryScrapeStore) -> None:
    service = _service(store, FakeEmailFinder())

    queued = await service.start_sweep()
    summary = await service.wait_until_idle()

    assert queued == 0
    assert summary.examined == 0
    assert summary.lookups == 0
    assert service.is_running is False


@pytest.mark.asyncio
async def test_found_emails_are_stored(store: InMemoryScrapeStore) -> None:
    await _seed(
        store,
        ("Acme", "https://acme.example.com/", "Plumber - Austin - Texas"),
        ("Bolt", "https://bolt.example.com/", "Plumber - Austin - Texas"),
    )
    finder = FakeEmailFinder({"https://acme.example.com/": "hello@acme.example.com"})
    service = _service(store, finder)

    summary = await service.run_sweep()

    assert summary.examined == 2
    assert summary.lookups == 2
    assert summary.emails_found == 1
    emails = {row["name"]: row["email"] for row in store.businesses}
    assert emails == {"Acme": "hello@acme.example.com", "Bolt": None}
    assert len(await store.list_businesses_missing_email()) == 1


@pytest.mark.asyncio
async def test_only_one_sweep_at_a_time(store: InMemoryScrapeStore) -> None:
    await _seed(store, ("Acme", "https://acme.example.com/", "Cafe - Reno - Nevada"))
    service = _service(store, FakeEmailFinder(delay=0.05))

    results = await asyncio.gather(service.start_sweep(), service.start_sweep(), return_exceptions=True)

    assert sorted(type(result).__name__ for result in results) == [
        "EnrichmentAlreadyRunningError",
        "int",
    ]
    assert service.status().is_running is True
    with pytest.raises(EnrichmentAlreadyRunningError):
        await service.start_sweep()

    await service.wait_until_idle()
    assert service.is_running is False
    assert await service.start_sweep() == 1
    await service.wait_until_idle()


@pytest.mark.asyncio
async def test_same_domain_is_looked_up_once_per_sweep(store: InMemoryScrapeStore) -> None:
    await _seed(
        store,
        ("Acme Austin", "https://www.acme.example.com/", "Plumber - Austin - Texas"),
        ("Acme Dallas", "https://acme.example.com/contact", "Plumber - Dallas - Texas"),
    )
    finder = FakeEmailFinder(
        {
            "https://www.acme.example.com/": "sales@acme.example.com",
            "https://acme.example.com/contact": "sales@acme.example.com",
        },
        delay=0.01,
    )
    service = _service(store, finder)

    summary = await service.run_sweep()

    assert len(finder.calls) == 1
    assert summary.lookups == 1
    assert summary.emails_found == 2
    assert all(row["email"] == "sales@acme.example.com" for row in store.businesses)


@pytest.mark.asyncio
async def test_non_http_websites_are_skipped(store: InMemoryScrapeStore) -> None:
    await _seed(
        store,
        ("Bare", "bare.example.com", "Gym - Tulsa - Oklahoma"),
        ("Ftp", "ftp://files.example.com", "Gym - Tulsa - Oklahoma"),
        ("Web", "http://web.example.com", "Gym - Tulsa - Oklahoma"),
    )
    finder = FakeEmailFinder()
    service = _service(store, finder)

    summary = await service.run_sweep()

    assert finder.calls == ["http://web.example.com"]
    assert summary.skipped == 2
    assert summary.lookups == 1


@pytest.mark.asyncio
async def test_lookup_failures_are_counted_and_do_not_stop_sweep(store: InMemoryScrapeStore) -> None:
    await _seed(
        store,
        ("Down", "https://down.example.com", "Bar - Akron - Ohio"),
        ("Up", "https://up.example.com", "Bar - Akron - Ohio"),
    )
    finder = FakeEmailFinder(
        {"https://up.example.com": "info@up.example.com"},
        failing=("https://down.example.com",),
    )
    service = _service(store, finder)

    summary = await service.run_sweep()

    assert summary.failed == 1
    assert summary.emails_found == 1
    assert service.status().last_summary == summary


@pytest.mark.asyncio
async def test_lookups_are_bounded(store: InMemoryScrapeStore) -> None:
    await _seed(
        store,
        *((f"Shop {n}", f"https://shop{n}.example.com", "Shop - Erie - Pennsylvania") for n in range(10)),
    )
    finder = FakeEmailFinder(delay=0.02)
    service = _service(store, finder, max_concurrent_lookups=3)

    queued = await service.start_sweep()
    await asyncio.sleep(0.01)
    running = service.status()
    summary = await service.wait_until_idle()

    assert queued == 10
    assert running.queued == 10
    assert running.active_lookups <= 3
    assert finder.max_active == 3
    assert summary.lookups == 10
