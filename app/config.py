"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_DEFAULT_BUSINESS_TYPE = "Digital Marketing Agency"


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def default_max_concurrent_jobs() -> int:
    """One job per CPU, leaving one core for the event loop and the database."""
    return max((os.cpu_count() or 1) - 1, 1)


@dataclass(frozen=True)
class ScrapeQueueSettings:
    """
    Job admission, per-job fan-out and per-item retry knobs.
    """

    max_concurrent_jobs: int = 1
    max_results_per_search: int = 200
    max_parallel_workers: int = 8
    memory_per_worker_mb: int = 300
    items_per_worker: int = 10
    sub_batch_size: int = 5
    max_item_attempts: int = 3
    item_retry_delay_seconds: float = 3.0
    progress_flush_seconds: float = 5.0


@dataclass(frozen=True)
class BatchSettings:
    """
    Batch orchestration knobs.
    """

    business_type: str = _DEFAULT_BUSINESS_TYPE
    max_concurrent_tasks: int = 1
    wait_between_tasks_seconds: float = 60.0
    max_results_per_city: int = 200
    poll_interval_seconds: float = 5.0
    max_polls: int = 300
    auto_enrich: bool = True
    targets_path: str | None = None


@dataclass(frozen=True)
class EnrichmentSettings:
    """
    Email enrichment sweep knobs.
    """

    max_concurrent_lookups: int = 5
    sweep_cron_enabled: bool = False
    sweep_cron_hour: int = 3
    sweep_cron_minute: int = 0


@dataclass(frozen=True)
class EmailDiscoverySettings:
    """
    HTTP behaviour of the bundled website email finder.
    """

    timeout_seconds: float = 10.0
    max_retries: int = 2
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    max_pages_per_site: int = 12
    user_agent: str = "Mozilla/5.0 (compatible; ListingHarvester/1.0)"


@dataclass(frozen=True)
class CollaboratorSettings:
    """
    Import paths (`module:Class`) of the pluggable scraping collaborators.
    """

    listing_source_class: str | None = None
    email_finder_class: str | None = None


@lru_cache(maxsize=1)
def get_scrape_queue_settings() -> ScrapeQueueSettings:
    """
    Return cached scrape queue settings from environment variables.
    """

    return ScrapeQueueSettings(
        max_concurrent_jobs=max(
            1, _get_int_env("SCRAPE_MAX_CONCURRENT_JOBS", default_max_concurrent_jobs())
        ),
        max_results_per_search=max(1, _get_int_env("SCRAPE_MAX_RESULTS_PER_SEARCH", 200)),
        max_parallel_workers=max(1, _get_int_env("SCRAPE_MAX_PARALLEL_WORKERS", 8)),
        memory_per_worker_mb=max(1, _get_int_env("SCRAPE_MEMORY_PER_WORKER_MB", 300)),
        items_per_worker=max(1, _get_int_env("SCRAPE_ITEMS_PER_WORKER", 10)),
        sub_batch_size=max(1, _get_int_env("SCRAPE_SUB_BATCH_SIZE", 5)),
        max_item_attempts=max(1, _get_int_env("SCRAPE_MAX_ITEM_ATTEMPTS", 3)),
        item_retry_delay_seconds=max(0.0, _get_float_env("SCRAPE_ITEM_RETRY_DELAY_SECONDS", 3.0)),
        progress_flush_seconds=max(0.1, _get_float_env("SCRAPE_PROGRESS_FLUSH_SECONDS", 5.0)),
    )


@lru_cache(maxsize=1)
def get_batch_settings() -> BatchSettings:
    """
    Return cached batch orchestration settings from environment variables.
    """

    return BatchSettings(
        business_type=_get_str_env("BATCH_BUSINESS_TYPE", _DEFAULT_BUSINESS_TYPE),
        max_concurrent_tasks=max(1, _get_int_env("BATCH_MAX_CONCURRENT_TASKS", 1)),
        wait_between_tasks_seconds=max(0.0, _get_float_env("BATCH_WAIT_BETWEEN_TASKS_SECONDS", 60.0)),
        max_results_per_city=max(1, _get_int_env("BATCH_MAX_RESULTS_PER_CITY", 200)),
        poll_interval_seconds=max(0.0, _get_float_env("BATCH_POLL_INTERVAL_SECONDS", 5.0)),
        max_polls=max(1, _get_int_env("BATCH_MAX_POLLS", 300)),
        auto_enrich=_get_bool_env("BATCH_AUTO_ENRICH", True),
        targets_path=_get_optional_str_env("BATCH_TARGETS_PATH"),
    )


@lru_cache(maxsize=1)
def get_enrichment_settings() -> EnrichmentSettings:
    return EnrichmentSettings(
        max_concurrent_lookups=max(1, _get_int_env("ENRICHMENT_MAX_CONCURRENT_LOOKUPS", 5)),
        sweep_cron_enabled=_get_bool_env("ENRICHMENT_SWEEP_CRON_ENABLED", False),
        sweep_cron_hour=min(23, max(0, _get_int_env("ENRICHMENT_SWEEP_CRON_HOUR", 3))),
        sweep_cron_minute=min(59, max(0, _get_int_env("ENRICHMENT_SWEEP_CRON_MINUTE", 0))),
    )


@lru_cache(maxsize=1)
def get_email_discovery_settings() -> EmailDiscoverySettings:
    return EmailDiscoverySettings(
        timeout_seconds=max(1.0, _get_float_env("EMAIL_DISCOVERY_TIMEOUT_SECONDS", 10.0)),
        max_retries=max(0, _get_int_env("EMAIL_DISCOVERY_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(0.1, _get_float_env("EMAIL_DISCOVERY_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EMAIL_DISCOVERY_BACKOFF_MULTIPLIER", 2.0)),
        max_pages_per_site=max(1, _get_int_env("EMAIL_DISCOVERY_MAX_PAGES_PER_SITE", 12)),
        user_agent=_get_str_env(
            "EMAIL_DISCOVERY_USER_AGENT",
            "Mozilla/5.0 (compatible; ListingHarvester/1.0)",
        ),
    )


@lru_cache(maxsize=1)
def get_collaborator_settings() -> CollaboratorSettings:
    return CollaboratorSettings(
        listing_source_class=_get_optional_str_env("LISTING_SOURCE_CLASS"),
        email_finder_class=_get_optional_str_env("EMAIL_FINDER_CLASS"),
    )
