from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.schemas.health import HealthResponse
from app.services.scrape_runtime import ScrapeRuntime, build_scrape_runtime


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Runs before any service or database connection is initialised and lists
    every problem at once so the operator can fix them in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not (database_url or cloud_database_url or local_database_url):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    for name in ("LISTING_SOURCE_CLASS", "EMAIL_FINDER_CLASS"):
        value = os.getenv(name, "").strip()
        if value and ":" not in value:
            errors.append(f"{name}='{value}' is not valid. Use 'module.path:ClassName'.")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.
    Aborts startup when any are missing. Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Build the scrape runtime and start the periodic scheduler; tear both down on exit."""
    log = logging.getLogger(__name__)
    runtime: ScrapeRuntime | None = getattr(application.state, "scrape_runtime", None)
    if runtime is None:
        _check_db()
        log.info("Database connectivity confirmed")
        _check_schema()
        log.info("Database schema validated")
        runtime = build_scrape_runtime()
        application.state.scrape_runtime = runtime

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler(runtime)
    scheduler.start()
    log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=False)
        await runtime.close()
        log.info("Scheduler shut down")


def create_app(runtime: ScrapeRuntime | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Passing a prebuilt runtime skips environment validation and the database
    checks, which is how the tests run the API against in-memory fakes.
    """

    if runtime is None:
        _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Listing Harvester API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    if runtime is not None:
        application.state.scrape_runtime = runtime

    from app.api.routers import batches_router, enrichment_router, search_jobs_router

    application.include_router(search_jobs_router)
    application.include_router(batches_router)
    application.include_router(enrichment_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        current: ScrapeRuntime | None = getattr(application.state, "scrape_runtime", None)
        if current is None:
            return HealthResponse(
                status="starting",
                pending_jobs=0,
                running_jobs=0,
                batch_running=False,
                enrichment_running=False,
            )
        return HealthResponse(
            status="ok",
            pending_jobs=current.scheduler.pending_count,
            running_jobs=current.scheduler.running_count,
            batch_running=current.orchestrator.is_running,
            enrichment_running=current.enrichment.is_running,
        )

    return application


app = create_app()
