"""
Run a state/city batch from the CLI and wait for it to finish.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
from dataclasses import replace

from app.config import get_batch_settings, get_scrape_queue_settings
from app.domain.batch import BatchStopResult
from app.domain.errors import ScrapeInputError
from app.services.scrape_runtime import ScrapeRuntime, build_scrape_runtime

logger = logging.getLogger("scripts.run_batch")


def _parse_states(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    states = [token.strip() for token in raw.split(",") if token.strip()]
    return states or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape map listings for every city of the selected states.")
    parser.add_argument(
        "--states",
        default=None,
        help="Comma-separated state names, e.g. 'California,New York,Texas'. Default: all states.",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=None,
        help="Seconds to pause between tasks (default from BATCH_WAIT_BETWEEN_TASKS_SECONDS, 60).",
    )
    parser.add_argument(
        "--max-results",
        dest="max_results",
        type=int,
        default=None,
        help="Maximum listings per city (default 200).",
    )
    parser.add_argument(
        "--type",
        dest="business_type",
        default=None,
        help="Business type searched in every city (default 'Digital Marketing Agency').",
    )
    parser.add_argument(
        "--no-email-finder",
        dest="no_email_finder",
        action="store_true",
        help="Do not start the email sweep when the batch completes.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Number of city searches running at once (default 1).",
    )
    parser.add_argument(
        "--progress-interval",
        dest="progress_interval",
        type=float,
        default=30.0,
        help="Seconds between progress log lines.",
    )
    return parser


class BatchInterrupt:
    """
    Turns SIGINT/SIGTERM into a single orchestrator stop and keeps the stop
    task referenced until it has been awaited.
    """

    def __init__(self, runtime: ScrapeRuntime) -> None:
        self.runtime = runtime
        self.stop_task: asyncio.Task[BatchStopResult] | None = None

    def request(self) -> None:
        if self.stop_task is not None:
            return
        logger.warning("Interrupt received; stopping batch after in-flight tasks finish")
        self.stop_task = asyncio.get_running_loop().create_task(self.runtime.orchestrator.stop())

    async def wait(self) -> BatchStopResult | None:
        if self.stop_task is None:
            return None
        return await self.stop_task


async def _log_progress(
runtime: ScrapeRuntime, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        snapshot = runtime.orchestrator.get_status()
        logger.info(
            "Progress %.1f%%: %d completed, %d failed, %d remaining (current: %s, %s)",
            snapshot.progress * 100,
            snapshot.completed_tasks,
            snapshot.failed_tasks,
            snapshot.remaining_tasks,
            snapshot.current_city or "-",
            snapshot.current_state or "-",
        )


async def run(args: argparse.Namespace) -> int:
    batch_settings = get_batch_settings()
    overrides: dict[str, object] = {}
    if args.wait is not None:
        overrides["wait_between_tasks_seconds"] = max(0.0, args.wait)
    if args.max_results is not None:
        overrides["max_results_per_city"] = max(1, args.max_results)
    if args.business_type:
        overrides["business_type"] = args.business_type.strip()
    if args.no_email_finder:
        overrides["auto_enrich"] = False
    if args.concurrency is not None:
        overrides["max_concurrent_tasks"] = max(1, args.concurrency)
    batch_settings = replace(batch_settings, **overrides)

    queue_settings = get_scrape_queue_settings()
    if batch_settings.max_concurrent_tasks > queue_settings.max_concurrent_jobs:
        queue_settings = replace(queue_settings, max_concurrent_jobs=batch_settings.max_concurrent_tasks)

    runtime = build_scrape_runtime(batch_settings=batch_settings, queue_settings=queue_settings)
    try:
        result = await runtime.orchestrator.start_batch(_parse_states(args.states))
    except ScrapeInputError as exc:
        logger.error("%s", exc)
        await runtime.close()
        return 2

    logger.info(
        "Batch %s started: %d states, %d cities",
        result.batch_id,
        result.total_states,
        result.total_cities,
    )

    loop = asyncio.get_running_loop()
    interrupt = BatchInterrupt(runtime)

    try:
        loop.add_signal_handler(signal.SIGINT, interrupt.request)
        loop.add_signal_handler(signal.SIGTERM, interrupt.request)
    except NotImplementedError:
        logger.debug("Signal handlers unavailable on this platform")

    progress_task = loop.create_task(_log_progress(runtime, max(1.0, args.progress_interval)))
    try:
        snapshot = await runtime.orchestrator.wait_until_idle()
        await runtime.enrichment.wait_until_idle()
    finally:
        progress_task.cancel()
        await interrupt.wait()
        await runtime.close()

    print(
        json.dumps(
            {
                "batch_id": str(snapshot.batch_id),
                "status": snapshot.status,
                "total_tasks": snapshot.total_tasks,
                "completed_tasks": snapshot.completed_tasks,
                "failed_tasks": snapshot.failed_tasks,
                "timed_out_tasks": snapshot.timed_out_tasks,
            },
            indent=2,
        )
    )
    return 0 if snapshot.failed_tasks == 0 else 1


def main() -> int:
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = build_parser().parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
