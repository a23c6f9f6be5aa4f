"""
Mark batch runs left in `running` state as stopped.

Use after a batch process died without shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import json

from app.scraping.storage.sqlalchemy_storage import SQLAlchemyScrapeStore


def main() -> int:
    stopped = asyncio.run(SQLAlchemyScrapeStore().stop_running_batches())
    print(json.dumps({"stopped_batches": stopped}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
