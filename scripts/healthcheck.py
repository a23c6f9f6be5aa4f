"""
Container health check for the API, or for database connectivity with --db.
"""

from __future__ import annotations

import argparse
import os
from urllib.error import URLError
from urllib.request import urlopen


def check_http() -> int:
    port = os.getenv("PORT", "8000")
    path = os.getenv("HEALTHCHECK_PATH", "/health")
    url = f"http://127.0.0.1:{port}{path}"

    try:
        with urlopen(url, timeout=2) as response:
            return 0 if 200 <= response.status < 400 else 1
    except (URLError, TimeoutError, ValueError):
        return 1


def check_database() -> int:
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from db.session import SessionLocal

    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
    except (SQLAlchemyError, RuntimeError) as exc:
        print(f"Database check failed: {exc}")
        return 1
    print("Database connection OK")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Health check for the listing harvester.")
    parser.add_argument("--db", action="store_true", help="Check database connectivity instead of HTTP.")
    args = parser.parse_args()
    return check_database() if args.db else check_http()


if __name__ == "__main__":
    raise SystemExit(main())
