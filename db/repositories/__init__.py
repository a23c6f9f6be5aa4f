"""
Repository layer exports.
"""

from db.repositories.batch_run_repository import BatchRunRepository
from db.repositories.business_repository import BusinessRepository
from db.repositories.scrape_job_repository import ScrapeJobRepository

__all__ = [
    "BatchRunRepository",
    "BusinessRepository",
    "ScrapeJobRepository",
]
