"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.batch_run import BatchRun, BatchStateProgress, BatchTaskFailure
from db.models.business import Business
from db.models.scrape_job import ScrapeJob

__all__ = [
    "BatchRun",
    "BatchStateProgress",
    "BatchTaskFailure",
    "Business",
    "ScrapeJob",
]
