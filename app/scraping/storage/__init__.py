"""
Storage layer exports.
"""

from app.scraping.storage.base import ScrapeStore
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyScrapeStore

__all__ = ["ScrapeStore", "SQLAlchemyScrapeStore"]
