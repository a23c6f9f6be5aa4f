"""
Collaborator interfaces consumed by the scrape queue.

Concrete map-site automation is not part of this package. Deployments point
LISTING_SOURCE_CLASS at an implementation of `ListingSource`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.business import BusinessRecord
from app.domain.search_job import ListingRef


class DetailSession(ABC):
    """
    One detail-extraction worker, typically a single browser page. A session
    handles one item at a time per concurrent call and is closed by its owner.
    """

    @abstractmethod
    async def extract_details(
        self,
        ref: ListingRef,
        search_term: str,
    ) -> BusinessRecord | None:
        """
        Resolve a listing reference to a record, or None when nothing usable
        was found.
        """

    async def close(self) -> None:
        return None


class ListingSource(ABC):
    """
    Search front end of the map site.
    """

    @abstractmethod
    async def search(self, search_term: str, limit: int) -> list[ListingRef]:
        """
        Return up to `limit` listing references for `search_term`.
        """

    @abstractmethod
    async def open_session(self) -> DetailSession:
        """
        Open a fresh detail-extraction session.
        """


class EmailFinder(ABC):
    @abstractmethod
    async def find_email(self, website: str) -> str | None:
        """
        Best contact email found on `website`, or None.
        """
