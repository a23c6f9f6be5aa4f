"""
Loader for pluggable scraping collaborators configured by import path.
"""

from __future__ import annotations

import importlib
from typing import TypeVar

from app.config import CollaboratorSettings, EmailDiscoverySettings
from app.domain.errors import CollaboratorLoadError
from app.domain.search_job import ListingRef
from app.scraping.base import DetailSession, EmailFinder, ListingSource
from app.scraping.email_discovery import HttpEmailFinder

T = TypeVar("T")


class UnconfiguredListingSource(ListingSource):
    """
    Placeholder used when no listing source is configured. Jobs still get
    queued and fail with an explicit message.
    """

    async def search(self, search_term: str, limit: int) -> list[ListingRef]:
        raise CollaboratorLoadError(
            "LISTING_SOURCE_CLASS is not configured; set it to 'module.path:ClassName'."
        )

    async def open_session(self) -> DetailSession:
        raise CollaboratorLoadError("LISTING_SOURCE_CLASS is not configured.")


def load_collaborator_class(path: str, base: type[T]) -> type[T]:
    if ":" not in path:
        raise CollaboratorLoadError(f"Invalid class path '{path}'. Use 'module.path:ClassName'.")

    module_path, class_name = path.split(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise CollaboratorLoadError(f"Unable to import module '{module_path}': {exc}") from exc

    loaded = getattr(module, class_name, None)
    if loaded is None:
        raise CollaboratorLoadError(f"Unable to resolve class '{path}'.")
    if not isinstance(loaded, type) or not issubclass(loaded, base):
        raise CollaboratorLoadError(f"Class '{path}' must inherit from {base.__name__}.")
    return loaded


def build_listing_source(settings: CollaboratorSettings) -> ListingSource:
    if not settings.listing_source_class:
        return UnconfiguredListingSource()
    source_class = load_collaborator_class(settings.listing_source_class, ListingSource)
    return source_class()


def build_email_finder(
    settings: CollaboratorSettings,
    discovery_settings: EmailDiscoverySettings,
) -> EmailFinder:
    if not settings.email_finder_class:
        return HttpEmailFinder(settings=discovery_settings)
    finder_class = load_collaborator_class(settings.email_finder_class, EmailFinder)
    return finder_class()
