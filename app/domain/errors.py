"""
app/domain/errors.py

Exception hierarchy for the scraping queue and batch orchestration.

Only input errors are raised to callers. Failures inside background jobs are
captured into persisted job and batch state instead.
"""

from __future__ import annotations


class ScrapeInputError(ValueError):
    """Base class for caller mistakes that are reported synchronously."""


class EmptySearchTermError(ScrapeInputError):
    def __init__(self) -> None:
        super().__init__("search_term must be a non-empty string.")


class BatchAlreadyRunningError(ScrapeInputError):
    def __init__(self, batch_id: object) -> None:
        super().__init__(f"Batch {batch_id} is already running.")
        self.batch_id = batch_id


class NoValidStatesError(ScrapeInputError):
    def __init__(self, requested: list[str]) -> None:
        super().__init__(
            f"None of the requested states are in the target list: {', '.join(requested)}"
        )
        self.requested = requested


class UnknownStateError(ScrapeInputError):
    def __init__(self, state: str) -> None:
        super().__init__(f"Unknown state '{state}'.")
        self.state = state


class EnrichmentAlreadyRunningError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("An email enrichment sweep is already running.")


class CollaboratorLoadError(RuntimeError):
    """Raised when a configured `module:Class` collaborator cannot be loaded."""


class TargetListError(RuntimeError):
    """Raised when the state/city target list is missing or malformed."""
