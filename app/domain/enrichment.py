"""
app/domain/enrichment.py

Email enrichment sweep results.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EnrichmentSummary:
    """
    Outcome for one email sweep.
    """

    examined: int
    lookups: int
    emails_found: int
    skipped: int
    failed: int


@dataclass(frozen=True)
class EnrichmentStatus:
    is_running: bool
    queued: int
    active_lookups: int
    last_summary: EnrichmentSummary | None = None
