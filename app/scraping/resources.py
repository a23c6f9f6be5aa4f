"""
Per-job worker sizing from item count and free memory.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TypeVar

import psutil

T = TypeVar("T")

_BYTES_PER_MB = 1024 * 1024


def available_memory_mb() -> float:
    return psutil.virtual_memory().available / _BYTES_PER_MB


def compute_worker_count(
    item_count: int,
    *,
    free_memory_mb: float,
    max_parallel_workers: int = 8,
    memory_per_worker_mb: int = 300,
    items_per_worker: int = 10,
) -> int:
    """
    Number of detail sessions for a job.

    Bounded by the configured parallelism, by how many sessions fit in free
    memory and by the item count, and never below one.
    """

    if item_count <= 0:
        return 1
    by_memory = free_memory_mb / max(1, memory_per_worker_mb)
    by_items = math.ceil(item_count / max(1, items_per_worker))
    return max(1, math.floor(min(max_parallel_workers, by_memory, by_items)))


def chunk_evenly(items: Sequence[T], chunks: int) -> list[list[T]]:
    """
    Split into at most `chunks` contiguous slices of `ceil(len / chunks)` items.
    """

    if not items:
        return []
    size = math.ceil(len(items) / max(1, chunks))
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def sub_batches(items: Sequence[T], size: int) -> list[list[T]]:
    step = max(1, size)
    return [list(items[start : start + step]) for start in range(0, len(items), step)]
