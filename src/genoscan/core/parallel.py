"""
Process-pool mapping for independent analysis units.

Windows and baseline representatives are independent pure computations over
immutable inputs, so they are distributed across worker processes and their
results concatenated in input order.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def default_workers() -> int:
    """Worker count used when none is configured: CPU count - 1."""
    return max(1, mp.cpu_count() - 1)


def parallel_map(
    worker_fn: Callable[[T], R],
    items: Sequence[T] | Iterable[T],
    num_workers: int | None = None,
    progress_callback: Callable[[int], None] | None = None,
) -> list[R]:
    """
    Apply worker_fn to every item, in worker processes when useful.

    Results keep the input order. With one worker, or fewer than two items,
    everything runs in the calling process.

    Args:
        worker_fn: Picklable function (module-level, or functools.partial of one).
        items: Work units.
        num_workers: Process count (default: CPU count - 1).
        progress_callback: Optional callback(items_completed).

    Returns:
        List of worker results in input order.
    """
    items = list(items)
    num_workers = num_workers or default_workers()
    results: list[R] = []

    if num_workers <= 1 or len(items) < 2:
        for i, item in enumerate(items):
            results.append(worker_fn(item))
            if progress_callback:
                progress_callback(i + 1)
        return results

    processes = min(num_workers, len(items))
    logger.debug("Distributing %d work units over %d processes", len(items), processes)
    with mp.Pool(processes=processes) as pool:
        for i, result in enumerate(pool.imap(worker_fn, items)):
            results.append(result)
            if progress_callback:
                progress_callback(i + 1)

    return results
