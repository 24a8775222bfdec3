"""
Unit tests for process-pool mapping.
"""

from __future__ import annotations

from genoscan.core.parallel import default_workers, parallel_map


def _square(x: int) -> int:
    return x * x


class TestParallelMap:
    """Tests for ordered parallel mapping."""

    def test_serial(self) -> None:
        assert parallel_map(_square, [1, 2, 3], num_workers=1) == [1, 4, 9]

    def test_parallel_keeps_order(self) -> None:
        assert parallel_map(_square, range(20), num_workers=2) == [x * x for x in range(20)]

    def test_progress_callback(self) -> None:
        seen: list[int] = []
        parallel_map(_square, [1, 2, 3], num_workers=1, progress_callback=seen.append)
        assert seen == [1, 2, 3]

    def test_empty(self) -> None:
        assert parallel_map(_square, [], num_workers=4) == []

    def test_default_workers(self) -> None:
        assert default_workers() >= 1
