"""Per-trace point accumulation.

Collects, for every trace opened by the allocator, the indices of the points
assigned to it, in arrival order. The accumulator is filled slice by slice
right after the allocator has processed that slice, so at any point during a
run it mirrors exactly the points allocated so far.
"""

from typing import Dict, Iterator, List

import numpy as np


class TraceAccumulator:
    """Growing point index lists, keyed by trace id.

    Examples
    --------
    >>> accumulator = TraceAccumulator()
    >>> accumulator.add(assignment, 0, 3)
    >>> accumulator.point_indices(0)
    array([0, 2])
    """

    def __init__(self):
        self._points: Dict[int, List[int]] = {}
        self._n_points = 0

    def __len__(self) -> int:
        """Number of traces holding at least one point."""
        return len(self._points)

    def __contains__(self, trace_id: int) -> bool:
        return trace_id in self._points

    def __iter__(self) -> Iterator[int]:
        return iter(self._points)

    @property
    def total_points(self) -> int:
        return self._n_points

    def add_point(self, trace_id: int, point_index: int) -> None:
        self._points.setdefault(trace_id, []).append(point_index)
        self._n_points += 1

    def add(self, assignment: np.ndarray, start: int, stop: int) -> None:
        """Record assignment[start:stop] (trace id per point index)."""
        for point_index in range(start, stop):
            self.add_point(int(assignment[point_index]), point_index)

    def point_indices(self, trace_id: int) -> np.ndarray:
        return np.asarray(self._points.get(trace_id, ()), dtype=np.int64)

    def n_points(self, trace_id: int) -> int:
        return len(self._points.get(trace_id, ()))

    def clear(self) -> None:
        self._points.clear()
        self._n_points = 0
