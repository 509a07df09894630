"""Tolerance range allocation: online partitioning of the m/z axis.

Every signal point, processed in ascending intensity order, is either placed
into the open m/z interval that already contains it, or opens a new interval
spanning its tolerance window. New windows are clamped against the nearest
existing neighbours so that intervals never overlap:

    minus neighbour         new interval          plus neighbour
  (--------------)(------------------------------)(-------------)
                  ^ lower = minus.upper           ^ upper = plus.lower

Intervals are kept as parallel arrays (lower, upper, trace id) sorted by
lower bound in two levels: a large main partition and a small sorted
insertion buffer. New intervals go into the buffer; a full buffer is merged
into the main arrays in one linear pass. Touching intervals are never merged.

Performance
-----------
- Lookup: two O(log n) binary searches (main and buffer)
- Insertion: O(buffer) shift plus an amortized O(n / buffer) share of merges;
  with the default buffer of ~sqrt(n_points) both are O(sqrt(n))
- The kernel processes an arbitrary slice of points so the caller can check
  for cancellation between points without losing state.

Examples
--------
>>> mz = np.array([100.000, 100.015, 100.005])  # ascending intensity
>>> allocator = ToleranceRangeAllocator(mz, MZTolerance.from_absolute(0.01))
>>> allocator.allocate_all()
>>> allocator.intervals
array([[ 99.99 , 100.01 ],
       [100.01 , 100.025]])
>>> allocator.assignment
array([0, 1, 0])
"""

from typing import Optional, Tuple

import numpy as np
from numba import njit

from ..constants import (
    ACTION_CONTAINED,
    ACTION_NEW,
    ACTION_TOUCHING,
    MIN_INSERTION_BUFFER,
    STATUS_CAPACITY,
    STATUS_MALFORMED_BOUNDS,
    STATUS_OK,
    STATUS_UNRESOLVED_TOUCHING,
)
from ..tolerance import MZTolerance, tolerance_window


class IntervalInvariantError(RuntimeError):
    """Interval bounds that would break the disjointness of the partition."""

    def __init__(self, message: str, lower: float, upper: float, mz: float):
        super().__init__(message)
        self.lower = lower
        self.upper = upper
        self.mz = mz


class UnresolvedBoundaryError(IntervalInvariantError):
    """Zero-width window clamped only by its lower neighbour.

    There is no upper neighbour to take the point, and appending it to the
    lower neighbour would move a point outside that neighbour's interval.
    """


@njit
def insertion_index(lowers: np.ndarray, n_intervals: int, x: float) -> int:
    """First index whose lower bound is >= x (bisect_left on lowers[:n])."""
    left, right = 0, n_intervals
    while left < right:
        mid = (left + right) // 2
        if lowers[mid] < x:
            left = mid + 1
        else:
            right = mid
    return left


@njit
def find_containing_interval(
    lowers: np.ndarray,
    uppers: np.ndarray,
    n_intervals: int,
    x: float,
) -> int:
    """Index of the open interval (lower, upper) containing x, or -1.

    Intervals are disjoint and sorted, so only the last interval starting
    strictly below x can contain it.
    """
    idx = insertion_index(lowers, n_intervals, x) - 1
    if idx >= 0 and x < uppers[idx]:
        return idx
    return -1


@njit
def clamp_window(
    window_lower: float,
    window_upper: float,
    below_upper: float,
    above_lower: float,
) -> Tuple[int, float, float]:
    """Bounds of a new interval between the nearest neighbours of a point.

    A neighbour clamps the window when it reaches into it, whether it contains
    the window bound or lies entirely inside the window.

    Parameters
    ----------
    window_lower, window_upper : float
        Tolerance window of the point
    below_upper : float
        Upper bound of the nearest interval below the point (-inf if none)
    above_lower : float
        Lower bound of the nearest interval above the point (+inf if none)

    Returns
    -------
    action : int
        ACTION_NEW, ACTION_TOUCHING (append to the neighbour above) or a
        STATUS_* error code
    lower, upper : float
        Clamped bounds
    """
    minus = below_upper > window_lower
    plus = above_lower < window_upper
    lower = below_upper if minus else window_lower
    upper = above_lower if plus else window_upper

    if lower < upper:
        return ACTION_NEW, lower, upper
    if lower == upper and plus:
        return ACTION_TOUCHING, lower, upper
    if lower == upper and minus:
        return STATUS_UNRESOLVED_TOUCHING, lower, upper
    return STATUS_MALFORMED_BOUNDS, lower, upper


@njit
def resolve_point(
    mz: float,
    absolute: float,
    ppm: float,
    lowers: np.ndarray,
    uppers: np.ndarray,
    n_intervals: int,
) -> Tuple[int, int, float, float]:
    """Decide where a single point goes, against one sorted interval array.

    Returns
    -------
    action : int
        ACTION_CONTAINED, ACTION_NEW, ACTION_TOUCHING, or a STATUS_* error code
    index : int
        Containing / touched interval (contained, touching), insertion
        position (new), or -1 (errors)
    lower, upper : float
        Bounds of the new interval (meaningful for ACTION_NEW and errors)
    """
    # mz is not contained, so position - 1 and position are its nearest
    # neighbours below and above
    position = insertion_index(lowers, n_intervals, mz)
    if position > 0 and mz < uppers[position - 1]:
        return ACTION_CONTAINED, position - 1, 0.0, 0.0

    below_upper = uppers[position - 1] if position > 0 else -np.inf
    above_lower = lowers[position] if position < n_intervals else np.inf

    window_lower, window_upper = tolerance_window(mz, absolute, ppm)
    action, lower, upper = clamp_window(window_lower, window_upper, below_upper, above_lower)

    if action == ACTION_NEW or action == ACTION_TOUCHING:
        return action, position, lower, upper
    return action, -1, lower, upper


@njit
def merge_buffer(
    lowers: np.ndarray,
    uppers: np.ndarray,
    trace_ids: np.ndarray,
    n_intervals: int,
    buffer_lowers: np.ndarray,
    buffer_uppers: np.ndarray,
    buffer_ids: np.ndarray,
    n_buffered: int,
) -> int:
    """Merge the sorted buffer into the main arrays in place, back to front.

    The main arrays must hold at least n_intervals + n_buffered entries.
    Lower bounds are unique, so the merge order is total.

    Returns
    -------
    int
        New number of intervals in the main arrays
    """
    i = n_intervals - 1
    j = n_buffered - 1
    k = n_intervals + n_buffered - 1
    while j >= 0:
        if i >= 0 and lowers[i] > buffer_lowers[j]:
            lowers[k] = lowers[i]
            uppers[k] = uppers[i]
            trace_ids[k] = trace_ids[i]
            i -= 1
        else:
            lowers[k] = buffer_lowers[j]
            uppers[k] = buffer_uppers[j]
            trace_ids[k] = buffer_ids[j]
            j -= 1
        k -= 1
    return n_intervals + n_buffered


@njit
def allocate_points(
    mz: np.ndarray,
    start: int,
    stop: int,
    absolute: float,
    ppm: float,
    lowers: np.ndarray,
    uppers: np.ndarray,
    trace_ids: np.ndarray,
    n_intervals: int,
    buffer_lowers: np.ndarray,
    buffer_uppers: np.ndarray,
    buffer_ids: np.ndarray,
    n_buffered: int,
    n_traces: int,
    assignment: np.ndarray,
    seed_indices: np.ndarray,
) -> Tuple[int, int, int, int, int, float, float]:
    """Assign points mz[start:stop] to intervals, creating intervals as needed.

    Parameters
    ----------
    mz : np.ndarray
        m/z values in processing (ascending intensity) order
    start, stop : int
        Slice of points to process
    absolute, ppm : float
        Tolerance components
    lowers, uppers, trace_ids : np.ndarray
        Main interval storage, sorted by lower bound (modified in place)
    n_intervals : int
        Number of intervals in the main storage
    buffer_lowers, buffer_uppers, buffer_ids : np.ndarray
        Insertion buffer, sorted by lower bound (modified in place)
    n_buffered : int
        Number of intervals in the buffer
    n_traces : int
        Number of traces created so far
    assignment : np.ndarray (int64)
        Trace id per point (modified in place)
    seed_indices : np.ndarray (int64)
        Point index that opened each trace (modified in place)

    Returns
    -------
    n_intervals, n_buffered, n_traces : int
        Updated counts
    status : int
        STATUS_OK, STATUS_CAPACITY (main storage too small for a merge) or an
        invariant violation code
    next_index : int
        First point not processed (stop on success)
    lower, upper : float
        Offending bounds when status is an invariant violation
    """
    capacity = len(lowers)
    buffer_capacity = len(buffer_lowers)

    for i in range(start, stop):
        x = mz[i]

        pm = insertion_index(lowers, n_intervals, x)
        if pm > 0 and x < uppers[pm - 1]:
            assignment[i] = trace_ids[pm - 1]
            continue
        pb = insertion_index(buffer_lowers, n_buffered, x)
        if pb > 0 and x < buffer_uppers[pb - 1]:
            assignment[i] = buffer_ids[pb - 1]
            continue

        # Nearest neighbours across both levels
        below_upper = -np.inf
        if pm > 0:
            below_upper = uppers[pm - 1]
        if pb > 0 and buffer_uppers[pb - 1] > below_upper:
            below_upper = buffer_uppers[pb - 1]

        above_lower = np.inf
        above_id = -1
        if pm < n_intervals:
            above_lower = lowers[pm]
            above_id = trace_ids[pm]
        if pb < n_buffered and buffer_lowers[pb] < above_lower:
            above_lower = buffer_lowers[pb]
            above_id = buffer_ids[pb]

        window_lower, window_upper = tolerance_window(x, absolute, ppm)
        action, lower, upper = clamp_window(window_lower, window_upper, below_upper, above_lower)

        if action == ACTION_TOUCHING:
            assignment[i] = above_id

        elif action == ACTION_NEW:
            if n_buffered == buffer_capacity:
                if n_intervals + n_buffered > capacity:
                    return (n_intervals, n_buffered, n_traces,
                            STATUS_CAPACITY, i, lower, upper)
                n_intervals = merge_buffer(
                    lowers, uppers, trace_ids, n_intervals,
                    buffer_lowers, buffer_uppers, buffer_ids, n_buffered,
                )
                n_buffered = 0
                pb = 0

            # Shift buffer tail right by one
            for j in range(n_buffered, pb, -1):
                buffer_lowers[j] = buffer_lowers[j - 1]
                buffer_uppers[j] = buffer_uppers[j - 1]
                buffer_ids[j] = buffer_ids[j - 1]

            buffer_lowers[pb] = lower
            buffer_uppers[pb] = upper
            buffer_ids[pb] = n_traces
            seed_indices[n_traces] = i
            assignment[i] = n_traces

            n_buffered += 1
            n_traces += 1

        else:
            return n_intervals, n_buffered, n_traces, action, i, lower, upper

    return n_intervals, n_buffered, n_traces, STATUS_OK, stop, 0.0, 0.0


@njit
def intervals_are_disjoint(lowers: np.ndarray, uppers: np.ndarray, n_intervals: int) -> bool:
    """True if every interval is non-empty and no two open intervals intersect."""
    for i in range(n_intervals):
        if not lowers[i] < uppers[i]:
            return False
        if i > 0 and uppers[i - 1] > lowers[i]:
            return False
    return True


def default_buffer_capacity(n_points: int) -> int:
    return max(MIN_INSERTION_BUFFER, int(np.sqrt(n_points)))


class ToleranceRangeAllocator:
    """Owns the interval partition of one run.

    Parameters
    ----------
    mz : np.ndarray
        m/z of every point, in processing order (ascending intensity)
    mz_tolerance : MZTolerance
        Tolerance used to build each point's window
    initial_capacity : int
        Initial main interval array size (grown by doubling)
    buffer_capacity : int, optional
        Insertion buffer size (default: ~sqrt of the number of points)

    Examples
    --------
    >>> allocator = ToleranceRangeAllocator(points['mz'], MZTolerance())
    >>> for i in range(len(points)):
    ...     allocator.assign(i, i + 1)
    >>> allocator.n_intervals
    """

    def __init__(
        self,
        mz: np.ndarray,
        mz_tolerance: MZTolerance,
        initial_capacity: int = 1024,
        buffer_capacity: Optional[int] = None,
    ):
        self.mz = np.ascontiguousarray(mz, dtype=np.float64)
        self.mz_tolerance = mz_tolerance

        n_points = len(self.mz)
        capacity = max(1, min(initial_capacity, n_points))
        if buffer_capacity is None:
            buffer_capacity = default_buffer_capacity(n_points)
        if buffer_capacity < 1:
            raise ValueError(f"buffer_capacity must be >= 1, got {buffer_capacity}")

        self._lowers = np.empty(capacity, dtype=np.float64)
        self._uppers = np.empty(capacity, dtype=np.float64)
        self._trace_ids = np.empty(capacity, dtype=np.int64)
        self._n_intervals = 0

        self._buffer_lowers = np.empty(buffer_capacity, dtype=np.float64)
        self._buffer_uppers = np.empty(buffer_capacity, dtype=np.float64)
        self._buffer_ids = np.empty(buffer_capacity, dtype=np.int64)
        self._n_buffered = 0

        self._n_traces = 0
        self.assignment = np.full(n_points, -1, dtype=np.int64)
        self._seed_indices = np.full(max(n_points, 1), -1, dtype=np.int64)

    def __len__(self) -> int:
        return self.n_intervals

    @property
    def n_points(self) -> int:
        return len(self.mz)

    @property
    def n_intervals(self) -> int:
        return self._n_intervals + self._n_buffered

    @property
    def n_traces(self) -> int:
        return self._n_traces

    @property
    def intervals(self) -> np.ndarray:
        """(n_intervals, 2) array of [lower, upper], ascending."""
        self._flush()
        n = self._n_intervals
        return np.column_stack((self._lowers[:n], self._uppers[:n]))

    @property
    def trace_ids(self) -> np.ndarray:
        """Trace id of each interval, in interval (ascending m/z) order."""
        self._flush()
        return self._trace_ids[:self._n_intervals].copy()

    @property
    def seed_indices(self) -> np.ndarray:
        """Index of the point that opened each trace, by trace id."""
        return self._seed_indices[:self._n_traces].copy()

    def interval_of_trace(self, trace_id: int) -> Tuple[float, float]:
        self._flush()
        position = int(np.flatnonzero(self._trace_ids[:self._n_intervals] == trace_id)[0])
        return float(self._lowers[position]), float(self._uppers[position])

    def find_interval(self, mz: float) -> int:
        """Position of the interval containing mz, or -1."""
        self._flush()
        return find_containing_interval(self._lowers, self._uppers, self._n_intervals, float(mz))

    def is_disjoint(self) -> bool:
        self._flush()
        return intervals_are_disjoint(self._lowers, self._uppers, self._n_intervals)

    def _grow(self, needed: int) -> None:
        capacity = max(needed, min(2 * len(self._lowers), max(self.n_points, 1)))
        n = self._n_intervals
        for name in ('_lowers', '_uppers', '_trace_ids'):
            old = getattr(self, name)
            new = np.empty(capacity, dtype=old.dtype)
            new[:n] = old[:n]
            setattr(self, name, new)

    def _flush(self) -> None:
        """Merge the insertion buffer into the main arrays."""
        if self._n_buffered == 0:
            return
        needed = self._n_intervals + self._n_buffered
        if needed > len(self._lowers):
            self._grow(needed)
        self._n_intervals = merge_buffer(
            self._lowers, self._uppers, self._trace_ids, self._n_intervals,
            self._buffer_lowers, self._buffer_uppers, self._buffer_ids, self._n_buffered,
        )
        self._n_buffered = 0

    def assign(self, start: int, stop: int) -> None:
        """Assign points [start, stop) to intervals.

        Raises
        ------
        IntervalInvariantError
            If a point yields bounds with lower > upper, or zero-width bounds
            with no neighbour
        UnresolvedBoundaryError
            If a point yields zero-width bounds clamped only from below
        """
        position = start
        while position < stop:
            (self._n_intervals, self._n_buffered, self._n_traces, status,
             position, lower, upper) = allocate_points(
                self.mz, position, stop,
                self.mz_tolerance.absolute, self.mz_tolerance.ppm,
                self._lowers, self._uppers, self._trace_ids, self._n_intervals,
                self._buffer_lowers, self._buffer_uppers, self._buffer_ids, self._n_buffered,
                self._n_traces, self.assignment, self._seed_indices,
            )

            if status == STATUS_OK:
                return
            if status == STATUS_CAPACITY:
                self._grow(self._n_intervals + self._n_buffered)
                continue

            mz = float(self.mz[position])
            if status == STATUS_UNRESOLVED_TOUCHING:
                raise UnresolvedBoundaryError(
                    f"Zero-width range [{lower:f}, {upper:f}] for m/z {mz:f} "
                    f"touches only its lower neighbour",
                    lower, upper, mz,
                )
            raise IntervalInvariantError(
                f"Incorrect range [{lower:f}, {upper:f}] for m/z {mz:f}",
                lower, upper, mz,
            )

    def allocate_all(self) -> None:
        """Assign every point in one pass (no cancellation checks)."""
        self.assign(0, self.n_points)
