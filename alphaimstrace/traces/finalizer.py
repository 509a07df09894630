"""Trace finalization: aggregate statistics and acceptance thresholds.

After all points have been allocated, each interval's points are summarized
once: extents of m/z, retention time, mobility and intensity; the maximum
intensity point (representative retention time and mobility); and the sets of
contributing scan and frame numbers. A trace is accepted only if it has
enough points in total and enough distinct retention times.

Rejected traces are simply dropped. They are not errors.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from numba import njit

from ..data.frames import MobilityType
from ..mobilograms.mobilogram import Mobilogram
from .accumulator import TraceAccumulator
from .allocator import ToleranceRangeAllocator

logger = logging.getLogger(__name__)


@dataclass
class IonMobilityTrace:
    """A finalized, accepted ion mobility trace.

    Attributes
    ----------
    mz : float
        Representative m/z: the point that opened the interval
    retention_time : float
        Retention time of the maximum intensity point
    mobility : float or None
        Mobility of the maximum intensity point (None if not measured)
    maximum_intensity : float
        Highest point intensity
    mz_range, retention_time_range, intensity_range : tuple
        (min, max) over all points
    mobility_range : tuple or None
        (min, max) over points with a measured mobility
    scan_numbers, frame_numbers : frozenset
        Contributing mobility scans and frames
    mz_interval : tuple
        Open (lower, upper) m/z interval the points were allocated to
    points : np.ndarray
        Structured signal points, sorted by scan number
    mobility_type : MobilityType
        Mobility technique of the source frames
    mobilograms : dict
        Frame id -> Mobilogram (only when requested)

    Equality compares the aggregate fields; points and mobilograms are
    excluded.
    """

    mz: float
    retention_time: float
    mobility: Optional[float]
    maximum_intensity: float
    mz_range: Tuple[float, float]
    retention_time_range: Tuple[float, float]
    mobility_range: Optional[Tuple[float, float]]
    intensity_range: Tuple[float, float]
    scan_numbers: frozenset
    frame_numbers: frozenset
    mz_interval: Tuple[float, float]
    points: np.ndarray = field(repr=False, compare=False)
    mobility_type: MobilityType = MobilityType.TIMS
    mobilograms: Dict[int, Mobilogram] = field(default_factory=dict, repr=False, compare=False)

    @property
    def n_points(self) -> int:
        return len(self.points)

    def representative_string(self) -> str:
        mobility = "n/a" if self.mobility is None else f"{self.mobility:.4f}"
        return (
            f"m/z {self.mz:.4f} @ {self.retention_time:.2f} min, "
            f"{mobility} {self.mobility_type.unit} ({self.n_points} points)"
        )


@njit
def summarize_trace(
    mz: np.ndarray,
    intensity: np.ndarray,
    rt: np.ndarray,
    mobility: np.ndarray,
) -> Tuple[float, float, float, float, float, float, float, float, int]:
    """Extents and maximum intensity point of one trace.

    Points must be sorted by scan number; on equal intensities the first
    point in that order is the maximum.

    Parameters
    ----------
    mz, intensity, rt, mobility : np.ndarray
        Point fields (mobility may contain NaN for unmeasured points)

    Returns
    -------
    mz_min, mz_max, intensity_min, intensity_max, rt_min, rt_max,
    mobility_min, mobility_max : float
        Extents (mobility extents are NaN if no point has a mobility)
    max_index : int
        Index of the maximum intensity point
    """
    mz_min = mz[0]
    mz_max = mz[0]
    int_min = intensity[0]
    int_max = intensity[0]
    rt_min = rt[0]
    rt_max = rt[0]
    mob_min = np.nan
    mob_max = np.nan
    max_index = 0

    for i in range(len(mz)):
        if mz[i] < mz_min:
            mz_min = mz[i]
        if mz[i] > mz_max:
            mz_max = mz[i]
        if intensity[i] < int_min:
            int_min = intensity[i]
        if intensity[i] > int_max:
            int_max = intensity[i]
            max_index = i
        if rt[i] < rt_min:
            rt_min = rt[i]
        if rt[i] > rt_max:
            rt_max = rt[i]
        if not np.isnan(mobility[i]):
            if np.isnan(mob_min) or mobility[i] < mob_min:
                mob_min = mobility[i]
            if np.isnan(mob_max) or mobility[i] > mob_max:
                mob_max = mobility[i]

    return mz_min, mz_max, int_min, int_max, rt_min, rt_max, mob_min, mob_max, max_index


def count_distinct_retention_times(rt: np.ndarray) -> int:
    return len(np.unique(rt))


def passes_thresholds(points: np.ndarray, min_total_signals: int, min_data_points_rt: int) -> bool:
    """Acceptance test: enough points and enough distinct retention times."""
    if len(points) < min_total_signals:
        return False
    return count_distinct_retention_times(points['rt']) >= min_data_points_rt


def split_into_frame_mobilograms(
    points: np.ndarray,
    mobility_type: MobilityType,
) -> Dict[int, Mobilogram]:
    """Split a trace's points into one mobilogram per frame.

    Per scan the most intense point is kept.
    """
    mobilograms: Dict[int, Mobilogram] = {}
    order = np.argsort(-points['intensity'], kind='stable')
    for point in points[order]:
        frame_id = int(point['frame_id'])
        mobilogram = mobilograms.get(frame_id)
        if mobilogram is None:
            mobilogram = Mobilogram(mobility_type)
            mobilograms[frame_id] = mobilogram
        if mobilogram.contains_scan(point['scan_number']):
            continue
        mobility = None if np.isnan(point['mobility']) else point['mobility']
        mobilogram.add_data_point(point['mz'], point['intensity'], mobility, point['scan_number'])

    for mobilogram in mobilograms.values():
        mobilogram.calc()
    return dict(sorted(mobilograms.items()))


def finalize_trace(
    points: np.ndarray,
    seed_mz: float,
    mz_interval: Tuple[float, float],
    mobility_type: MobilityType = MobilityType.TIMS,
    build_mobilograms: bool = False,
) -> IonMobilityTrace:
    """Compute the aggregate fields of one trace.

    Parameters
    ----------
    points : np.ndarray
        Structured signal points of the trace (any order, non-empty)
    seed_mz : float
        m/z of the point that opened the interval
    mz_interval : tuple
        (lower, upper) of the allocated interval
    mobility_type : MobilityType
        Mobility technique (for units)
    build_mobilograms : bool
        Also build per-frame mobilograms (default: False)

    Returns
    -------
    IonMobilityTrace
    """
    if len(points) == 0:
        raise ValueError("Cannot finalize a trace without points")

    points = points[np.argsort(points['scan_number'], kind='stable')]

    (mz_min, mz_max, int_min, int_max, rt_min, rt_max,
     mob_min, mob_max, max_index) = summarize_trace(
        np.ascontiguousarray(points['mz']),
        np.ascontiguousarray(points['intensity']),
        np.ascontiguousarray(points['rt'], dtype=np.float64),
        np.ascontiguousarray(points['mobility']),
    )

    apex = points[max_index]
    apex_mobility = None if np.isnan(apex['mobility']) else float(apex['mobility'])
    mobility_range = None if np.isnan(mob_min) else (float(mob_min), float(mob_max))

    return IonMobilityTrace(
        mz=float(seed_mz),
        retention_time=float(apex['rt']),
        mobility=apex_mobility,
        maximum_intensity=float(int_max),
        mz_range=(float(mz_min), float(mz_max)),
        retention_time_range=(float(rt_min), float(rt_max)),
        mobility_range=mobility_range,
        intensity_range=(float(int_min), float(int_max)),
        scan_numbers=frozenset(int(s) for s in points['scan_number']),
        frame_numbers=frozenset(int(f) for f in points['frame_id']),
        mz_interval=(float(mz_interval[0]), float(mz_interval[1])),
        points=points,
        mobility_type=mobility_type,
        mobilograms=split_into_frame_mobilograms(points, mobility_type) if build_mobilograms else {},
    )


class TraceFinalizer:
    """Finalizes the intervals of one allocation run, one interval at a time.

    Parameters
    ----------
    points : np.ndarray
        All signal points of the run, in allocation order
    allocator : ToleranceRangeAllocator
        Completed allocator (intervals and seeds)
    accumulator : TraceAccumulator
        Point indices per trace
    min_total_signals : int
        Minimum points per accepted trace
    min_data_points_rt : int
        Minimum distinct retention times per accepted trace
    mobility_type : MobilityType
        Mobility technique of the source frames
    build_mobilograms : bool
        Attach per-frame mobilograms to accepted traces
    """

    def __init__(
        self,
        points: np.ndarray,
        allocator: ToleranceRangeAllocator,
        accumulator: TraceAccumulator,
        min_total_signals: int,
        min_data_points_rt: int,
        mobility_type: MobilityType = MobilityType.TIMS,
        build_mobilograms: bool = False,
    ):
        self.points = points
        self.allocator = allocator
        self.accumulator = accumulator
        self.min_total_signals = min_total_signals
        self.min_data_points_rt = min_data_points_rt
        self.mobility_type = mobility_type
        self.build_mobilograms = build_mobilograms

        self.intervals = allocator.intervals
        self.trace_ids = allocator.trace_ids
        self.seed_indices = allocator.seed_indices

        self.n_accepted = 0
        self.n_rejected = 0

    def __len__(self) -> int:
        """Number of intervals to finalize."""
        return len(self.trace_ids)

    def finalize_interval(self, position: int) -> Optional[IonMobilityTrace]:
        """Finalize the interval at the given (m/z-ordered) position.

        Returns None if the trace is rejected.
        """
        trace_id = int(self.trace_ids[position])
        trace_points = self.points[self.accumulator.point_indices(trace_id)]

        if not passes_thresholds(trace_points, self.min_total_signals, self.min_data_points_rt):
            self.n_rejected += 1
            return None

        lower, upper = self.intervals[position]
        seed_mz = self.points['mz'][self.seed_indices[trace_id]]
        logger.debug(f"Build ion trace for m/z range ({lower:.4f}, {upper:.4f})")

        self.n_accepted += 1
        return finalize_trace(
            trace_points, seed_mz, (lower, upper),
            mobility_type=self.mobility_type,
            build_mobilograms=self.build_mobilograms,
        )

    def finalize_all(self) -> List[IonMobilityTrace]:
        """Accepted traces in ascending representative m/z."""
        traces = []
        for position in range(len(self)):
            trace = self.finalize_interval(position)
            if trace is not None:
                traces.append(trace)
        return sort_traces(traces)


def sort_traces(traces: List[IonMobilityTrace]) -> List[IonMobilityTrace]:
    return sorted(traces, key=lambda trace: trace.mz)
