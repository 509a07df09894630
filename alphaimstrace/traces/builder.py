"""Ion mobility trace builder task.

Runs the full pipeline for one raw data file:

1. Extract all signal points of the selected frames, ascending intensity
2. Allocate each point to a disjoint m/z interval (progress 0.0 -> 0.5)
3. Finalize each interval and apply the acceptance thresholds
   (progress 0.5 -> 1.0)

Cancellation is checked between points and between intervals. A canceled run
commits nothing. A broken interval invariant aborts the run with an ERROR
status. Scans without the requested mass list are skipped and reported as an
ERROR status, but the remaining scans are still processed.

Examples
--------
>>> params = TraceBuilderParams(mz_tolerance=MZTolerance(0.001, 5.0), mass_list="masses")
>>> task = IonMobilityTraceBuilderTask(frames, params, raw_data_file_name="sample_01.d")
>>> task.run()
>>> task.status, len(task.result.traces)
(<TaskStatus.FINISHED: 'finished'>, 1542)
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..constants import (
    DEFAULT_MASS_LIST,
    DEFAULT_MIN_DATA_POINTS_RT,
    DEFAULT_MIN_TOTAL_SIGNALS,
    DEFAULT_TRACE_SUFFIX,
)
from ..data.frames import Frame, MobilityType, ScanSelection
from ..data.points import calculate_data_point_size, extract_signal_points
from ..tasks import AbstractTask
from ..tolerance import MZTolerance
from .accumulator import TraceAccumulator
from .allocator import ToleranceRangeAllocator
from .finalizer import IonMobilityTrace, TraceFinalizer, sort_traces

logger = logging.getLogger(__name__)


@dataclass
class TraceBuilderParams:
    """Parameters for ion mobility trace building.

    Attributes
    ----------
    mz_tolerance : MZTolerance
        Tolerance used to open intervals
    mass_list : str
        Mass list read from each mobility scan
    min_data_points_rt : int
        Minimum distinct retention times per accepted trace
    min_total_signals : int
        Minimum points per accepted trace
    scan_selection : ScanSelection
        Frame/scan filter
    suffix : str
        Appended to the raw data file name to name the feature list
    build_mobilograms : bool
        Attach per-frame mobilograms to each accepted trace
    heatmap_cell_size : bool
        Compute the retention time / mobility cell size for heat map plots
    """

    mz_tolerance: MZTolerance = field(default_factory=MZTolerance)
    mass_list: str = DEFAULT_MASS_LIST
    min_data_points_rt: int = DEFAULT_MIN_DATA_POINTS_RT
    min_total_signals: int = DEFAULT_MIN_TOTAL_SIGNALS
    scan_selection: ScanSelection = field(default_factory=ScanSelection)
    suffix: str = DEFAULT_TRACE_SUFFIX
    build_mobilograms: bool = False
    heatmap_cell_size: bool = False

    def __post_init__(self):
        if self.min_data_points_rt < 1:
            raise ValueError(f"min_data_points_rt must be >= 1, got {self.min_data_points_rt}")
        if self.min_total_signals < 1:
            raise ValueError(f"min_total_signals must be >= 1, got {self.min_total_signals}")
        if not self.mass_list:
            raise ValueError("mass_list must be a non-empty name")

    @classmethod
    def for_instrument(cls, mobility_type: MobilityType, **kwargs) -> 'TraceBuilderParams':
        """Create parameters with tolerances suited to a mobility technique.

        Args:
            mobility_type: Mobility technique enum
            **kwargs: Overrides for any other field

        Returns:
            TraceBuilderParams with technique-specific defaults
        """
        if mobility_type == MobilityType.TIMS:
            preset = dict(
                mz_tolerance=MZTolerance(absolute=0.005, ppm=15.0),  # timsTOF resolution
                min_data_points_rt=3,
                min_total_signals=20,
            )
        elif mobility_type in (MobilityType.DRIFT_TUBE, MobilityType.TRAVELING_WAVE):
            preset = dict(
                mz_tolerance=MZTolerance(absolute=0.005, ppm=20.0),
                min_data_points_rt=3,
                min_total_signals=15,
            )
        else:
            raise ValueError(f"No trace building preset for mobility type: {mobility_type}")

        preset.update(kwargs)
        return cls(**preset)


@dataclass
class TraceBuilderResult:
    """Committed output of a finished run."""

    traces: List[IonMobilityTrace]
    feature_list_name: str
    data_point_size: Optional[Tuple[float, float]] = None
    errors: List[str] = field(default_factory=list)
    n_points: int = 0
    n_intervals: int = 0

    def __len__(self) -> int:
        return len(self.traces)


class IonMobilityTraceBuilderTask(AbstractTask):
    """Worker task to build ion mobility traces for one raw data file.

    Parameters
    ----------
    frames : iterable of Frame
        All frames of the raw data file
    params : TraceBuilderParams
        Builder parameters
    raw_data_file_name : str
        Name used for the output feature list
    """

    task_description = "Detecting mobility ion traces"

    def __init__(
        self,
        frames: Iterable[Frame],
        params: TraceBuilderParams,
        raw_data_file_name: str = "raw",
    ):
        super().__init__()
        self.params = params
        self.raw_data_file_name = raw_data_file_name
        self.frames = params.scan_selection.select(frames)
        self.result: Optional[TraceBuilderResult] = None

    @property
    def feature_list_name(self) -> str:
        return f"{self.raw_data_file_name} {self.params.suffix}"

    def process(self) -> None:
        params = self.params

        data_point_size = calculate_data_point_size(self.frames) if params.heatmap_cell_size else None

        extraction = extract_signal_points(self.frames, params.mass_list, params.scan_selection)
        for message in extraction.errors:
            self.set_error(message)
        points = extraction.points

        # Allocation pass
        logger.info("Start m/z ranges calculation")
        allocator = ToleranceRangeAllocator(points['mz'], params.mz_tolerance)
        accumulator = TraceAccumulator()
        n_points = len(points)
        progress_step = 0.5 / n_points if n_points else 0.0

        for i in range(n_points):
            if self.is_canceled():
                return
            allocator.assign(i, i + 1)
            accumulator.add(allocator.assignment, i, i + 1)
            self.set_progress((i + 1) * progress_step)

        logger.info(f"✓ Allocated {n_points:,} points to {allocator.n_intervals:,} m/z ranges")

        # Finalization pass
        finalizer = TraceFinalizer(
            points, allocator, accumulator,
            min_total_signals=params.min_total_signals,
            min_data_points_rt=params.min_data_points_rt,
            mobility_type=resolve_mobility_type(self.frames),
            build_mobilograms=params.build_mobilograms,
        )
        n_intervals = len(finalizer)
        progress_step = 0.5 / n_intervals if n_intervals else 0.0

        traces = []
        for position in range(n_intervals):
            if self.is_canceled():
                return
            trace = finalizer.finalize_interval(position)
            if trace is not None:
                traces.append(trace)
            self.set_progress(0.5 + (position + 1) * progress_step)

        logger.info(
            f"✓ {finalizer.n_accepted:,} ion traces accepted, "
            f"{finalizer.n_rejected:,} rejected"
        )

        self.result = TraceBuilderResult(
            traces=sort_traces(traces),
            feature_list_name=self.feature_list_name,
            data_point_size=data_point_size,
            errors=list(extraction.errors),
            n_points=n_points,
            n_intervals=n_intervals,
        )


def build_ion_mobility_traces(
    frames: Iterable[Frame],
    params: Optional[TraceBuilderParams] = None,
) -> List[IonMobilityTrace]:
    """Build accepted traces directly, without task bookkeeping.

    Scans without the mass list are skipped (with a logged warning).

    Raises
    ------
    IntervalInvariantError
        If interval allocation breaks disjointness
    """
    params = params if params is not None else TraceBuilderParams()
    frames = params.scan_selection.select(frames)
    extraction = extract_signal_points(frames, params.mass_list, params.scan_selection)
    points = extraction.points

    allocator = ToleranceRangeAllocator(points['mz'], params.mz_tolerance)
    allocator.allocate_all()

    accumulator = TraceAccumulator()
    accumulator.add(allocator.assignment, 0, len(points))

    finalizer = TraceFinalizer(
        points, allocator, accumulator,
        min_total_signals=params.min_total_signals,
        min_data_points_rt=params.min_data_points_rt,
        mobility_type=resolve_mobility_type(frames),
        build_mobilograms=params.build_mobilograms,
    )
    return finalizer.finalize_all()


def resolve_mobility_type(frames: List[Frame]) -> MobilityType:
    """Mobility type of the first mobility-resolved frame (NONE if there is none)."""
    for frame in frames:
        if frame.is_mobility_resolved:
            return frame.mobility_type
    return MobilityType.NONE
