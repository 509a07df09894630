"""Ion mobility trace building.

Groups retention time and mobility resolved signal points into traces that
share an m/z neighbourhood across frames.

Key Features
------------
- Online partitioning of the m/z axis into disjoint tolerance intervals
- Binary search lookup on sorted interval arrays (Numba)
- One-pass trace finalization with acceptance thresholds
- Cancellable, progress-reporting builder task

Examples
--------
>>> from alphaimstrace.traces import TraceBuilderParams, build_ion_mobility_traces
>>> traces = build_ion_mobility_traces(frames, TraceBuilderParams(mass_list="masses"))
>>> traces[0].mz, traces[0].mobility, len(traces[0].scan_numbers)
"""

from .allocator import (
    IntervalInvariantError,
    ToleranceRangeAllocator,
    UnresolvedBoundaryError,
    allocate_points,
    find_containing_interval,
    intervals_are_disjoint,
    resolve_point,
)

from .accumulator import (
    TraceAccumulator,
)

from .finalizer import (
    IonMobilityTrace,
    TraceFinalizer,
    count_distinct_retention_times,
    finalize_trace,
    passes_thresholds,
    summarize_trace,
)

from .builder import (
    IonMobilityTraceBuilderTask,
    TraceBuilderParams,
    TraceBuilderResult,
    build_ion_mobility_traces,
)

__all__ = [
    # Allocation
    "IntervalInvariantError",
    "ToleranceRangeAllocator",
    "UnresolvedBoundaryError",
    "allocate_points",
    "find_containing_interval",
    "intervals_are_disjoint",
    "resolve_point",
    # Accumulation
    "TraceAccumulator",
    # Finalization
    "IonMobilityTrace",
    "TraceFinalizer",
    "count_distinct_retention_times",
    "finalize_trace",
    "passes_thresholds",
    "summarize_trace",
    # Task
    "IonMobilityTraceBuilderTask",
    "TraceBuilderParams",
    "TraceBuilderResult",
    "build_ion_mobility_traces",
]
