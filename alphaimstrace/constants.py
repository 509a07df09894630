"""Default tolerances, thresholds and kernel status codes.

This module collects the numeric defaults used throughout alphaimstrace so the
parameter dataclasses and the Numba kernels agree on them.

Constants are plain Python scalars so they can be used both from regular
Python code and as compile-time constants inside Numba JIT-compiled kernels.

Key Features
------------
- m/z tolerance defaults (absolute Da and relative ppm component)
- Trace acceptance thresholds (total signals, distinct retention times)
- Mobilogram thresholds (minimum signals, edge gap)
- Integer status codes returned by the interval allocation kernel
"""

# =============================================================================
# m/z Tolerance Defaults
# =============================================================================

# Absolute component (Da). The effective tolerance at a given m/z is
# max(absolute, mz * ppm / 1e6).
DEFAULT_MZ_TOLERANCE_ABS = 0.001  # Da

# Relative component
DEFAULT_MZ_TOLERANCE_PPM = 5.0  # ppm

# =============================================================================
# Trace Acceptance Defaults
# =============================================================================

# Minimum number of data points assigned to a trace
DEFAULT_MIN_TOTAL_SIGNALS = 20

# Minimum number of distinct retention times (frames) spanned by a trace
DEFAULT_MIN_DATA_POINTS_RT = 3

# =============================================================================
# Mobilogram Defaults
# =============================================================================

# A mobilogram is kept when it holds MORE than this many points
DEFAULT_MIN_MOBILOGRAM_SIGNALS = 7

# Interior gap filling needs more than this many points to estimate a step
MIN_POINTS_FOR_GAP_FILL = 3

# =============================================================================
# Default Names
# =============================================================================

DEFAULT_MASS_LIST = "masses"
DEFAULT_TRACE_SUFFIX = "iontraces"
DEFAULT_MOBILOGRAM_SUFFIX = "mobilograms"

# =============================================================================
# Interval Storage
# =============================================================================

# Smallest insertion buffer; the default is max(this, sqrt(n_points))
MIN_INSERTION_BUFFER = 64

# =============================================================================
# Allocation Kernel Status Codes
# =============================================================================

# All points in the requested slice were assigned
STATUS_OK = 0

# Main interval arrays cannot take a buffer merge; caller grows them and
# resumes at the returned index
STATUS_CAPACITY = 1

# lower > upper, or lower == upper with no neighbouring interval
STATUS_MALFORMED_BOUNDS = 2

# lower == upper where only the lower neighbour exists
STATUS_UNRESOLVED_TOUCHING = 3

# =============================================================================
# Allocation Actions (per point)
# =============================================================================

ACTION_CONTAINED = 0   # point falls inside an existing interval
ACTION_NEW = 1         # point opens a new interval
ACTION_TOUCHING = 2    # zero-width window, appended to the upper neighbour
