"""Per-frame mobility profiles (mobilograms).

This module provides:
- Mobilogram container with median representative values and gap filling
- Per-frame tolerance join building one mobilogram per seed point
- A cancellable builder task over all frames of a file
"""

from .mobilogram import (
    MOBILITY_POINT_DTYPE,
    Mobilogram,
)

from .aggregation import (
    FRAME_POINT_DTYPE,
    calculate_mobilograms,
    collect_within_tolerance,
    extract_frame_points,
    join_frame_points,
)

from .builder import (
    MobilogramBuilderParams,
    MobilogramBuilderTask,
    build_frame_mobilograms,
    fill_gaps,
)

__all__ = [
    # Container
    'MOBILITY_POINT_DTYPE',
    'Mobilogram',

    # Aggregation
    'FRAME_POINT_DTYPE',
    'calculate_mobilograms',
    'collect_within_tolerance',
    'extract_frame_points',
    'join_frame_points',

    # Task
    'MobilogramBuilderParams',
    'MobilogramBuilderTask',
    'build_frame_mobilograms',
    'fill_gaps',
]
