"""Frame/scan containers and signal point extraction."""

from .frames import (
    Frame,
    MobilityScan,
    MobilityType,
    ScanSelection,
)

from .points import (
    SIGNAL_POINT_DTYPE,
    ExtractionResult,
    calculate_data_point_size,
    extract_signal_points,
    sort_by_intensity,
)

__all__ = [
    # Containers
    'Frame',
    'MobilityScan',
    'MobilityType',
    'ScanSelection',

    # Extraction
    'SIGNAL_POINT_DTYPE',
    'ExtractionResult',
    'calculate_data_point_size',
    'extract_signal_points',
    'sort_by_intensity',
]
