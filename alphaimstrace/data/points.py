"""Signal point extraction from mobility-resolved frames.

Flattens the mass lists of all selected frames into a single structured numpy
array of signal points ordered by ascending intensity. This ordering is what
the tolerance range allocator consumes: low-intensity points seed intervals
first, and the brighter points of the same species land in them afterwards.

Missing mass lists are not fatal. The scan is skipped, a warning is logged
and the message is returned so the calling task can report an error status
once the run has finished.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .frames import Frame, ScanSelection

logger = logging.getLogger(__name__)


# Structured dtype for one signal point. mobility is NaN when not measured.
SIGNAL_POINT_DTYPE = np.dtype([
    ('mz', 'f8'),
    ('intensity', 'f8'),
    ('rt', 'f4'),
    ('mobility', 'f8'),
    ('frame_id', 'i8'),
    ('scan_number', 'i8'),
])


@dataclass
class ExtractionResult:
    """Output of :func:`extract_signal_points`.

    Attributes
    ----------
    points : np.ndarray
        Structured array (SIGNAL_POINT_DTYPE), ascending intensity
    errors : list of str
        One message per scan that lacked the requested mass list
    n_frames : int
        Number of frames that contributed scans
    """

    points: np.ndarray
    errors: List[str] = field(default_factory=list)
    n_frames: int = 0

    @property
    def n_skipped_scans(self) -> int:
        return len(self.errors)

    def __len__(self) -> int:
        return len(self.points)


def sort_by_intensity(points: np.ndarray) -> np.ndarray:
    """Sort points by intensity, then scan number, m/z and frame id.

    np.lexsort uses the LAST key as the primary key.
    """
    order = np.lexsort((
        points['frame_id'],
        points['mz'],
        points['scan_number'],
        points['intensity'],
    ))
    return points[order]


def extract_signal_points(
    frames: Iterable[Frame],
    mass_list: str,
    scan_selection: Optional[ScanSelection] = None,
) -> ExtractionResult:
    """Extract all retention time and mobility resolved points, sorted by intensity.

    Parameters
    ----------
    frames : iterable of Frame
        Frames to extract from
    mass_list : str
        Name of the mass list to read from each mobility scan
    scan_selection : ScanSelection, optional
        Frame/scan filter (default: all frames)

    Returns
    -------
    ExtractionResult
        Points in ascending intensity order plus per-scan error messages

    Examples
    --------
    >>> result = extract_signal_points(frames, mass_list="masses")
    >>> result.points['mz'][:3]
    >>> if result.errors:
    ...     print(result.errors[0])  # "Scan #12 does not have a mass list masses"
    """
    logger.info("Start data point extraction")
    selection = scan_selection if scan_selection is not None else ScanSelection()

    chunks = []
    errors = []
    n_frames = 0

    for frame in selection.select(frames):
        if not frame.is_mobility_resolved:
            continue
        n_frames += 1

        for scan in frame.scans:
            if not selection.matches_scan(scan):
                continue

            peaks = scan.get_mass_list(mass_list)
            if peaks is None:
                message = f"Scan #{scan.scan_number} does not have a mass list {mass_list}"
                logger.warning(message)
                errors.append(message)
                continue

            mz, intensity = peaks
            n_peaks = len(mz)
            if n_peaks == 0:
                continue

            chunk = np.empty(n_peaks, dtype=SIGNAL_POINT_DTYPE)
            chunk['mz'] = mz
            chunk['intensity'] = intensity
            chunk['rt'] = scan.retention_time
            chunk['mobility'] = np.nan if scan.mobility is None else scan.mobility
            chunk['frame_id'] = frame.frame_id
            chunk['scan_number'] = scan.scan_number
            chunks.append(chunk)

    if chunks:
        points = sort_by_intensity(np.concatenate(chunks))
    else:
        points = np.empty(0, dtype=SIGNAL_POINT_DTYPE)

    logger.info(f"✓ Extracted {len(points):,} ims data points from {n_frames:,} frames")
    if errors:
        logger.warning(f"  {len(errors):,} scans skipped (missing mass list '{mass_list}')")

    return ExtractionResult(points=points, errors=errors, n_frames=n_frames)


def calculate_data_point_size(frames: Iterable[Frame]) -> Tuple[float, float]:
    """Heat map cell size for retention time / mobility plots.

    Width is the retention time step between the first two MS1 frames (in
    frame-id order); height is 1 / number of mobility scans of the second one.

    Returns
    -------
    width : float
        Retention time step (0.0 if fewer than two MS1 frames)
    height : float
        Relative mobility step (0.0 if fewer than two MS1 frames)
    """
    ms1_frames = [f for f in sorted(frames, key=lambda f: f.frame_id) if f.ms_level == 1]
    if len(ms1_frames) < 2:
        return 0.0, 0.0

    first, second = ms1_frames[0], ms1_frames[1]
    width = abs(first.retention_time - second.retention_time)
    n_scans = second.number_of_mobility_scans
    height = 1.0 / n_scans if n_scans > 0 else 0.0
    return float(width), height
