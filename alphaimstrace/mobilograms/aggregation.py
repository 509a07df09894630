"""Per-frame mobilogram aggregation by tolerance join.

Within a single frame, every not-yet-consumed point (in ascending intensity
order) seeds a mobilogram. The seed collects every point of the frame within
m/z tolerance of it, keeping only the first point encountered per mobility
scan. Mobilograms with more than ``min_signals`` points are kept and their
members are marked consumed, so they do not seed duplicates.

This is an O(n^2) join. It is bounded by the number of points in one frame,
which is why it runs per frame and never across a whole file.

Examples
--------
>>> mobilograms = calculate_mobilograms(
...     frame, mass_list="masses",
...     mz_tolerance=MZTolerance(0.001, 5.0), min_signals=7
... )
>>> [m.mz for m in mobilograms]  # ascending m/z
"""

import logging
from typing import List, Optional, Tuple

import numpy as np
from numba import njit

from ..data.frames import Frame, MobilityType
from ..tolerance import MZTolerance, tolerance_window
from .mobilogram import Mobilogram

logger = logging.getLogger(__name__)


FRAME_POINT_DTYPE = np.dtype([
    ('mz', 'f8'),
    ('intensity', 'f8'),
    ('mobility', 'f8'),
    ('scan_number', 'i8'),
])


def extract_frame_points(
    frame: Frame, mass_list: str
) -> Tuple[Optional[np.ndarray], List[str]]:
    """All mass list points of one frame, ascending intensity.

    Ties are broken by scan number, then m/z. Scans without the mass list are
    skipped and reported.

    Returns
    -------
    points : np.ndarray or None
        Structured array (FRAME_POINT_DTYPE); None if the frame has no scans
        or its first scan carries no mass list of that name
    errors : list of str
        One message per scan (or per frame) missing the mass list
    """
    if not frame.scans:
        return None, []
    if frame.scans[0].get_mass_list(mass_list) is None:
        message = f"Frame {frame.frame_id} does not have a mass list {mass_list}"
        logger.warning(message)
        return None, [message]

    chunks = []
    errors = []
    for scan in frame.scans:
        peaks = scan.get_mass_list(mass_list)
        if peaks is None:
            message = (
                f"Frame {frame.frame_id}: scan #{scan.scan_number} does not have "
                f"a mass list {mass_list}"
            )
            logger.warning(message)
            errors.append(message)
            continue
        mz, intensity = peaks
        chunk = np.empty(len(mz), dtype=FRAME_POINT_DTYPE)
        chunk['mz'] = mz
        chunk['intensity'] = intensity
        chunk['mobility'] = np.nan if scan.mobility is None else scan.mobility
        chunk['scan_number'] = scan.scan_number
        chunks.append(chunk)

    points = np.concatenate(chunks) if chunks else np.empty(0, dtype=FRAME_POINT_DTYPE)
    order = np.lexsort((points['mz'], points['scan_number'], points['intensity']))
    return points[order], errors


@njit
def collect_within_tolerance(
    seed_index: int,
    mz: np.ndarray,
    scan_indices: np.ndarray,
    n_scans: int,
    absolute: float,
    ppm: float,
) -> np.ndarray:
    """Indices of points joining the mobilogram seeded at seed_index.

    The seed is taken first; then all points are scanned in order and a point
    is taken if it is within tolerance of the seed and its scan is not
    represented yet.

    Parameters
    ----------
    seed_index : int
        Index of the seed point
    mz : np.ndarray
        m/z of all points of the frame (iteration order)
    scan_indices : np.ndarray (int64)
        Dense scan index (0 .. n_scans - 1) of all points
    n_scans : int
        Number of distinct scans
    absolute, ppm : float
        Tolerance components

    Returns
    -------
    np.ndarray (int64)
        Member indices, seed first, then in iteration order
    """
    n = len(mz)
    members = np.empty(n, dtype=np.int64)
    members[0] = seed_index
    n_members = 1

    seen = np.zeros(n_scans, dtype=np.bool_)
    seen[scan_indices[seed_index]] = True
    lower, upper = tolerance_window(mz[seed_index], absolute, ppm)

    for i in range(n):
        if i == seed_index:
            continue
        if lower <= mz[i] <= upper and not seen[scan_indices[i]]:
            seen[scan_indices[i]] = True
            members[n_members] = i
            n_members += 1

    return members[:n_members]


def join_frame_points(
    points: np.ndarray,
    mobility_type: MobilityType,
    mz_tolerance: MZTolerance,
    min_signals: int,
) -> List[Mobilogram]:
    """Tolerance join over the points of one frame.

    Parameters
    ----------
    points : np.ndarray
        FRAME_POINT_DTYPE points in ascending intensity order
    mobility_type : MobilityType
        Mobility technique of the frame
    mz_tolerance : MZTolerance
        Tolerance around each seed
    min_signals : int
        A mobilogram is kept only with MORE than this many points

    Returns
    -------
    list of Mobilogram
        Calculated mobilograms sorted by median m/z
    """
    if len(points) == 0:
        return []

    mz = np.ascontiguousarray(points['mz'])
    unique_scans, scan_indices = np.unique(points['scan_number'], return_inverse=True)
    scan_indices = np.ascontiguousarray(scan_indices, dtype=np.int64)
    n_scans = len(unique_scans)
    consumed = np.zeros(len(points), dtype=np.bool_)

    mobilograms = []
    for seed_index in range(len(points)):
        if consumed[seed_index]:
            continue

        members = collect_within_tolerance(
            seed_index, mz, scan_indices, n_scans, mz_tolerance.absolute, mz_tolerance.ppm
        )
        if len(members) <= min_signals:
            continue

        mobilogram = Mobilogram(mobility_type)
        for index in members:
            point = points[index]
            mobilogram.add_data_point(
                point['mz'], point['intensity'], point['mobility'], point['scan_number']
            )
        mobilogram.calc()
        mobilograms.append(mobilogram)
        consumed[members] = True

    mobilograms.sort(key=lambda m: m.mz)
    return mobilograms


def calculate_mobilograms(
    frame: Frame,
    mass_list: str,
    mz_tolerance: MZTolerance,
    min_signals: int,
) -> List[Mobilogram]:
    """Build the calculated mobilograms of one frame.

    Scans missing the mass list are skipped with a warning; use
    :func:`extract_frame_points` and :func:`join_frame_points` directly to
    collect those messages.

    Returns
    -------
    list of Mobilogram
        Calculated mobilograms sorted by median m/z (empty if the frame
        lacks the mass list)
    """
    points, _ = extract_frame_points(frame, mass_list)
    if points is None:
        return []

    mobilograms = join_frame_points(points, frame.mobility_type, mz_tolerance, min_signals)
    logger.debug(
        f"Frame {frame.frame_id}: {len(mobilograms):,} mobilograms from {len(points):,} points"
    )
    return mobilograms
