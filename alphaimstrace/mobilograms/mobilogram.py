"""Mobilogram: a 1-D intensity-vs-mobility profile for one m/z in one frame.

Data points are keyed by mobility scan number (at most one point per scan) and
iterated in scan order. Representative values (median m/z, median mobility,
highest point) are derived values: they are computed by :meth:`Mobilogram.calc`
and become stale whenever points are added, so reading them before the next
``calc()`` raises.

Gap filling inserts synthetic zero-intensity points so that plotted profiles
drop to zero between separated signals instead of being bridged by a line.
"""

from typing import Dict, List, Optional, Tuple

import numpy as np

from ..constants import MIN_POINTS_FOR_GAP_FILL
from ..data.frames import MobilityType


MOBILITY_POINT_DTYPE = np.dtype([
    ('mz', 'f8'),
    ('intensity', 'f8'),
    ('mobility', 'f8'),
    ('scan_number', 'i8'),
    ('synthetic', '?'),
])

_PointTuple = Tuple[float, float, float, int, bool]


def _as_point_array(points: List[_PointTuple]) -> np.ndarray:
    return np.array(points, dtype=MOBILITY_POINT_DTYPE)


class Mobilogram:
    """Mobility profile with one data point per mobility scan.

    Parameters
    ----------
    mobility_type : MobilityType
        Mobility technique of the frame (for units and display)

    Examples
    --------
    >>> mobilogram = Mobilogram(MobilityType.TIMS)
    >>> mobilogram.add_data_point(500.001, 1e4, 1.02, scan_number=10)
    >>> mobilogram.add_data_point(500.002, 3e4, 1.01, scan_number=11)
    >>> mobilogram.calc()
    >>> mobilogram.mz
    500.0015
    """

    def __init__(self, mobility_type: MobilityType = MobilityType.TIMS):
        self.mobility_type = mobility_type
        self._points: Dict[int, _PointTuple] = {}
        self._mz_range: Optional[Tuple[float, float]] = None
        self._mobility_range: Optional[Tuple[float, float]] = None

        self._mz: float = np.nan
        self._mobility: float = np.nan
        self._highest: Optional[np.void] = None
        self._calculated = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_data_point(
        self,
        mz: float,
        intensity: float,
        mobility: Optional[float],
        scan_number: int,
    ) -> None:
        """Add a measured point; replaces any point already stored for the scan."""
        mobility = np.nan if mobility is None else float(mobility)
        mz = float(mz)
        self._points[int(scan_number)] = (mz, float(intensity), mobility, int(scan_number), False)

        if self._mz_range is None:
            self._mz_range = (mz, mz)
        else:
            self._mz_range = (min(self._mz_range[0], mz), max(self._mz_range[1], mz))

        if not np.isnan(mobility):
            if self._mobility_range is None:
                self._mobility_range = (mobility, mobility)
            else:
                self._mobility_range = (
                    min(self._mobility_range[0], mobility),
                    max(self._mobility_range[1], mobility),
                )

        self._calculated = False

    def _add_synthetic_point(self, mz: float, mobility: float, scan_number: int) -> _PointTuple:
        point = (float(mz), 0.0, float(mobility), int(scan_number), True)
        self._points[int(scan_number)] = point
        self._calculated = False
        return point

    def contains_scan(self, scan_number: int) -> bool:
        return int(scan_number) in self._points

    def calc(self) -> None:
        """Recompute median m/z, median mobility and the highest data point."""
        if not self._points:
            raise ValueError("Cannot calculate an empty mobilogram")

        points = self.data_points
        self._mz = float(np.median(points['mz']))

        mobilities = points['mobility'][~np.isnan(points['mobility'])]
        self._mobility = float(np.median(mobilities)) if len(mobilities) else np.nan

        # First maximum in scan order
        self._highest = points[int(np.argmax(points['intensity']))]
        self._calculated = True

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._points)

    def _require_calculated(self) -> None:
        if not self._calculated:
            raise RuntimeError(
                "Mobilogram values are stale; call calc() after adding data points"
            )

    @property
    def is_calculated(self) -> bool:
        return self._calculated

    @property
    def mz(self) -> float:
        """Median m/z (requires calc())."""
        self._require_calculated()
        return self._mz

    @property
    def mobility(self) -> Optional[float]:
        """Median mobility, None if no point has a mobility (requires calc())."""
        self._require_calculated()
        return None if np.isnan(self._mobility) else self._mobility

    @property
    def highest_data_point(self) -> np.void:
        self._require_calculated()
        return self._highest

    @property
    def maximum_intensity(self) -> float:
        self._require_calculated()
        return float(self._highest['intensity'])

    @property
    def mz_range(self) -> Optional[Tuple[float, float]]:
        """m/z extent of the measured points."""
        return self._mz_range

    @property
    def mobility_range(self) -> Optional[Tuple[float, float]]:
        """Mobility extent of the measured points."""
        return self._mobility_range

    @property
    def scan_numbers(self) -> List[int]:
        return sorted(self._points)

    @property
    def data_points(self) -> np.ndarray:
        """All points (MOBILITY_POINT_DTYPE) in scan-number order."""
        return _as_point_array([self._points[scan] for scan in sorted(self._points)])

    @property
    def n_synthetic(self) -> int:
        return sum(1 for point in self._points.values() if point[4])

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """(mobility, intensity) arrays in scan order, for plotting."""
        points = self.data_points
        return points['mobility'].copy(), points['intensity'].copy()

    def representative_string(self) -> str:
        unit = self.mobility_type.unit
        mobility = self.mobility
        mobility_str = "n/a" if mobility is None else f"{mobility:.4f}"
        return (
            f"{self._mz_range[0]:.4f} - {self._mz_range[1]:.4f} "
            f"@{mobility_str} {unit} ({len(self)})"
        )

    def __repr__(self) -> str:
        if self._calculated:
            return f"Mobilogram(mz={self._mz:.4f}, n_points={len(self)})"
        return f"Mobilogram(n_points={len(self)}, not calculated)"

    # ------------------------------------------------------------------
    # Gap filling
    # ------------------------------------------------------------------

    def mobility_step_size(self) -> float:
        """Signed mobility change per scan, from the first two points.

        TIMS mobility decreases with scan number, drift time increases, so the
        sign is kept. Returns 0.0 for fewer than two points.
        """
        if len(self._points) < 2:
            return 0.0
        first, second = sorted(self._points)[:2]
        delta = self._points[second][2] - self._points[first][2]
        return float(delta / (second - first))

    def _reference_mz(self) -> float:
        if not self._calculated:
            self.calc()
        return self._mz

    def fill_missing_scans_with_zeros(self) -> np.ndarray:
        """Insert a zero-intensity point for every missing scan between first and last.

        Mobility of an inserted point is extrapolated from the closest point
        below it by the step size. Mobilograms with MIN_POINTS_FOR_GAP_FILL
        points or fewer are left unchanged.

        Returns
        -------
        np.ndarray
            The inserted points (MOBILITY_POINT_DTYPE)
        """
        if len(self._points) <= MIN_POINTS_FOR_GAP_FILL:
            return _as_point_array([])

        step = self.mobility_step_size()
        mz = self._reference_mz()
        scans = sorted(self._points)

        new_points = []
        for previous, following in zip(scans[:-1], scans[1:]):
            last_mobility = self._points[previous][2]
            for offset, scan_number in enumerate(range(previous + 1, following), start=1):
                new_points.append(
                    self._add_synthetic_point(mz, last_mobility + step * offset, scan_number)
                )

        self.calc()
        return _as_point_array(new_points)

    def fill_edges_with_zeros(self, min_gap: int) -> np.ndarray:
        """Add zero-intensity points at both edges of every gap wider than min_gap scans.

        Gaps are measured between measured (non-synthetic) points. Scans that
        already hold a point are never overwritten, so repeating the call with
        the same min_gap inserts nothing.

        Parameters
        ----------
        min_gap : int
            Gap (difference in scan number) that must be exceeded

        Returns
        -------
        np.ndarray
            The inserted points (MOBILITY_POINT_DTYPE)
        """
        if min_gap < 0:
            raise ValueError(f"min_gap must be non-negative, got {min_gap}")
        if not self._points:
            return _as_point_array([])

        step = self.mobility_step_size()
        mz = self._reference_mz()
        measured = [scan for scan in sorted(self._points) if not self._points[scan][4]]

        new_points = []
        for scan_number, next_scan in zip(measured[:-1], measured[1:]):
            gap = next_scan - scan_number
            if gap <= min_gap:
                continue
            mobility = self._points[scan_number][2]
            for offset in (1, gap - 1):
                edge_scan = scan_number + offset
                if edge_scan not in self._points:
                    new_points.append(
                        self._add_synthetic_point(mz, mobility + step * offset, edge_scan)
                    )

        self.calc()
        return _as_point_array(new_points)
