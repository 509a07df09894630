"""Frames, mobility scans and scan selection.

A frame is a set of mobility-resolved scans acquired at one retention time.
Each scan carries one or more named mass lists (peak lists after a noise
reduction step) as parallel m/z / intensity arrays.

Readers for vendor formats are out of scope; anything that can produce these
containers can feed the trace and mobilogram builders.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np


class MobilityType(Enum):
    """Ion mobility separation technique."""
    NONE = "none"
    DRIFT_TUBE = "drift_tube"
    TRAVELING_WAVE = "traveling_wave"
    TIMS = "tims"

    @property
    def unit(self) -> str:
        return _MOBILITY_UNITS[self]


_MOBILITY_UNITS = {
    MobilityType.NONE: "",
    MobilityType.DRIFT_TUBE: "ms",
    MobilityType.TRAVELING_WAVE: "ms",
    MobilityType.TIMS: "1/K0",
}


@dataclass
class MobilityScan:
    """One mobility-resolved spectrum.

    Attributes
    ----------
    scan_number : int
        Mobility scan number
    retention_time : float
        Retention time of the parent frame
    mobility : float or None
        Mobility value; None when not measured
    mass_lists : dict
        Mass list name -> (mz_array, intensity_array)
    """

    scan_number: int
    retention_time: float
    mobility: Optional[float] = None
    mass_lists: Dict[str, Tuple[np.ndarray, np.ndarray]] = field(default_factory=dict)

    def get_mass_list(self, name: str) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        return self.mass_lists.get(name)

    def add_mass_list(self, name: str, mz: np.ndarray, intensity: np.ndarray) -> None:
        mz = np.asarray(mz, dtype=np.float64)
        intensity = np.asarray(intensity, dtype=np.float64)
        if mz.shape != intensity.shape:
            raise ValueError(
                f"Mass list '{name}' of scan #{self.scan_number}: "
                f"m/z and intensity arrays differ in length ({len(mz)} vs {len(intensity)})"
            )
        self.mass_lists[name] = (mz, intensity)


@dataclass
class Frame:
    """Collection of mobility scans captured at one retention time.

    ``is_mobility_resolved`` is the capability flag checked once at extraction
    time: frames without it (e.g. plain MS1 spectra interleaved in a run) do
    not contribute points to traces or mobilograms.
    """

    frame_id: int
    retention_time: float
    ms_level: int = 1
    mobility_type: MobilityType = MobilityType.TIMS
    scans: List[MobilityScan] = field(default_factory=list)
    is_mobility_resolved: bool = True

    @property
    def number_of_mobility_scans(self) -> int:
        return len(self.scans)

    @property
    def mobility_scan_numbers(self) -> List[int]:
        return sorted(scan.scan_number for scan in self.scans)

    @property
    def mobility_range(self) -> Optional[Tuple[float, float]]:
        mobilities = [scan.mobility for scan in self.scans if scan.mobility is not None]
        if not mobilities:
            return None
        return min(mobilities), max(mobilities)

    def get_mobility_scan(self, scan_number: int) -> Optional[MobilityScan]:
        for scan in self.scans:
            if scan.scan_number == scan_number:
                return scan
        return None


@dataclass
class ScanSelection:
    """Frame/scan filter. ``None`` fields do not restrict.

    Ranges are inclusive on both ends.
    """

    ms_level: Optional[int] = None
    rt_range: Optional[Tuple[float, float]] = None
    frame_id_range: Optional[Tuple[int, int]] = None
    scan_number_range: Optional[Tuple[int, int]] = None

    def __post_init__(self):
        for name in ("rt_range", "frame_id_range", "scan_number_range"):
            value = getattr(self, name)
            if value is not None and value[0] > value[1]:
                raise ValueError(f"{name} lower bound exceeds upper bound: {value}")

    def matches(self, frame: Frame) -> bool:
        if self.ms_level is not None and frame.ms_level != self.ms_level:
            return False
        if self.rt_range is not None and not (
            self.rt_range[0] <= frame.retention_time <= self.rt_range[1]
        ):
            return False
        if self.frame_id_range is not None and not (
            self.frame_id_range[0] <= frame.frame_id <= self.frame_id_range[1]
        ):
            return False
        return True

    def matches_scan(self, scan: MobilityScan) -> bool:
        if self.scan_number_range is None:
            return True
        return self.scan_number_range[0] <= scan.scan_number <= self.scan_number_range[1]

    def select(self, frames: Iterable[Frame]) -> List[Frame]:
        """Matching frames in frame-id order."""
        return sorted((f for f in frames if self.matches(f)), key=lambda f: f.frame_id)
