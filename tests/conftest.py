"""Pytest configuration for alphaimstrace tests.

Provides factories for small synthetic frames so tests can build
mobility-resolved data without any raw file reader.
"""

import numpy as np
import pytest

from alphaimstrace.data import Frame, MobilityScan, MobilityType


def scan_mobility(scan_number):
    """TIMS-like mobility: decreases with scan number."""
    return 1.6 - 0.01 * scan_number


@pytest.fixture
def make_frame():
    """Factory: frame from {scan_number: (mz_list, intensity_list)}.

    Scans listed with ``None`` have no mass list.
    """
    def _make_frame(
        frame_id,
        retention_time,
        peaks_by_scan,
        mass_list="masses",
        mobility_type=MobilityType.TIMS,
        ms_level=1,
        is_mobility_resolved=True,
    ):
        scans = []
        for scan_number in sorted(peaks_by_scan):
            scan = MobilityScan(
                scan_number=scan_number,
                retention_time=retention_time,
                mobility=scan_mobility(scan_number),
            )
            peaks = peaks_by_scan[scan_number]
            if peaks is not None:
                scan.add_mass_list(mass_list, peaks[0], peaks[1])
            scans.append(scan)
        return Frame(
            frame_id=frame_id,
            retention_time=retention_time,
            ms_level=ms_level,
            mobility_type=mobility_type,
            scans=scans,
            is_mobility_resolved=is_mobility_resolved,
        )
    return _make_frame


def species_intensity(frame_id, scan_number, height, apex_frame=3, apex_scan=5):
    """Pyramid-shaped elution/mobility profile with a unique apex."""
    return height / (1 + abs(frame_id - apex_frame) + abs(scan_number - apex_scan))


@pytest.fixture
def synthetic_frames(make_frame):
    """Five frames, scans 1-10, two species and one short-lived noise peak.

    - m/z 500.0: scans 3-8 of every frame (30 points), apex frame 3 / scan 5
    - m/z 600.0: scans 3-8 of every frame (30 points), twice as intense
    - m/z 700.0: scans 3-5 of frame 2 only (3 points)

    Retention time of frame f is 0.5 * f, exact in float32.
    """
    frames = []
    for frame_id in range(1, 6):
        peaks_by_scan = {}
        for scan_number in range(1, 11):
            mz, intensity = [], []
            if 3 <= scan_number <= 8:
                jitter = 0.0001 * ((frame_id + scan_number) % 5 - 2)
                mz.append(500.0 + jitter)
                intensity.append(species_intensity(frame_id, scan_number, 1e4))
                mz.append(600.0 - jitter)
                intensity.append(species_intensity(frame_id, scan_number, 2e4))
            if frame_id == 2 and 3 <= scan_number <= 5:
                mz.append(700.0)
                intensity.append(50.0)
            peaks_by_scan[scan_number] = (mz, intensity)
        frames.append(make_frame(frame_id, 0.5 * frame_id, peaks_by_scan))
    return frames


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
