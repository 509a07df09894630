"""Tests for frame containers and signal point extraction.

Tests cover:
1. Frame and scan containers
2. Scan selection
3. Intensity ordering of extracted points
4. Missing mass lists
5. Heat map cell size
"""

import numpy as np
import pytest

from alphaimstrace.data import (
    SIGNAL_POINT_DTYPE,
    Frame,
    MobilityScan,
    MobilityType,
    ScanSelection,
    calculate_data_point_size,
    extract_signal_points,
    sort_by_intensity,
)


class TestContainers:
    """Frame and MobilityScan."""

    def test_add_mass_list(self):
        scan = MobilityScan(scan_number=1, retention_time=0.5, mobility=1.2)
        scan.add_mass_list("masses", [100.0, 200.0], [10.0, 20.0])
        mz, intensity = scan.get_mass_list("masses")
        assert mz.dtype == np.float64
        np.testing.assert_array_equal(intensity, [10.0, 20.0])

    def test_mass_list_length_mismatch(self):
        scan = MobilityScan(scan_number=1, retention_time=0.5)
        with pytest.raises(ValueError, match="differ in length"):
            scan.add_mass_list("masses", [100.0, 200.0], [10.0])

    def test_missing_mass_list_is_none(self):
        scan = MobilityScan(scan_number=1, retention_time=0.5)
        assert scan.get_mass_list("centroids") is None

    def test_frame_properties(self, make_frame):
        frame = make_frame(1, 0.5, {3: ([100.0], [1.0]), 1: ([100.0], [1.0])})
        assert frame.number_of_mobility_scans == 2
        assert frame.mobility_scan_numbers == [1, 3]
        low, high = frame.mobility_range
        assert low == pytest.approx(1.57)
        assert high == pytest.approx(1.59)
        assert frame.get_mobility_scan(3).scan_number == 3
        assert frame.get_mobility_scan(2) is None

    def test_mobility_units(self):
        assert MobilityType.TIMS.unit == "1/K0"
        assert MobilityType.DRIFT_TUBE.unit == "ms"


class TestScanSelection:
    """Frame and scan filters."""

    def test_default_selects_everything_sorted(self, make_frame):
        frames = [make_frame(i, 0.5 * i, {}) for i in (3, 1, 2)]
        selected = ScanSelection().select(frames)
        assert [f.frame_id for f in selected] == [1, 2, 3]

    def test_ms_level_and_rt_range(self, make_frame):
        frames = [
            make_frame(1, 0.5, {}),
            make_frame(2, 1.0, {}, ms_level=2),
            make_frame(3, 1.5, {}),
            make_frame(4, 2.0, {}),
        ]
        selection = ScanSelection(ms_level=1, rt_range=(0.5, 1.5))
        assert [f.frame_id for f in selection.select(frames)] == [1, 3]

    def test_scan_number_range(self):
        selection = ScanSelection(scan_number_range=(2, 4))
        assert selection.matches_scan(MobilityScan(2, 0.0))
        assert not selection.matches_scan(MobilityScan(5, 0.0))

    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError, match="rt_range"):
            ScanSelection(rt_range=(2.0, 1.0))


class TestExtractSignalPoints:
    """Flattening frames into intensity-ordered points."""

    def test_ascending_intensity(self, synthetic_frames):
        result = extract_signal_points(synthetic_frames, "masses")
        assert result.points.dtype == SIGNAL_POINT_DTYPE
        assert np.all(np.diff(result.points['intensity']) >= 0)
        assert len(result) == 63
        assert result.n_frames == 5
        assert result.errors == []

    def test_point_fields(self, make_frame):
        frame = make_frame(7, 2.5, {4: ([321.0], [99.0])})
        points = extract_signal_points([frame], "masses").points
        assert len(points) == 1
        point = points[0]
        assert point['mz'] == 321.0
        assert point['rt'] == pytest.approx(2.5)
        assert point['mobility'] == pytest.approx(1.56)
        assert point['frame_id'] == 7
        assert point['scan_number'] == 4

    def test_unmeasured_mobility_is_nan(self):
        scan = MobilityScan(scan_number=1, retention_time=0.5)
        scan.add_mass_list("masses", [100.0], [1.0])
        frame = Frame(frame_id=1, retention_time=0.5, scans=[scan])
        points = extract_signal_points([frame], "masses").points
        assert np.isnan(points['mobility'][0])

    def test_ties_broken_by_scan_then_mz(self, make_frame):
        frame = make_frame(1, 0.5, {
            2: ([300.0, 100.0], [10.0, 10.0]),
            1: ([200.0], [10.0]),
        })
        points = extract_signal_points([frame], "masses").points
        np.testing.assert_array_equal(points['scan_number'], [1, 2, 2])
        np.testing.assert_array_equal(points['mz'], [200.0, 100.0, 300.0])

    def test_missing_mass_list_reported(self, make_frame):
        frame = make_frame(1, 0.5, {1: ([100.0], [5.0]), 2: None, 3: ([100.0], [6.0])})
        result = extract_signal_points([frame], "masses")
        assert len(result) == 2
        assert result.errors == ["Scan #2 does not have a mass list masses"]
        assert result.n_skipped_scans == 1

    def test_frames_without_mobility_skipped(self, make_frame):
        frames = [
            make_frame(1, 0.5, {1: ([100.0], [5.0])}),
            make_frame(2, 1.0, {1: ([100.0], [5.0])}, is_mobility_resolved=False),
        ]
        result = extract_signal_points(frames, "masses")
        assert len(result) == 1
        assert result.n_frames == 1

    def test_scan_selection_applied(self, synthetic_frames):
        selection = ScanSelection(frame_id_range=(1, 2), scan_number_range=(3, 4))
        points = extract_signal_points(synthetic_frames, "masses", selection).points
        assert set(points['frame_id']) == {1, 2}
        assert set(points['scan_number']) == {3, 4}

    def test_empty_input(self):
        result = extract_signal_points([], "masses")
        assert len(result) == 0
        assert result.points.dtype == SIGNAL_POINT_DTYPE


class TestSortByIntensity:

    def test_intensity_is_primary_key(self):
        points = np.zeros(3, dtype=SIGNAL_POINT_DTYPE)
        points['intensity'] = [3.0, 1.0, 2.0]
        points['scan_number'] = [1, 3, 2]
        np.testing.assert_array_equal(sort_by_intensity(points)['intensity'], [1.0, 2.0, 3.0])


class TestDataPointSize:
    """Heat map cell size."""

    def test_two_frames(self, make_frame):
        frames = [
            make_frame(2, 1.0, {s: ([100.0], [1.0]) for s in range(1, 5)}),
            make_frame(1, 0.5, {s: ([100.0], [1.0]) for s in range(1, 5)}),
        ]
        width, height = calculate_data_point_size(frames)
        assert width == pytest.approx(0.5)
        assert height == pytest.approx(0.25)

    def test_ms2_frames_ignored(self, make_frame):
        frames = [
            make_frame(1, 0.5, {1: ([100.0], [1.0])}),
            make_frame(2, 0.7, {1: ([100.0], [1.0])}, ms_level=2),
            make_frame(3, 1.5, {1: ([100.0], [1.0]), 2: ([100.0], [1.0])}),
        ]
        width, height = calculate_data_point_size(frames)
        assert width == pytest.approx(1.0)
        assert height == pytest.approx(0.5)

    def test_single_frame(self, make_frame):
        assert calculate_data_point_size([make_frame(1, 0.5, {})]) == (0.0, 0.0)
