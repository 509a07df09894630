"""Tests for the Mobilogram container and gap filling.

Tests cover:
1. Stale representative values
2. One point per scan
3. Median m/z and mobility, highest point
4. Interior gap filling (signed step)
5. Edge filling and its idempotence
"""

import numpy as np
import pytest

from alphaimstrace.data import MobilityType
from alphaimstrace.mobilograms import MOBILITY_POINT_DTYPE, Mobilogram


def make_mobilogram(scans, mobility_start=1.0, mobility_step=-0.01, mz=500.0, intensity=100.0):
    mobilogram = Mobilogram(MobilityType.TIMS)
    first = scans[0]
    for scan in scans:
        mobilogram.add_data_point(
            mz, intensity, mobility_start + mobility_step * (scan - first), scan
        )
    mobilogram.calc()
    return mobilogram


class TestRepresentativeValues:
    """calc() and stale access."""

    def test_stale_before_calc(self):
        mobilogram = Mobilogram()
        mobilogram.add_data_point(500.0, 100.0, 1.0, 1)
        with pytest.raises(RuntimeError, match="stale"):
            mobilogram.mz
        with pytest.raises(RuntimeError):
            mobilogram.highest_data_point

    def test_stale_after_add(self):
        mobilogram = make_mobilogram([1, 2, 3])
        assert mobilogram.is_calculated
        mobilogram.add_data_point(500.0, 100.0, 0.9, 4)
        assert not mobilogram.is_calculated
        with pytest.raises(RuntimeError):
            mobilogram.mobility

    def test_calc_empty(self):
        with pytest.raises(ValueError, match="empty"):
            Mobilogram().calc()

    def test_medians(self):
        mobilogram = Mobilogram()
        mobilogram.add_data_point(500.001, 10.0, 1.02, 1)
        mobilogram.add_data_point(500.006, 20.0, 1.01, 2)
        mobilogram.add_data_point(500.002, 30.0, 1.00, 3)
        mobilogram.calc()

        assert mobilogram.mz == pytest.approx(500.002)
        assert mobilogram.mobility == pytest.approx(1.01)
        assert mobilogram.maximum_intensity == 30.0
        assert mobilogram.highest_data_point['scan_number'] == 3

    def test_highest_tie_first_in_scan_order(self):
        mobilogram = Mobilogram()
        mobilogram.add_data_point(500.0, 50.0, 1.0, 8)
        mobilogram.add_data_point(500.0, 50.0, 1.1, 2)
        mobilogram.calc()
        assert mobilogram.highest_data_point['scan_number'] == 2

    def test_mobility_not_measured(self):
        mobilogram = Mobilogram(MobilityType.NONE)
        mobilogram.add_data_point(500.0, 1.0, None, 1)
        mobilogram.calc()
        assert mobilogram.mobility is None
        assert mobilogram.mobility_range is None


class TestDataPoints:
    """Point storage."""

    def test_one_point_per_scan(self):
        mobilogram = Mobilogram()
        mobilogram.add_data_point(500.0, 10.0, 1.0, 5)
        mobilogram.add_data_point(500.001, 20.0, 1.0, 5)
        assert len(mobilogram) == 1
        assert mobilogram.contains_scan(5)
        assert mobilogram.data_points['intensity'][0] == 20.0

    def test_scan_order(self):
        mobilogram = Mobilogram()
        for scan in (9, 3, 6):
            mobilogram.add_data_point(500.0, float(scan), 1.0 - 0.01 * scan, scan)
        points = mobilogram.data_points
        assert points.dtype == MOBILITY_POINT_DTYPE
        np.testing.assert_array_equal(points['scan_number'], [3, 6, 9])
        assert mobilogram.scan_numbers == [3, 6, 9]

    def test_ranges(self):
        mobilogram = Mobilogram()
        mobilogram.add_data_point(500.003, 1.0, 0.95, 1)
        mobilogram.add_data_point(499.999, 1.0, 1.05, 2)
        assert mobilogram.mz_range == (499.999, 500.003)
        assert mobilogram.mobility_range == (0.95, 1.05)

    def test_to_arrays(self):
        mobilogram = make_mobilogram([1, 2], intensity=7.0)
        mobility, intensity = mobilogram.to_arrays()
        np.testing.assert_allclose(mobility, [1.0, 0.99])
        np.testing.assert_array_equal(intensity, [7.0, 7.0])

    def test_representative_string(self):
        mobilogram = make_mobilogram([1, 2, 3])
        assert mobilogram.representative_string() == "500.0000 - 500.0000 @0.9900 1/K0 (3)"


class TestFillMissingScans:
    """Interior gap filling."""

    def test_step_size_is_signed(self):
        assert make_mobilogram([1, 2, 5], mobility_step=-0.01).mobility_step_size() == pytest.approx(-0.01)
        assert make_mobilogram([1, 2, 5], mobility_step=0.2).mobility_step_size() == pytest.approx(0.2)

    def test_fill_decreasing_mobility(self):
        mobilogram = make_mobilogram([1, 2, 3, 6])
        inserted = mobilogram.fill_missing_scans_with_zeros()

        np.testing.assert_array_equal(inserted['scan_number'], [4, 5])
        np.testing.assert_allclose(inserted['mobility'], [0.97, 0.96])
        assert np.all(inserted['intensity'] == 0.0)
        assert np.all(inserted['synthetic'])
        assert mobilogram.scan_numbers == [1, 2, 3, 4, 5, 6]
        assert mobilogram.n_synthetic == 2
        assert mobilogram.is_calculated

    def test_fill_increasing_drift_time(self):
        mobilogram = make_mobilogram([10, 11, 12, 14], mobility_start=20.0, mobility_step=0.5)
        inserted = mobilogram.fill_missing_scans_with_zeros()
        np.testing.assert_allclose(inserted['mobility'], [21.5])

    def test_synthetic_points_use_median_mz(self):
        mobilogram = Mobilogram()
        for scan, mz in zip((1, 2, 3, 5), (500.001, 500.002, 500.003, 500.004)):
            mobilogram.add_data_point(mz, 10.0, 1.0 - 0.01 * scan, scan)
        inserted = mobilogram.fill_missing_scans_with_zeros()
        assert inserted['mz'][0] == pytest.approx(500.0025)

    def test_too_few_points_unchanged(self):
        mobilogram = make_mobilogram([1, 4, 8])
        inserted = mobilogram.fill_missing_scans_with_zeros()
        assert len(inserted) == 0
        assert len(mobilogram) == 3

    def test_no_gaps(self):
        mobilogram = make_mobilogram([1, 2, 3, 4])
        assert len(mobilogram.fill_missing_scans_with_zeros()) == 0

    def test_maximum_unchanged(self):
        mobilogram = make_mobilogram([1, 2, 3, 9], intensity=42.0)
        mobilogram.fill_missing_scans_with_zeros()
        assert mobilogram.maximum_intensity == 42.0


class TestFillEdges:
    """Edge filling around wide gaps."""

    def test_edges_of_wide_gap(self):
        mobilogram = make_mobilogram([1, 2, 3, 4, 20, 21, 22, 23])
        inserted = mobilogram.fill_edges_with_zeros(min_gap=5)

        np.testing.assert_array_equal(inserted['scan_number'], [5, 19])
        # Extrapolated from scan 4 (mobility 0.97) by the step
        np.testing.assert_allclose(inserted['mobility'], [0.96, 0.97 - 0.01 * 15])
        assert len(mobilogram) == 10

    def test_narrow_gap_untouched(self):
        mobilogram = make_mobilogram([1, 2, 3, 6])
        assert len(mobilogram.fill_edges_with_zeros(min_gap=5)) == 0

    def test_idempotent(self):
        mobilogram = make_mobilogram([1, 2, 3, 4, 20, 21, 22, 23])
        mobilogram.fill_edges_with_zeros(min_gap=5)
        before = mobilogram.data_points.copy()

        inserted = mobilogram.fill_edges_with_zeros(min_gap=5)

        assert len(inserted) == 0
        np.testing.assert_array_equal(mobilogram.data_points, before)

    def test_gap_of_two_gets_single_point(self):
        """Both edges of a two-scan gap fall on the same scan."""
        mobilogram = make_mobilogram([1, 2, 4])
        inserted = mobilogram.fill_edges_with_zeros(min_gap=1)
        np.testing.assert_array_equal(inserted['scan_number'], [3])

    def test_negative_gap_rejected(self):
        with pytest.raises(ValueError):
            make_mobilogram([1, 2]).fill_edges_with_zeros(min_gap=-1)
