"""Tests for the bearing/distance coordinate projection."""

import math

import numpy as np
import pandas as pd
import pytest

from telemetry.project import project, project_point


class TestProjectPoint:
    """Tests for single-reading projection."""

    @pytest.mark.parametrize("bearing, expected", [
        (0.0, (0.0, 10.0)),
        (90.0, (10.0, 0.0)),
        (180.0, (0.0, -10.0)),
        (270.0, (-10.0, 0.0)),
        (360.0, (0.0, 10.0)),
    ])
    def test_cardinal_bearings(self, bearing, expected):
        """Compass bearings map to north/east/south/west displacements."""
        np.testing.assert_allclose(project_point(0.0, 0.0, bearing, 10.0), expected, atol=1e-9)

    def test_matches_sine_cosine_of_bearing(self):
        """Displacement equals d * (sin(bearing), cos(bearing))."""
        for bearing in np.arange(0.0, 360.0, 7.5):
            x, y = project_point(5.0, 7.0, bearing, 13.0)
            rad = bearing * math.pi / 180
            np.testing.assert_allclose((x, y), (5.0 + 13.0 * math.sin(rad), 7.0 + 13.0 * math.cos(rad)), atol=1e-9)

    @pytest.mark.parametrize("bearing", [None, np.nan, 0.0, 45.0, 271.0])
    def test_zero_distance_returns_origin(self, bearing):
        """Bearing is ignored at zero distance."""
        assert project_point(3.0, 4.0, bearing, 0.0) == (3.0, 4.0)

    @pytest.mark.parametrize("distance", [1.0, 10.0, 20.0])
    def test_short_range_without_bearing_returns_origin(self, distance):
        assert project_point(3.0, 4.0, None, distance) == (3.0, 4.0)

    def test_long_range_without_bearing_is_undeterminable(self):
        assert project_point(3.0, 4.0, None, 25.0) is None
        assert project_point(3.0, 4.0, np.nan, 20.5) is None

    def test_missing_distance_is_undeterminable(self):
        """No distance means no coordinate, even with a bearing."""
        assert project_point(3.0, 4.0, 90.0, None) is None
        assert project_point(3.0, 4.0, 90.0, np.nan) is None

    def test_custom_short_range(self):
        assert project_point(0.0, 0.0, None, 25.0, short_range=30.0) == (0.0, 0.0)


class TestProjectFrame:
    """Tests for the vectorized projection over an observation table."""

    @pytest.fixture
    def readings(self):
        return pd.DataFrame({
            "origin_x": [10.0, 10.0, 10.0, 10.0, 10.0, np.nan],
            "origin_y": [20.0, 20.0, 20.0, 20.0, 20.0, 20.0],
            "bearing": [90.0, np.nan, np.nan, 0.0, np.nan, 0.0],
            "distance": [30.0, 0.0, 15.0, np.nan, 40.0, 5.0],
        })

    def test_coordinates(self, readings):
        gdf = project(readings)
        np.testing.assert_allclose(gdf.x.to_numpy()[:3], [40.0, 10.0, 10.0], atol=1e-9)
        np.testing.assert_allclose(gdf.y.to_numpy()[:3], [20.0, 20.0, 20.0], atol=1e-9)
        assert gdf.x.iloc[3:].isna().all()

    def test_projection_labels(self, readings):
        gdf = project(readings)
        assert gdf.projection.tolist() == ["bearing", "origin", "origin", "missing", "missing", "missing"]

    def test_missing_rows_have_no_geometry(self, readings):
        gdf = project(readings)
        assert gdf.geometry.isna().tolist() == [False, False, False, True, True, True]

    def test_agrees_with_project_point(self, readings):
        """The frame and scalar versions give the same coordinates."""
        gdf = project(readings)
        for row, x, y in zip(readings.itertuples(), gdf.x, gdf.y):
            expected = project_point(row.origin_x, row.origin_y, row.bearing, row.distance)
            if expected is None or np.isnan(expected[0]):
                assert np.isnan(x) and np.isnan(y)
            else:
                np.testing.assert_allclose((x, y), expected, atol=1e-9)

    def test_input_not_mutated(self, readings):
        before = readings.copy()
        project(readings)
        pd.testing.assert_frame_equal(readings, before)
