"""
Tests for SpatialGrid construction.
"""

import numpy as np
import pytest

from pyspatialrisk.core.exceptions import DimensionError, ValidationError
from pyspatialrisk.spatial import SpatialGrid


class TestSpatialGrid:

    def test_from_arrays(self):
        grid = SpatialGrid.from_arrays([0, 1, 2], [5, 6, 7])
        assert grid.n_loc == 3
        assert len(grid) == 3
        assert grid.lon.dtype == np.float64

    def test_from_table(self):
        table = np.array([[140.0, -30.0], [141.0, -31.0]])
        grid = SpatialGrid.from_table(table)
        np.testing.assert_array_equal(grid.lon, [140.0, 141.0])
        np.testing.assert_array_equal(grid.lat, [-30.0, -31.0])

    def test_table_wrong_columns(self):
        with pytest.raises(ValidationError, match="expected 2 columns"):
            SpatialGrid.from_table(np.zeros((4, 3)))

    def test_inconsistent_lengths(self):
        with pytest.raises(DimensionError, match="Inconsistent lengths"):
            SpatialGrid.from_arrays([0, 1, 2], [0, 1])

    def test_nonfinite(self):
        with pytest.raises(ValidationError, match="non-finite"):
            SpatialGrid.from_arrays([0.0, np.nan], [0.0, 1.0])

    def test_immutable_coordinates(self):
        grid = SpatialGrid.from_arrays([0, 1], [0, 1])
        with pytest.raises(ValueError):
            grid.lon[0] = 5.0

    def test_repr(self):
        grid = SpatialGrid.from_arrays([0, 2], [1, 3])
        assert "n_loc=2" in repr(grid)

    def test_same_locations(self):
        grid = SpatialGrid.from_arrays([0, 1, 2], [0, 1, 2])
        table = np.column_stack([grid.lon, grid.lat])
        assert grid.same_locations(grid)
        assert grid.same_locations(SpatialGrid.from_table(table))
        assert not grid.same_locations(SpatialGrid.from_arrays([0, 1, 2], [0, 1, 3]))
        assert not grid.same_locations(SpatialGrid.from_arrays([0, 1], [0, 1]))
