"""
Tests for the design-matrix builder and SpatialDesign.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from pyspatialrisk.core.exceptions import DimensionError, ValidationError
from pyspatialrisk.spatial.basis import tensor_basis
from pyspatialrisk.spatial.design import (
    SpatialDesign,
    column_names,
    design_matrix,
    intercept_slice,
    trend_slice,
)


@pytest.fixture(scope="module")
def basis(grid3):
    return tensor_basis(grid3, 4, 4, 4)


@pytest.fixture
def counts(rng):
    return rng.poisson(5.0, size=(6, 9)).astype(float)


# ═══════════════════════════════════════════════════════════════════════
# design_matrix
# ═══════════════════════════════════════════════════════════════════════


class TestDesignMatrix:

    def test_plain_shape(self, grid3, basis):
        X = design_matrix(grid3, 6, basis, kind='plain')
        assert X.shape == (54, 3 + 36)

    def test_augmented_shape(self, grid3, basis):
        X = design_matrix(grid3, 6, basis, kind='augmented')
        assert X.shape == (54, 3 + 2 * 36)

    def test_null_layout(self, grid3):
        X = design_matrix(grid3, 4, None, kind='null')
        assert X.shape == (36, 2)
        assert_array_equal(X[:, 0], 1.0)
        assert_array_equal(X[:, 1], np.repeat([0.0, 1.0, 2.0, 3.0], 9))

    def test_year_major_rows(self, grid3, basis):
        X = design_matrix(grid3, 6, basis, kind='augmented')
        B = basis.values
        for year in (0, 3, 5):
            for loc in (0, 4, 8):
                row = X[year * 9 + loc]
                assert row[0] == 1.0
                assert row[1] == grid3.lon[loc]
                assert row[2] == grid3.lat[loc]
                assert_allclose(row[3:39], B[loc])
                assert_allclose(row[39:], year * B[loc])

    def test_custom_time(self, grid3, basis):
        time = np.array([0.0, 0.5, 2.0])
        X = design_matrix(grid3, 3, basis, kind='plain', time=time)
        assert_allclose(X[2 * 9 + 1, 3:], 2.0 * basis.values[1])

    def test_deterministic(self, grid3, basis):
        X1 = design_matrix(grid3, 6, basis, kind='plain')
        X2 = design_matrix(grid3, 6, basis, kind='plain')
        assert_array_equal(X1, X2)

    def test_basis_entries_nonnegative(self, grid3, basis):
        X = design_matrix(grid3, 6, basis, kind='augmented')
        assert np.all(X[:, 3:] >= 0)

    def test_kind_requires_basis(self, grid3):
        with pytest.raises(ValidationError, match="requires a spatial basis"):
            design_matrix(grid3, 3, None, kind='plain')

    def test_unknown_kind(self, grid3, basis):
        with pytest.raises(ValidationError, match="Unknown design kind"):
            design_matrix(grid3, 3, basis, kind='full')

    def test_negative_time(self, grid3, basis):
        with pytest.raises(ValidationError, match="negative"):
            design_matrix(grid3, 2, basis, time=[-1.0, 0.0])

    def test_time_length(self, grid3, basis):
        with pytest.raises(DimensionError, match="one per year"):
            design_matrix(grid3, 3, basis, time=[0.0, 1.0])


class TestColumnLayout:

    def test_names(self, basis):
        plain = column_names(basis, 'plain')
        assert plain[:3] == ('(Intercept)', 'lon', 'lat')
        assert plain[3] == 'time:b[0,0]'
        augmented = column_names(basis, 'augmented')
        assert augmented[3] == 'intercept:b[0,0]'
        assert augmented[3 + 36] == 'time:b[0,0]'
        assert column_names(None, 'null') == ('(Intercept)', 'time')

    def test_slices(self, basis):
        assert trend_slice(basis, 'plain') == slice(3, 39)
        assert trend_slice(basis, 'augmented') == slice(39, 75)
        assert intercept_slice(basis, 'augmented') == slice(3, 39)
        assert intercept_slice(basis, 'plain') is None
        assert trend_slice(None, 'null') is None


# ═══════════════════════════════════════════════════════════════════════
# SpatialDesign
# ═══════════════════════════════════════════════════════════════════════


class TestSpatialDesign:

    def test_build(self, grid3, basis, counts):
        design = SpatialDesign.build(grid3, counts, basis)
        assert design.kind == 'plain'
        assert design.n == 54
        assert design.p == 39
        assert design.n_year == 6
        assert design.n_loc == 9
        assert_array_equal(design.y, counts.ravel())
        assert len(design.column_names) == design.p

    def test_null_default_kind(self, grid3, counts):
        design = SpatialDesign.build(grid3, counts, None)
        assert design.kind == 'null'
        assert design.p == 2
        assert design.trend_slice is None

    def test_with_kind(self, grid3, basis, counts):
        design = SpatialDesign.build(grid3, counts, basis)
        augmented = design.with_kind('augmented')
        assert augmented.p == 75
        assert_array_equal(augmented.y, design.y)
        assert augmented.basis is design.basis

    def test_arrays_read_only(self, grid3, basis, counts):
        design = SpatialDesign.build(grid3, counts, basis)
        with pytest.raises(ValueError):
            design.X[0, 0] = 5.0

    def test_wrong_column_count(self, grid3, basis):
        with pytest.raises(DimensionError, match="expected 9 columns"):
            SpatialDesign.build(grid3, np.zeros((5, 8)), basis)

    def test_counts_must_be_2d(self, grid3, basis):
        with pytest.raises(DimensionError, match="expected 2D"):
            SpatialDesign.build(grid3, np.zeros(9), basis)

    def test_negative_counts(self, grid3, basis):
        counts = np.zeros((3, 9))
        counts[1, 2] = -1
        with pytest.raises(ValidationError, match="negative"):
            SpatialDesign.build(grid3, counts, basis)

    def test_fractional_counts(self, grid3, basis):
        counts = np.zeros((3, 9))
        counts[0, 0] = 1.5
        with pytest.raises(ValidationError, match="non-integer"):
            SpatialDesign.build(grid3, counts, basis)

    def test_nonfinite_counts(self, grid3, basis):
        counts = np.zeros((3, 9))
        counts[0, 0] = np.nan
        with pytest.raises(ValidationError, match="non-finite"):
            SpatialDesign.build(grid3, counts, basis)
