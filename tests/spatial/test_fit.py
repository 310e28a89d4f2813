"""
End-to-end tests of fit(), fit_null() and null_model_test().

Scenario: a 3x3 grid, 20 years, 4-knot cubic basis. Counts are simulated
with baseline 10 and a trend that rises with longitude (0.2, 1.1, 2.0), or
with the same trend everywhere.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pyspatialrisk.core.exceptions import DimensionError, ValidationError
from pyspatialrisk.spatial import (
    BasisCache,
    SpatialGrid,
    fit,
    fit_null,
    null_model_test,
)
from pyspatialrisk.spatial._likelihood import poisson_gradient


@pytest.fixture(scope="module")
def trend_fit(grid3, trend_counts):
    return fit(grid3, trend_counts, n_knots_lon=4, n_knots_lat=4, order=4)


@pytest.fixture(scope="module")
def trend_null(grid3, trend_counts):
    return fit_null(grid3, trend_counts)


@pytest.fixture(scope="module")
def flat_fit(grid3, flat_counts):
    return fit(grid3, flat_counts)


@pytest.fixture(scope="module")
def flat_null(grid3, flat_counts):
    return fit_null(grid3, flat_counts)


# ═══════════════════════════════════════════════════════════════════════
# Synthetic scenarios
# ═══════════════════════════════════════════════════════════════════════


class TestTrendScenario:

    def test_two_pass_layout(self, trend_fit):
        assert trend_fit.kind == 'augmented'
        assert len(trend_fit.coefficients) == 3 + 2 * 36
        assert trend_fit.first_pass is not None
        assert trend_fit.first_pass.params.kind == 'plain'

    def test_second_pass_moves_off_warm_start(self, trend_fit):
        first = trend_fit.first_pass.params
        assert trend_fit.n_iter > 0
        assert first.n_iter > 0
        intercepts = trend_fit.coefficients[trend_fit.design.intercept_slice]
        assert np.max(np.abs(intercepts)) > 1e-4
        assert trend_fit.loglik > first.loglik

    def test_score_near_zero_at_estimate(self, trend_fit):
        design = trend_fit.design
        score = poisson_gradient(trend_fit.coefficients, design.X, design.y)
        assert np.max(np.abs(score)) < 1e-2

    def test_fitted_rates_feasible(self, trend_fit):
        assert np.all(trend_fit.fitted_values >= 0)
        assert np.isfinite(trend_fit.loglik)

    def test_surface_recovers_trend(self, trend_fit, true_trend):
        surface = trend_fit.surface
        assert surface.shape == (9,)
        assert np.corrcoef(surface, true_trend)[0, 1] > 0.8
        assert np.mean(surface) == pytest.approx(np.mean(true_trend), abs=0.25)
        # about three standard errors at the steepest locations
        assert_allclose(surface, true_trend, atol=0.6)

    def test_surface_matches_per_location_fits(self, grid3, trend_counts, trend_fit):
        # The augmented design spans every per-location intercept and slope
        # on this grid, so its maximum is the per-location maximum.
        slopes = np.array([
            fit_null(
                SpatialGrid.from_arrays(grid3.lon[[loc]], grid3.lat[[loc]]),
                trend_counts[:, [loc]],
            ).coefficients[1]
            for loc in range(grid3.n_loc)
        ])
        assert_allclose(trend_fit.surface, slopes, atol=0.02)

    def test_strong_trends_significant(self, trend_fit, true_trend):
        significant = trend_fit.surface_significant
        assert np.all(significant[true_trend >= 1.0])
        assert np.all(trend_fit.surface_lower[true_trend >= 1.0] > 0)

    def test_bounds_bracket_surface(self, trend_fit):
        assert np.all(trend_fit.surface_lower <= trend_fit.surface)
        assert np.all(trend_fit.surface <= trend_fit.surface_upper)

    def test_covariance_symmetric_psd(self, trend_fit):
        cov = trend_fit.covariance
        assert_allclose(cov, cov.T)
        assert np.min(np.linalg.eigvalsh(cov)) >= -1e-8
        surf_cov = trend_fit.surface_covariance
        assert surf_cov.shape == (9, 9)
        assert np.min(np.linalg.eigvalsh(surf_cov)) >= -1e-8

    def test_null_model_rejected(self, trend_fit, trend_null):
        test = null_model_test(trend_fit, trend_null)
        assert test.statistic > 0
        assert test.df == 36
        assert test.p_value < 0.01
        assert test.significant(0.05)


class TestFlatScenario:

    def test_null_model_not_rejected(self, flat_fit, flat_null):
        test = null_model_test(flat_fit, flat_null)
        assert test.statistic >= 0
        assert test.p_value > 0.5

    def test_null_fit_recovers_parameters(self, flat_null):
        b0, b1 = flat_null.coefficients
        assert b0 == pytest.approx(10.0, abs=2.0)
        assert b1 == pytest.approx(0.5, abs=0.15)
        assert flat_null.surface is None
        assert flat_null.surface_table is None


class TestAllZeroCounts:

    def test_finite_without_crash(self, grid3):
        counts = np.zeros((20, 9))
        with pytest.warns(RuntimeWarning, match="unidentifiable"):
            solution = fit(grid3, counts)
        assert np.isfinite(solution.loglik)
        assert solution.loglik <= 0
        assert np.all(solution.fitted_values >= 0)
        assert_allclose(solution.fitted_values, 0.0, atol=1e-6)
        assert any("unidentifiable" in w for w in solution.warnings)


# ═══════════════════════════════════════════════════════════════════════
# Options and validation
# ═══════════════════════════════════════════════════════════════════════


class TestFitOptions:

    def test_single_pass(self, grid3, trend_counts):
        solution = fit(grid3, trend_counts, two_pass=False, max_iter=20)
        assert solution.kind == 'plain'
        assert solution.first_pass is None
        assert len(solution.coefficients) == 3 + 36

    def test_null_configuration_routes_to_null_model(self, grid3, trend_counts):
        solution = fit(grid3, trend_counts, n_knots_lon=0)
        assert solution.kind == 'null'
        assert solution.names == ('(Intercept)', 'time')
        assert solution.basis is None

    def test_accepts_table(self, grid3, trend_counts):
        table = np.column_stack([grid3.lon, grid3.lat])
        solution = fit(table, trend_counts, n_knots_lon=3, n_knots_lat=3, order=3, max_iter=5)
        assert solution.design.n_loc == 9

    def test_custom_time(self, grid3, trend_counts):
        time = np.arange(20.0) + 1.0
        solution = fit_null(grid3, trend_counts, time=time)
        assert_allclose(solution.design.time, time)

    def test_basis_cache_reused(self, grid3, trend_counts):
        cache = BasisCache(grid3)
        fit(grid3, trend_counts, n_knots_lon=3, n_knots_lat=3, order=3,
            max_iter=3, basis_cache=cache)
        assert (3, 3, 3) in cache

    def test_basis_cache_with_table(self, grid3, trend_counts):
        cache = BasisCache(grid3)
        table = np.column_stack([grid3.lon, grid3.lat])
        solution = fit(table, trend_counts, n_knots_lon=3, n_knots_lat=3, order=3,
                       max_iter=3, basis_cache=cache)
        assert solution.basis is cache.get(3, 3, 3)

    def test_basis_cache_other_grid(self, grid3, trend_counts):
        other = SpatialGrid.from_arrays(grid3.lon, grid3.lat + 1.0)
        with pytest.raises(ValidationError, match="different grid"):
            fit(grid3, trend_counts, basis_cache=BasisCache(other))

    def test_iteration_cap_recorded(self, grid3, trend_counts):
        solution = fit(grid3, trend_counts, max_iter=1)
        assert not solution.converged
        assert any("did not converge" in w for w in solution.warnings)

    def test_verbose_prints_and_warns(self, grid3, trend_counts, capsys):
        with pytest.warns(RuntimeWarning, match="did not converge"):
            fit(grid3, trend_counts, max_iter=1, verbose=True)
        out = capsys.readouterr().out
        assert "Spatial Poisson trend" in out
        assert "augmented" in out

    def test_wrong_count_columns(self, grid3):
        with pytest.raises(DimensionError):
            fit(grid3, np.ones((20, 8)))

    @pytest.mark.parametrize("kwargs", [
        {'order': -1},
        {'n_knots_lon': 2.5},
        {'max_iter': 0},
        {'alpha': 0.0},
    ])
    def test_invalid_hyperparameters(self, grid3, trend_counts, kwargs):
        with pytest.raises(ValidationError):
            fit(grid3, trend_counts, **kwargs)


class TestNullModelTestValidation:

    def test_arguments_swapped(self, trend_fit, trend_null):
        with pytest.raises(ValidationError, match="expected a spatial fit"):
            null_model_test(trend_null, trend_fit)

    def test_different_counts(self, trend_fit, flat_null):
        with pytest.raises(ValidationError, match="different count tables"):
            null_model_test(trend_fit, flat_null)

    def test_different_time(self, trend_fit, grid3, trend_counts):
        shifted = fit_null(grid3, trend_counts, time=np.arange(20.0) + 1.0)
        with pytest.raises(ValidationError, match="different time covariates"):
            null_model_test(trend_fit, shifted)

    def test_alternative_df_rule(self, trend_fit, trend_null):
        test = null_model_test(trend_fit, trend_null, squares_lon=False)
        assert test.df == 36
        assert test.df_rule == 'lon_times_lat'
