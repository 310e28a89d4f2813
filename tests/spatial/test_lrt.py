"""
Tests for the null-model likelihood-ratio test.
"""

import pytest
from scipy import stats

from pyspatialrisk.core.exceptions import ValidationError
from pyspatialrisk.spatial._lrt import (
    LRT_DF_SQUARES_LON_BASES,
    likelihood_ratio_test,
    lrt_degrees_of_freedom,
)


class TestDegreesOfFreedom:

    def test_default_rule_squares_lon_bases(self):
        assert LRT_DF_SQUARES_LON_BASES is True
        assert lrt_degrees_of_freedom(4, 4, 4) == 36

    def test_rules_differ_for_rectangular_configuration(self):
        # 6 longitude and 8 latitude basis functions
        assert lrt_degrees_of_freedom(4, 6, 4) == 36
        assert lrt_degrees_of_freedom(4, 6, 4, squares_lon=False) == 48

    def test_rules_agree_for_square_configuration(self):
        assert lrt_degrees_of_freedom(5, 5, 3, squares_lon=True) == \
            lrt_degrees_of_freedom(5, 5, 3, squares_lon=False)

    def test_null_configuration_rejected(self):
        with pytest.raises(ValidationError, match="null configuration"):
            lrt_degrees_of_freedom(0, 4, 4)


class TestLikelihoodRatioTest:

    def test_statistic_and_pvalue(self):
        result = likelihood_ratio_test(-520.0, -480.0, 4, 4, 4)
        assert result.statistic == pytest.approx(80.0)
        assert result.df == 36
        assert result.p_value == pytest.approx(stats.chi2.sf(80.0, 36))
        assert result.df_rule == 'lon_squared'

    def test_statistic_floored_at_zero(self):
        result = likelihood_ratio_test(-100.0, -100.5, 4, 4, 4)
        assert result.statistic == 0.0
        assert result.p_value == 1.0

    @pytest.mark.parametrize("full", [-1000.0, -500.0, -499.0, -100.0])
    def test_pvalue_in_unit_interval(self, full):
        result = likelihood_ratio_test(-500.0, full, 3, 4, 3)
        assert result.statistic >= 0
        assert 0.0 <= result.p_value <= 1.0

    def test_alternative_rule_recorded(self):
        result = likelihood_ratio_test(-10.0, -5.0, 4, 6, 4, squares_lon=False)
        assert result.df == 48
        assert result.df_rule == 'lon_times_lat'

    def test_nonfinite_loglik(self):
        with pytest.raises(ValidationError, match="finite"):
            likelihood_ratio_test(float('nan'), -5.0, 4, 4, 4)
