"""
Likelihood-ratio test of a spatial fit against the intercept/time null model.

    statistic = -2 (loglik_null - loglik_full)
    p_value   = P(chi2_df > statistic)

The historical degrees-of-freedom rule is n_bases_lon * n_bases_lon (the
longitude basis count squared), kept behind LRT_DF_SQUARES_LON_BASES. The
number of 2-D basis functions, n_bases_lon * n_bases_lat, is what the
tensor product actually contributes; the two agree only for square knot
configurations. Flip the constant (or pass squares_lon=False) to use it.
"""

import numpy as np
from scipy import stats

from pyspatialrisk.core.exceptions import ValidationError
from pyspatialrisk.core.validation import check_nonnegative_int
from pyspatialrisk.spatial._common import LRTParams
from pyspatialrisk.spatial.basis import is_null_configuration, n_bases_1d

# Keep the n_bases_lon ** 2 degrees of freedom of the published analyses
LRT_DF_SQUARES_LON_BASES = True


def lrt_degrees_of_freedom(
    n_knots_lon: int,
    n_knots_lat: int,
    order: int,
    *,
    squares_lon: bool | None = None,
) -> int:
    """
    Degrees of freedom of the null-model test.

    Args:
        n_knots_lon, n_knots_lat, order: Basis hyperparameters of the full model
        squares_lon: Override LRT_DF_SQUARES_LON_BASES

    Raises:
        ValidationError: For a null configuration (no spatial basis to test)
    """
    n_knots_lon = check_nonnegative_int(n_knots_lon, 'n_knots_lon')
    n_knots_lat = check_nonnegative_int(n_knots_lat, 'n_knots_lat')
    order = check_nonnegative_int(order, 'order')
    if is_null_configuration(n_knots_lon, n_knots_lat, order):
        raise ValidationError("null configuration has no spatial basis to test")

    if squares_lon is None:
        squares_lon = LRT_DF_SQUARES_LON_BASES

    m_lon = n_bases_1d(n_knots_lon, order)
    m_lat = n_bases_1d(n_knots_lat, order)
    return m_lon * m_lon if squares_lon else m_lon * m_lat


def likelihood_ratio_test(
    loglik_null: float,
    loglik_full: float,
    n_knots_lon: int,
    n_knots_lat: int,
    order: int,
    *,
    squares_lon: bool | None = None,
) -> LRTParams:
    """
    Chi-squared test of spatial variation.

    The statistic is floored at zero: a nested full model can only fall
    below the null through an early-stopped optimizer.
    """
    if not (np.isfinite(loglik_null) and np.isfinite(loglik_full)):
        raise ValidationError(
            f"log-likelihoods must be finite, got null={loglik_null}, full={loglik_full}"
        )
    if squares_lon is None:
        squares_lon = LRT_DF_SQUARES_LON_BASES

    df = lrt_degrees_of_freedom(
        n_knots_lon, n_knots_lat, order, squares_lon=squares_lon,
    )
    statistic = max(-2.0 * (loglik_null - loglik_full), 0.0)
    p_value = float(stats.chi2.sf(statistic, df))

    return LRTParams(
        statistic=float(statistic),
        df=int(df),
        p_value=p_value,
        loglik_null=float(loglik_null),
        loglik_full=float(loglik_full),
        n_knots_lon=int(n_knots_lon),
        n_knots_lat=int(n_knots_lat),
        order=int(order),
        df_rule='lon_squared' if squares_lon else 'lon_times_lat',
    )
