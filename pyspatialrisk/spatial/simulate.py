"""
Synthetic event counts from a known spatial trend.

Used for scenario checks: draw counts from rate = intercept_l + t_y * trend_l
and verify that a fit recovers the trend surface.
"""

from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyspatialrisk.core.exceptions import DimensionError
from pyspatialrisk.core.validation import check_array, check_finite, check_nonnegative_int
from pyspatialrisk.spatial.design import _check_time
from pyspatialrisk.spatial.grid import SpatialGrid


def simulate_counts(
    grid: SpatialGrid,
    intercept: ArrayLike,
    trend: ArrayLike,
    n_year: int,
    *,
    time: ArrayLike | None = None,
    seed: int | None = 0,
) -> NDArray[np.floating[Any]]:
    """
    Draw a Poisson count table.

    Args:
        grid: Locations
        intercept: Per-location baseline rate (n_loc,) or a scalar
        trend: Per-location change in rate per unit time (n_loc,) or a scalar
        n_year: Number of years
        time: Per-year time covariate; defaults to 0, 1, ..., n_year - 1
        seed: Seed for numpy's default_rng

    Returns:
        (n_year x n_loc) float array of counts. Negative rates are clipped
        to zero, so those cells are always 0.
    """
    n_year = check_nonnegative_int(n_year, 'n_year')
    t = _check_time(time, n_year)
    base = _per_location(intercept, grid.n_loc, 'intercept')
    slope = _per_location(trend, grid.n_loc, 'trend')

    rate = np.clip(base[np.newaxis, :] + t[:, np.newaxis] * slope[np.newaxis, :], 0.0, None)
    rng = np.random.default_rng(seed)
    return rng.poisson(rate).astype(np.float64)


def _per_location(value: ArrayLike, n_loc: int, name: str) -> NDArray[np.floating[Any]]:
    arr = np.asarray(check_array(value, name), dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(n_loc, float(arr))
    arr = arr.ravel()
    if arr.shape[0] != n_loc:
        raise DimensionError(f"{name}: expected {n_loc} values, got {arr.shape[0]}")
    check_finite(arr, name)
    return arr
