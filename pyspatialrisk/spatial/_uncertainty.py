"""
Standard errors, Wald intervals and significance for a fitted model.

The parameter covariance comes from core.compute.linalg.robust_covariance
(pseudo-inverse of the observed information, then a generalized Cholesky
rebuild), which stays symmetric positive semi-definite when the Hessian
is singular, as it is for collinear spline columns.

The spatially-varying coefficient at each location is B @ gamma, gamma
being the time-interaction block of the parameters, so its covariance is

    Var(B gamma) = B Sigma_gamma B'
"""

from __future__ import annotations

import warnings
from typing import Any
import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pyspatialrisk.core.compute.linalg import robust_covariance
from pyspatialrisk.core.validation import check_probability
from pyspatialrisk.spatial._common import FitParams, SignificanceTable, UncertaintyParams
from pyspatialrisk.spatial.design import SpatialDesign


def standard_errors(
    cov: NDArray[np.floating[Any]],
    names: tuple[str, ...],
    what: str = 'parameter',
) -> tuple[NDArray[np.floating[Any]], list[str]]:
    """
    Square roots of the covariance diagonal.

    Negative variances (round-off) are clamped to zero. Every zero
    variance triggers a RuntimeWarning naming the affected entries.

    Returns:
        (standard errors, warning messages)
    """
    var = np.diag(cov).astype(np.float64).copy()
    messages = []

    negative = var < 0
    if np.any(negative):
        var[negative] = 0.0

    zero = var == 0
    if np.any(zero):
        labels = ', '.join(names[i] for i in np.flatnonzero(zero))
        msg = (
            f"{int(np.sum(zero))} {what} variance(s) are zero or negative and were "
            f"set to 0; standard errors are unidentifiable for: {labels}"
        )
        warnings.warn(msg, RuntimeWarning, stacklevel=3)
        messages.append(msg)

    return np.sqrt(var), messages


def wald_table(
    estimate: NDArray[np.floating[Any]],
    se: NDArray[np.floating[Any]],
    names: tuple[str, ...],
    alpha: float = 0.05,
) -> SignificanceTable:
    """Two-sided z-tests and 1 - alpha Wald intervals."""
    alpha = check_probability(alpha, 'alpha')
    estimate = np.asarray(estimate, dtype=np.float64)
    se = np.asarray(se, dtype=np.float64)

    with np.errstate(divide='ignore', invalid='ignore'):
        z = np.where(se > 0, estimate / se, np.nan)
    p_values = 2.0 * stats.norm.sf(np.abs(z))

    crit = stats.norm.ppf(1.0 - alpha / 2.0)
    lower = estimate - crit * se
    upper = estimate + crit * se
    significant = ~((lower < 0) & (upper > 0))

    return SignificanceTable(
        names=tuple(names),
        estimate=estimate,
        std_error=se,
        z_statistic=z,
        p_value=p_values,
        lower=lower,
        upper=upper,
        significant=significant,
        alpha=alpha,
    )


def surface_covariance(
    basis_values: NDArray[np.floating[Any]],
    cov_trend: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """B Sigma_gamma B', symmetrized."""
    out = basis_values @ cov_trend @ basis_values.T
    return 0.5 * (out + out.T)


def mean_squared_error(
    fitted: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
) -> float:
    """In-sample mean of (fitted - observed)^2."""
    return float(np.mean((np.asarray(fitted) - np.asarray(y)) ** 2))


def estimate_uncertainty(
    fit: FitParams,
    design: SpatialDesign,
    alpha: float = 0.05,
) -> tuple[UncertaintyParams, tuple[str, ...]]:
    """
    Covariance, significance tables and MSE for one fit.

    Returns:
        (UncertaintyParams, warning messages)
    """
    cov = robust_covariance(fit.hessian)
    se, messages = standard_errors(cov, fit.names, 'parameter')
    n_zero = int(np.sum(se == 0))
    param_table = wald_table(fit.coefficients, se, fit.names, alpha)

    surface_table = None
    surf_cov = None
    trend = design.trend_slice
    if trend is not None:
        B = design.basis.values
        surf_cov = surface_covariance(B, cov[trend, trend])
        loc_names = tuple(f"loc[{i}]" for i in range(design.n_loc))
        surf_se, surf_messages = standard_errors(surf_cov, loc_names, 'spatial coefficient')
        messages.extend(surf_messages)
        surface_table = wald_table(B @ fit.coefficients[trend], surf_se, loc_names, alpha)

    params = UncertaintyParams(
        covariance=cov,
        parameters=param_table,
        surface=surface_table,
        surface_covariance=surf_cov,
        mse=mean_squared_error(fit.fitted_values, design.y),
        n_zero_variance=n_zero,
    )
    return params, tuple(messages)
