"""
Poisson log-likelihood with an identity-linked, non-negative rate.

For observation i with design row x_i and count y_i the rate is
lambda_i = x_i . beta. The log-likelihood is

    l(beta) = sum_i [ y_i log(lambda_i) - lambda_i - log(y_i!) ]

which is undefined for a negative rate. Instead of raising, log_lik()
returns the fixed sentinel INFEASIBLE_LOGLIK; the optimizer, the start
correction and the step scaling all test for that exact value.

Derivatives (closed form):

    dl/dbeta_a            = sum_i x_ia (y_i / lambda_i - 1)
    d2l/dbeta_a dbeta_b   = -sum_i y_i x_ia x_ib / lambda_i^2

Observations with y_i = 0 contribute nothing to the second derivative,
so a zero rate is harmless there.
"""

from typing import Any
import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pyspatialrisk.core.exceptions import DimensionError

# Feasibility barrier returned for any negative fitted rate
INFEASIBLE_LOGLIK = -1e10


def is_infeasible(value: float) -> bool:
    """True when value is the feasibility-barrier sentinel."""
    return value == INFEASIBLE_LOGLIK


def fitted_rates(
    params: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """Poisson rates X @ params."""
    params = np.asarray(params, dtype=np.float64)
    if X.ndim != 2 or params.ndim != 1 or X.shape[1] != params.shape[0]:
        raise DimensionError(
            f"params has {params.shape} but design matrix has shape {X.shape}"
        )
    return X @ params


def log_lik(
    params: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
) -> float:
    """
    Poisson log-likelihood of counts y under rates X @ params.

    Returns INFEASIBLE_LOGLIK exactly when any rate is negative (or when a
    zero rate meets a positive count, whose log-probability is -inf).
    """
    if X.shape[0] != y.shape[0]:
        raise DimensionError(
            f"design matrix has {X.shape[0]} rows but target has {y.shape[0]}"
        )
    rate = fitted_rates(params, X)
    if np.any(rate < 0):
        return INFEASIBLE_LOGLIK

    value = float(np.sum(stats.poisson.logpmf(y, rate)))
    if not np.isfinite(value):
        return INFEASIBLE_LOGLIK
    return value


def poisson_gradient(
    params: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """Score vector sum_i x_i (y_i / lambda_i - 1) at a feasible point."""
    rate = fitted_rates(params, X)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(y > 0, y / rate, 0.0)
    return X.T @ (ratio - 1.0)


def poisson_hessian(
    params: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
    y: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """
    Exact Hessian of the log-likelihood, -X' diag(y / lambda^2) X.

    Returns:
        Symmetric (p x p) matrix
    """
    if X.shape[0] != y.shape[0]:
        raise DimensionError(
            f"design matrix has {X.shape[0]} rows but target has {y.shape[0]}"
        )
    rate = fitted_rates(params, X)
    with np.errstate(divide='ignore', invalid='ignore'):
        w = np.where(y > 0, y / rate ** 2, 0.0)
    H = -(X.T * w[np.newaxis, :]) @ X
    return 0.5 * (H + H.T)
