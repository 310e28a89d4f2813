"""
Parameter payloads for spatial trend results.

Each dataclass is a frozen payload carried inside a Result[P] envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class FitParams:
    """One optimizer pass over one design.

    coefficients are aligned with the design's column_names.
    """

    coefficients: NDArray        # (p,)
    names: tuple[str, ...]       # (p,) column labels
    loglik: float                # log-likelihood at coefficients
    hessian: NDArray             # (p, p) exact Hessian at coefficients
    fitted_values: NDArray       # (n,) Poisson rates X @ coefficients
    surface: NDArray | None      # (n_loc,) B @ time-interaction coefs; None for null
    kind: str                    # 'null', 'plain' or 'augmented'
    start: NDArray               # (p,) feasibility-corrected starting values
    step_scale: NDArray          # (p,) per-parameter optimizer scales
    n_iter: int                  # BFGS iterations
    converged: bool


@dataclass(frozen=True)
class SignificanceTable:
    """Estimates with Wald inference at level 1 - alpha.

    significant is False exactly when the interval straddles zero.
    """

    names: tuple[str, ...]
    estimate: NDArray
    std_error: NDArray
    z_statistic: NDArray         # NaN where std_error == 0
    p_value: NDArray             # two-sided normal; NaN where std_error == 0
    lower: NDArray
    upper: NDArray
    significant: NDArray         # bool
    alpha: float

    def __len__(self) -> int:
        return len(self.names)

    def to_dict(self) -> dict[str, Any]:
        return {
            'names': list(self.names),
            'estimate': self.estimate.tolist(),
            'std_error': self.std_error.tolist(),
            'z_statistic': self.z_statistic.tolist(),
            'p_value': self.p_value.tolist(),
            'lower': self.lower.tolist(),
            'upper': self.upper.tolist(),
            'significant': [bool(s) for s in self.significant],
            'alpha': self.alpha,
        }


@dataclass(frozen=True)
class UncertaintyParams:
    """Covariance-derived inference for one fit."""

    covariance: NDArray                     # (p, p), symmetric PSD
    parameters: SignificanceTable
    surface: SignificanceTable | None       # per location; None for null model
    surface_covariance: NDArray | None      # (n_loc, n_loc)
    mse: float                              # in-sample mean squared error
    n_zero_variance: int                    # parameters with SE == 0


@dataclass(frozen=True)
class LRTParams:
    """Null-model likelihood-ratio test."""

    statistic: float             # -2 (loglik_null - loglik_full), floored at 0
    df: int
    p_value: float
    loglik_null: float
    loglik_full: float
    n_knots_lon: int
    n_knots_lat: int
    order: int
    df_rule: str                 # 'lon_squared' or 'lon_times_lat'
