"""
Solution wrappers for spatial trend fits and null-model tests.

SpatialSolution wraps the accepted optimizer pass (Result[FitParams]), its
inference (UncertaintyParams) and the design it was fit on, and exposes
plain numpy outputs for downstream mapping code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray

from pyspatialrisk.core.result import Result
from pyspatialrisk.spatial._common import (
    FitParams,
    LRTParams,
    SignificanceTable,
    UncertaintyParams,
)

if TYPE_CHECKING:
    from pyspatialrisk.spatial.basis import BasisSet
    from pyspatialrisk.spatial.design import SpatialDesign


def _format_pvalue(p: float) -> str:
    if not np.isfinite(p):
        return "NA"
    if p < 2.2e-16:
        return "< 2.2e-16"
    if p < 1e-4:
        return f"{p:.2e}"
    return f"{p:.4f}"


@dataclass
class SpatialSolution:
    """
    User-facing results of a spatial (or null) Poisson trend fit.

    For a two-pass fit the final (augmented) pass is the solution and the
    plain pass stays available as first_pass.
    """
    _result: Result[FitParams]
    _uncertainty: UncertaintyParams
    _design: 'SpatialDesign'
    _first_pass: Result[FitParams] | None = None
    _extra_warnings: tuple[str, ...] = ()

    # --- Estimates ---

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        """Parameter estimates aligned with names."""
        return self._result.params.coefficients

    @property
    def names(self) -> tuple[str, ...]:
        return self._result.params.names

    @property
    def loglik(self) -> float:
        return self._result.params.loglik

    @property
    def hessian(self) -> NDArray[np.floating[Any]]:
        """Exact Hessian of the log-likelihood at the estimate."""
        return self._result.params.hessian

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        """Fitted Poisson rates, year-major (n,)."""
        return self._result.params.fitted_values

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        """Observed minus fitted counts (n,)."""
        return self._design.y - self.fitted_values

    @property
    def kind(self) -> str:
        return self._result.params.kind

    @property
    def converged(self) -> bool:
        return self._result.params.converged

    @property
    def n_iter(self) -> int:
        return self._result.params.n_iter

    # --- Spatial coefficient surface ---

    @property
    def surface(self) -> NDArray[np.floating[Any]] | None:
        """Per-location time-trend coefficient B @ gamma; None for the null model."""
        return self._result.params.surface

    @property
    def surface_table(self) -> SignificanceTable | None:
        return self._uncertainty.surface

    @property
    def surface_lower(self) -> NDArray[np.floating[Any]] | None:
        table = self._uncertainty.surface
        return None if table is None else table.lower

    @property
    def surface_upper(self) -> NDArray[np.floating[Any]] | None:
        table = self._uncertainty.surface
        return None if table is None else table.upper

    @property
    def surface_significant(self) -> NDArray[np.bool_] | None:
        table = self._uncertainty.surface
        return None if table is None else table.significant

    @property
    def surface_covariance(self) -> NDArray[np.floating[Any]] | None:
        return self._uncertainty.surface_covariance

    def rate_surface(self, year_index: int) -> NDArray[np.floating[Any]]:
        """Fitted rate at every location for one year (n_loc,)."""
        n_loc = self._design.n_loc
        if not 0 <= year_index < self._design.n_year:
            raise IndexError(
                f"year_index {year_index} out of range for {self._design.n_year} years"
            )
        return self.fitted_values[year_index * n_loc:(year_index + 1) * n_loc]

    # --- Inference ---

    @property
    def covariance(self) -> NDArray[np.floating[Any]]:
        """Parameter covariance (pseudo-inverse + generalized Cholesky)."""
        return self._uncertainty.covariance

    @property
    def parameter_table(self) -> SignificanceTable:
        return self._uncertainty.parameters

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        return self._uncertainty.parameters.std_error

    @property
    def p_values(self) -> NDArray[np.floating[Any]]:
        return self._uncertainty.parameters.p_value

    @property
    def significant(self) -> NDArray[np.bool_]:
        return self._uncertainty.parameters.significant

    @property
    def mse(self) -> float:
        """In-sample mean squared error of fitted vs observed counts."""
        return self._uncertainty.mse

    @property
    def aic(self) -> float:
        return -2 * self.loglik + 2 * len(self.coefficients)

    @property
    def bic(self) -> float:
        return -2 * self.loglik + len(self.coefficients) * np.log(self._design.n)

    # --- Provenance ---

    @property
    def design(self) -> 'SpatialDesign':
        return self._design

    @property
    def basis(self) -> 'BasisSet | None':
        return self._design.basis

    @property
    def first_pass(self) -> Result[FitParams] | None:
        """Plain-design pass that warm-started this fit, if any."""
        return self._first_pass

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        """Non-fatal warnings from every pass and from inference."""
        first = self._first_pass.warnings if self._first_pass is not None else ()
        return first + self._result.warnings + self._extra_warnings

    def summary(self) -> str:
        """Generate summary output."""
        design = self._design
        table = self.parameter_table
        lines = [
            "Spatial Poisson Trend Model",
            "=" * 72,
            f"Design: {self.kind}   Years: {design.n_year}   Locations: {design.n_loc}",
        ]
        if design.basis is not None:
            b = design.basis
            lines.append(
                f"Basis: order {b.order}, knots {b.n_knots_lon} x {b.n_knots_lat}, "
                f"{b.n_bases} functions ({b.dropped} empty dropped)"
            )
        lines.extend([
            f"Log-likelihood: {self.loglik:.4f}   AIC: {self.aic:.2f}   BIC: {self.bic:.2f}",
            f"MSE: {self.mse:.6f}   Converged: {self.converged} ({self.n_iter} iterations)",
            "",
            f"{'Parameter':<24} {'Estimate':>12} {'Std.Error':>12} {'p-value':>11} {'Sig':>4}",
            "-" * 72,
        ])
        for i, name in enumerate(table.names):
            lines.append(
                f"{name:<24} {table.estimate[i]:12.6f} {table.std_error[i]:12.6f} "
                f"{_format_pvalue(table.p_value[i]):>11} {'*' if table.significant[i] else '':>4}"
            )

        surf = self.surface_table
        if surf is not None:
            lines.extend([
                "",
                f"Spatial trend coefficient: {int(np.sum(surf.significant))} of "
                f"{len(surf)} locations significant at alpha={surf.alpha:g}",
                f"  range [{np.min(surf.estimate):.6f}, {np.max(surf.estimate):.6f}]",
            ])

        lines.append("-" * 72)
        lines.append(f"Backend: {self.backend_name}")
        if self.timing:
            lines.append(f"Time: {self.timing.get('total_seconds', 0):.4f}s")
        if self.warnings:
            lines.append(f"Warnings: {len(self.warnings)}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        out = {
            'kind': self.kind,
            'names': list(self.names),
            'coefficients': self.coefficients.tolist(),
            'loglik': self.loglik,
            'mse': self.mse,
            'aic': self.aic,
            'bic': self.bic,
            'converged': self.converged,
            'n_iter': self.n_iter,
            'parameters': self.parameter_table.to_dict(),
            'surface': None,
            'n_year': self._design.n_year,
            'n_loc': self._design.n_loc,
            'backend': self.backend_name,
        }
        if self.surface_table is not None:
            out['surface'] = self.surface_table.to_dict()
        return out

    def __repr__(self) -> str:
        return (
            f"SpatialSolution(kind={self.kind!r}, n_year={self._design.n_year}, "
            f"n_loc={self._design.n_loc}, p={len(self.coefficients)}, "
            f"loglik={self.loglik:.4f})"
        )


class LRTSolution:
    """Null-model likelihood-ratio test result."""

    __slots__ = ('_result',)

    def __init__(self, _result: Result[LRTParams]) -> None:
        self._result = _result

    @property
    def statistic(self) -> float:
        return self._result.params.statistic

    @property
    def df(self) -> int:
        return self._result.params.df

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def loglik_null(self) -> float:
        return self._result.params.loglik_null

    @property
    def loglik_full(self) -> float:
        return self._result.params.loglik_full

    @property
    def df_rule(self) -> str:
        return self._result.params.df_rule

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def significant(self, alpha: float = 0.05) -> bool:
        """True when the spatial model improves on the null at level alpha."""
        return self.p_value < alpha

    def summary(self) -> str:
        p = self._result.params
        lines = [
            "Likelihood Ratio Test: spatial trend vs intercept/time null",
            "=" * 60,
            f"  Null model logLik: {p.loglik_null:.4f}",
            f"  Full model logLik: {p.loglik_full:.4f}",
            f"  Basis: order {p.order}, knots {p.n_knots_lon} x {p.n_knots_lat}",
            f"  Chi-squared: {p.statistic:.4f}  on {p.df} df ({p.df_rule})",
            f"  p-value: {_format_pvalue(p.p_value)}",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        p = self._result.params
        return {
            'statistic': p.statistic,
            'df': p.df,
            'p_value': p.p_value,
            'loglik_null': p.loglik_null,
            'loglik_full': p.loglik_full,
            'df_rule': p.df_rule,
        }

    def __repr__(self) -> str:
        return (
            f"LRTSolution(statistic={self.statistic:.4f}, df={self.df}, "
            f"p_value={self.p_value:.4g})"
        )
