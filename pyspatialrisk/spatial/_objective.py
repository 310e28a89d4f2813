"""
Barriered objective in scaled coordinates for the BFGS driver.

The optimizer works on z = theta / scale, where scale holds the per-parameter
step scales, and minimizes the negated log-likelihood. Infeasible points
keep the barrier value -INFEASIBLE_LOGLIK. The gradient is the closed-form
Poisson score mapped into z by the chain rule; it is zero on the barrier, so
the line search backs off from infeasible trial points on function values.
"""

from typing import Any
import numpy as np
from numpy.typing import NDArray

from pyspatialrisk.spatial._likelihood import log_lik, is_infeasible, poisson_gradient


class ScaledPoissonObjective:
    """
    Negated Poisson log-likelihood on the scaled parameter vector.

    Tracks the best feasible point evaluated, so that an optimizer that
    stops early (iteration cap, line-search failure) never loses ground.
    """

    def __init__(
        self,
        X: NDArray[np.floating[Any]],
        y: NDArray[np.floating[Any]],
        scale: NDArray[np.floating[Any]],
    ):
        self.X = X
        self.y = y
        self.scale = np.asarray(scale, dtype=np.float64)
        self.n_evals = 0
        self.best_z: NDArray[np.floating[Any]] | None = None
        self.best_value = np.inf

    def to_params(self, z: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        return np.asarray(z, dtype=np.float64) * self.scale

    def to_scaled(self, theta: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        return np.asarray(theta, dtype=np.float64) / self.scale

    def _loglik(self, z: NDArray[np.floating[Any]]) -> float:
        self.n_evals += 1
        return log_lik(self.to_params(z), self.X, self.y)

    def compute_objective(self, z: NDArray[np.floating[Any]]) -> float:
        """-log_lik(z * scale); the barrier stays a large finite value."""
        value = -self._loglik(z)
        if value < self.best_value:
            self.best_value = value
            self.best_z = np.array(z, dtype=np.float64)
        return value

    def compute_gradient(self, z: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        """Gradient of compute_objective in z: the negated score times scale."""
        z = np.asarray(z, dtype=np.float64)
        theta = self.to_params(z)
        if is_infeasible(self._loglik(z)):
            return np.zeros_like(z)
        return -poisson_gradient(theta, self.X, self.y) * self.scale
