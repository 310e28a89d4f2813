"""
Exception hierarchy for PySpatialRisk.

All exceptions inherit from PySpatialRiskError to allow catching any
library-specific error.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Infeasible Poisson rates are NOT exceptions (the objective returns
      a sentinel), and neither are singular Hessians (handled by the
      robust covariance path)
"""


class PySpatialRiskError(Exception):
    """Base exception for all PySpatialRisk errors."""
    pass


class ValidationError(PySpatialRiskError):
    """
    Input validation failed.

    Raised when user-provided inputs (grid, counts, hyperparameters)
    fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when the grid, the count table, the time covariate and the
    design matrix disagree on their row or column counts.
    """
    pass


class NumericalError(PySpatialRiskError):
    """
    Numerical computation failed.

    Raised when a quantity that must be finite (a Hessian, a covariance)
    is not.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        n_nonfinite: Number of non-finite entries, if counted
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        n_nonfinite: int | None = None,
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.n_nonfinite = n_nonfinite
