"""
Linear algebra kernels for PySpatialRisk.

All functions follow these conventions:
    - NumPy/SciPy (LAPACK under the hood)
    - Each factorization returns a structured result dataclass
    - Errors are raised immediately with clear messages

Submodules:
    gchol: Generalized Cholesky decomposition and pseudo-inverse covariance
"""

from pyspatialrisk.core.compute.linalg.gchol import (
    GCHOL_TOLERANCE,
    GCholResult,
    gchol,
    robust_covariance,
)

__all__ = [
    "GCHOL_TOLERANCE",
    "GCholResult",
    "gchol",
    "robust_covariance",
]
