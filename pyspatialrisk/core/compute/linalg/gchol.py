"""
Generalized Cholesky decomposition and robust covariance reconstruction.

The generalized Cholesky factorization writes a symmetric matrix as

    A = L D L'

with L unit lower triangular and D diagonal. Unlike the ordinary Cholesky
factorization it never fails: a pivot that is negative, non-finite or
smaller than ``tol * max|diag(A)|`` is set to zero and its column of L is
zeroed, so L D L' is always positive semi-definite. This follows the
behaviour of R's bdsmatrix::gchol and survival's cholesky2.

robust_covariance() chains it after a Moore-Penrose pseudo-inverse:

    Sigma = L D L'   where   pinv(-H) = L D L'   (up to dropped pivots)

which yields a usable covariance even when the observed information -H is
singular, e.g. for collinear spline columns.
"""

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray

from pyspatialrisk.core.exceptions import DimensionError, NumericalError

# Relative pivot tolerance, matching bdsmatrix::gchol
GCHOL_TOLERANCE = 1e-10


@dataclass(frozen=True)
class GCholResult:
    """
    Result of a generalized Cholesky decomposition.

    Attributes:
        L: Unit lower triangular factor (p x p)
        D: Non-negative diagonal of the middle factor (p,)
        rank: Number of pivots kept (entries of D > 0)
    """
    L: NDArray[np.floating[Any]]
    D: NDArray[np.floating[Any]]
    rank: int

    def reconstruct(self) -> NDArray[np.floating[Any]]:
        """Return L D L' (symmetric positive semi-definite)."""
        LD = self.L * self.D[np.newaxis, :]
        out = LD @ self.L.T
        return 0.5 * (out + out.T)


def gchol(
    A: NDArray[np.floating[Any]],
    tol: float = GCHOL_TOLERANCE,
) -> GCholResult:
    """
    Generalized Cholesky decomposition of a symmetric matrix.

    Only the lower triangle of A is read.

    Args:
        A: Symmetric matrix (p x p)
        tol: Relative tolerance; pivots below tol * max|diag(A)| are zeroed

    Returns:
        GCholResult with L, D and the numerical rank

    Raises:
        DimensionError: If A is not square
    """
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise DimensionError(f"gchol: expected square matrix, got shape {A.shape}")

    p = A.shape[0]
    M = np.tril(A) + np.tril(A, -1).T
    L = np.eye(p, dtype=np.float64)
    D = np.zeros(p, dtype=np.float64)

    diag = np.abs(np.diag(M))
    scale = float(np.max(diag[np.isfinite(diag)])) if np.any(np.isfinite(diag)) else 0.0
    eps = tol * scale if scale > 0 else tol

    rank = 0
    for i in range(p):
        pivot = M[i, i]
        if not np.isfinite(pivot) or pivot < eps:
            # Dropped pivot: D[i] stays 0 and L[i+1:, i] stays 0
            continue
        rank += 1
        D[i] = pivot
        col = M[i + 1:, i] / pivot
        L[i + 1:, i] = col
        M[i + 1:, i + 1:] -= pivot * np.outer(col, col)

    return GCholResult(L=L, D=D, rank=rank)


def robust_covariance(
    hessian: NDArray[np.floating[Any]],
    tol: float = GCHOL_TOLERANCE,
) -> NDArray[np.floating[Any]]:
    """
    Covariance matrix from a log-likelihood Hessian, robust to singularity.

    Steps: negate the Hessian (observed information), take its
    Moore-Penrose pseudo-inverse, factor that with gchol() and rebuild
    L D L'. The result is symmetric positive semi-definite whatever the
    conditioning of the Hessian.

    Args:
        hessian: Second-derivative matrix of the log-likelihood (p x p)
        tol: Pivot tolerance forwarded to gchol()

    Returns:
        Covariance matrix (p x p)

    Raises:
        NumericalError: If the Hessian contains NaN or Inf
    """
    H = np.asarray(hessian, dtype=np.float64)
    if not np.all(np.isfinite(H)):
        raise NumericalError(
            "Hessian contains non-finite values",
            matrix_name='hessian',
            n_nonfinite=int(np.sum(~np.isfinite(H))),
        )

    info = -H
    info = 0.5 * (info + info.T)
    info_pinv = np.linalg.pinv(info, hermitian=True)
    return gchol(info_pinv, tol=tol).reconstruct()
