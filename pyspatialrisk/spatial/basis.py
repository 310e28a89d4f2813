"""
Tensor-product B-spline basis over the spatial grid.

A 1-D B-spline basis of polynomial order m (degree m - 1) is built on each
axis with n_knots equally spaced breakpoints over the observed coordinate
range and clamped boundary knots, giving

    n_bases = n_knots + m - 2

functions per axis (the convention of R's fda::create.bspline.basis). The
spatial basis at location i is the outer product of its longitude and
latitude rows, flattened lon-index-major:

    column j * n_bases_lat + k  =  B_lon[i, j] * B_lat[i, k]

Columns that vanish at every location (products supported only outside the
sampled domain) are dropped; BasisSet.index keeps the (j, k) identity of
every surviving column.

A configuration with n_knots_lon, n_knots_lat or order equal to 0 means
"no spatial basis" (the intercept/time null model). Callers check
is_null_configuration() and never ask for a basis in that case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.interpolate import BSpline

from pyspatialrisk.core.exceptions import ValidationError
from pyspatialrisk.core.validation import check_nonnegative_int
from pyspatialrisk.spatial.grid import SpatialGrid


@dataclass(frozen=True)
class BasisSet:
    """
    Tensor-product basis evaluated on a grid.

    Attributes:
        values: Non-negative basis matrix (n_loc x n_bases), zero columns removed
        index: (n_bases x 2) integer array of (lon_index, lat_index) per column
        n_bases_lon: Number of 1-D longitude basis functions
        n_bases_lat: Number of 1-D latitude basis functions
        n_knots_lon: Longitude breakpoints
        n_knots_lat: Latitude breakpoints
        order: Spline order (4 = cubic)
        dropped: Number of all-zero tensor columns removed
    """
    values: NDArray[np.floating[Any]]
    index: NDArray[np.integer[Any]]
    n_bases_lon: int
    n_bases_lat: int
    n_knots_lon: int
    n_knots_lat: int
    order: int
    dropped: int

    @property
    def n_loc(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_bases(self) -> int:
        """Number of surviving tensor-product columns."""
        return int(self.values.shape[1])

    @property
    def n_tensor(self) -> int:
        """Number of tensor-product columns before zero-column removal."""
        return self.n_bases_lon * self.n_bases_lat

    @property
    def names(self) -> tuple[str, ...]:
        """Stable column labels b[j,k]."""
        return tuple(f"b[{j},{k}]" for j, k in self.index)

    @property
    def config(self) -> tuple[int, int, int]:
        """(n_knots_lon, n_knots_lat, order) cache key."""
        return (self.n_knots_lon, self.n_knots_lat, self.order)


def is_null_configuration(n_knots_lon: int, n_knots_lat: int, order: int) -> bool:
    """True when the hyperparameters request no spatial basis."""
    return n_knots_lon == 0 or n_knots_lat == 0 or order == 0


def n_bases_1d(n_knots: int, order: int) -> int:
    """Number of 1-D B-spline functions for n_knots breakpoints."""
    return n_knots + order - 2


def bspline_basis(
    x: ArrayLike,
    n_knots: int,
    order: int,
    *,
    lower: float | None = None,
    upper: float | None = None,
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    """
    Evaluate a clamped 1-D B-spline basis.

    Parameters
    ----------
    x : array-like
        Positions (n,)
    n_knots : int
        Number of equally spaced breakpoints, endpoints included (>= 2)
    order : int
        Polynomial order, degree + 1 (>= 1)
    lower, upper : float, optional
        Basis range; defaults to min(x) and max(x)

    Returns
    -------
    B : np.ndarray
        Basis matrix (n x (n_knots + order - 2)), values in [0, 1]
    knots : np.ndarray
        Full knot vector
    """
    x = np.asarray(x, dtype=np.float64).ravel()
    if n_knots < 2:
        raise ValidationError(f"n_knots: must be >= 2, got {n_knots}")
    if order < 1:
        raise ValidationError(f"order: must be >= 1, got {order}")

    lo = float(np.min(x)) if lower is None else float(lower)
    hi = float(np.max(x)) if upper is None else float(upper)
    if not hi > lo:
        raise ValidationError(
            f"basis range is degenerate: lower={lo:g}, upper={hi:g}"
        )

    degree = order - 1
    breaks = np.linspace(lo, hi, n_knots)
    knots = np.concatenate([
        np.full(degree, lo),
        breaks,
        np.full(degree, hi),
    ])
    n_basis = len(knots) - order

    B = np.zeros((len(x), n_basis))
    for i in range(n_basis):
        coef = np.zeros(n_basis)
        coef[i] = 1.0
        spline = BSpline(knots, coef, degree, extrapolate=False)
        B[:, i] = spline(x)

    # Points outside [lo, hi] evaluate to NaN with extrapolate=False
    B = np.nan_to_num(B, nan=0.0)
    # Round-off can leave values a hair below zero
    B = np.clip(B, 0.0, 1.0)

    return B, knots


def tensor_basis(
    grid: SpatialGrid,
    n_knots_lon: int,
    n_knots_lat: int,
    order: int,
) -> BasisSet:
    """
    Tensor-product basis for every grid location.

    Builds the longitude and latitude bases over the observed coordinate
    ranges, multiplies them per location and drops all-zero columns.

    Raises:
        ValidationError: For negative hyperparameters, a null configuration,
            or a grid whose longitudes (or latitudes) are all equal
    """
    n_knots_lon = check_nonnegative_int(n_knots_lon, 'n_knots_lon')
    n_knots_lat = check_nonnegative_int(n_knots_lat, 'n_knots_lat')
    order = check_nonnegative_int(order, 'order')
    if is_null_configuration(n_knots_lon, n_knots_lat, order):
        raise ValidationError(
            "tensor_basis: null configuration "
            f"(n_knots_lon={n_knots_lon}, n_knots_lat={n_knots_lat}, order={order}) "
            "has no spatial basis"
        )

    B_lon, _ = bspline_basis(grid.lon, n_knots_lon, order)
    B_lat, _ = bspline_basis(grid.lat, n_knots_lat, order)
    m_lon, m_lat = B_lon.shape[1], B_lat.shape[1]

    full = (B_lon[:, :, np.newaxis] * B_lat[:, np.newaxis, :]).reshape(grid.n_loc, m_lon * m_lat)
    keep = np.flatnonzero(np.any(full > 0.0, axis=0))

    lon_idx, lat_idx = np.divmod(keep, m_lat)
    index = np.column_stack([lon_idx, lat_idx]).astype(np.int64)

    values = np.ascontiguousarray(full[:, keep])
    values.setflags(write=False)
    index.setflags(write=False)

    return BasisSet(
        values=values,
        index=index,
        n_bases_lon=m_lon,
        n_bases_lat=m_lat,
        n_knots_lon=n_knots_lon,
        n_knots_lat=n_knots_lat,
        order=order,
        dropped=m_lon * m_lat - len(keep),
    )


class BasisCache:
    """
    Per-grid cache of BasisSets keyed by (n_knots_lon, n_knots_lat, order).

    BasisSets are immutable, so a cached one can be handed to any number
    of fits.
    """

    def __init__(self, grid: SpatialGrid):
        self._grid = grid
        self._cache: dict[tuple[int, int, int], BasisSet] = {}

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    def get(self, n_knots_lon: int, n_knots_lat: int, order: int) -> BasisSet:
        """Return the cached basis, building it on first request."""
        key = (int(n_knots_lon), int(n_knots_lat), int(order))
        basis = self._cache.get(key)
        if basis is None:
            basis = tensor_basis(self._grid, *key)
            self._cache[key] = basis
        return basis

    def __contains__(self, key: tuple[int, int, int]) -> bool:
        return tuple(key) in self._cache

    def __len__(self) -> int:
        return len(self._cache)
