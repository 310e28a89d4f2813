"""
Spatial trend design.

SpatialDesign pairs an event-count table with the regression design matrix
of the spatially-varying Poisson trend model. Observations are ordered
year-major: row y * n_loc + l is year y at location l, which is the order
of counts.ravel().

Column layouts (B = basis values of the location, t = time of the year):

    null       [1, t]
    plain      [1, lon, lat, t*B]
    augmented  [1, lon, lat, B, t*B]

Every basis-derived entry is >= 0 because B >= 0 and t >= 0; the start
correction and step scaling in the optimizer rely on that.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyspatialrisk.core.exceptions import DimensionError, ValidationError
from pyspatialrisk.core.validation import (
    check_array,
    check_finite,
    check_1d,
    check_2d,
    check_nonnegative,
    check_integral,
)
from pyspatialrisk.spatial.basis import BasisSet
from pyspatialrisk.spatial.grid import SpatialGrid


DesignKind = Literal['null', 'plain', 'augmented']

# Leading fixed-effect columns of the spatial layouts: 1, lon, lat
N_FIXED = 3


def default_time(n_year: int) -> NDArray[np.floating[Any]]:
    """Time covariate 0, 1, ..., n_year - 1."""
    return np.arange(n_year, dtype=np.float64)


def design_matrix(
    grid: SpatialGrid,
    n_year: int,
    basis: BasisSet | None,
    *,
    kind: DesignKind = 'plain',
    time: ArrayLike | None = None,
) -> NDArray[np.floating[Any]]:
    """
    Assemble the (n_year * n_loc) x p design matrix.

    Pure function: identical inputs give bit-identical matrices.

    Parameters
    ----------
    grid : SpatialGrid
        Locations
    n_year : int
        Number of years (rows of the count table)
    basis : BasisSet or None
        Spatial basis; None builds the null layout [1, t]
    kind : {'null', 'plain', 'augmented'}
        Column layout. Must be 'null' exactly when basis is None.
    time : array-like, optional
        Per-year time covariate (n_year,), non-negative. Defaults to
        0, 1, ..., n_year - 1.
    """
    t = _check_time(time, n_year)
    n_loc = grid.n_loc

    if basis is None:
        if kind != 'null':
            raise ValidationError(f"kind={kind!r} requires a spatial basis")
    else:
        if kind not in ('plain', 'augmented'):
            raise ValidationError(
                f"Unknown design kind: {kind!r}. Use 'plain' or 'augmented'."
            )
        if basis.n_loc != n_loc:
            raise DimensionError(
                f"basis has {basis.n_loc} rows but grid has {n_loc} locations"
            )

    t_obs = np.repeat(t, n_loc)
    ones = np.ones(n_year * n_loc, dtype=np.float64)

    if basis is None:
        return np.column_stack([ones, t_obs])

    lon_obs = np.tile(grid.lon, n_year)
    lat_obs = np.tile(grid.lat, n_year)
    B_obs = np.tile(basis.values, (n_year, 1))
    tB = t_obs[:, np.newaxis] * B_obs

    blocks = [ones[:, np.newaxis], lon_obs[:, np.newaxis], lat_obs[:, np.newaxis]]
    if kind == 'augmented':
        blocks.append(B_obs)
    blocks.append(tB)
    return np.hstack(blocks)


def column_names(basis: BasisSet | None, kind: DesignKind) -> tuple[str, ...]:
    """Names aligned with design_matrix() columns."""
    if basis is None:
        return ('(Intercept)', 'time')
    names = ['(Intercept)', 'lon', 'lat']
    if kind == 'augmented':
        names.extend(f"intercept:{b}" for b in basis.names)
    names.extend(f"time:{b}" for b in basis.names)
    return tuple(names)


def trend_slice(basis: BasisSet | None, kind: DesignKind) -> slice | None:
    """Parameter positions of the time-interaction coefficients."""
    if basis is None:
        return None
    start = N_FIXED + (basis.n_bases if kind == 'augmented' else 0)
    return slice(start, start + basis.n_bases)


def intercept_slice(basis: BasisSet | None, kind: DesignKind) -> slice | None:
    """Parameter positions of the spatial-intercept coefficients."""
    if basis is None or kind != 'augmented':
        return None
    return slice(N_FIXED, N_FIXED + basis.n_bases)


@dataclass(frozen=True)
class SpatialDesign:
    """
    Design for the spatially-varying Poisson trend model.

    Immutable after construction.

    Construction:
        SpatialDesign.build(grid, counts, basis, kind='plain')
        design.with_kind('augmented')
    """
    _grid: SpatialGrid
    _counts: NDArray[np.floating[Any]]
    _time: NDArray[np.floating[Any]]
    _basis: BasisSet | None
    _kind: DesignKind
    _X: NDArray[np.floating[Any]]
    _y: NDArray[np.floating[Any]]

    @classmethod
    def build(
        cls,
        grid: SpatialGrid,
        counts: ArrayLike,
        basis: BasisSet | None,
        *,
        kind: DesignKind | None = None,
        time: ArrayLike | None = None,
    ) -> SpatialDesign:
        """
        Validate the count table and assemble the design matrix.

        Parameters
        ----------
        grid : SpatialGrid
        counts : array-like
            (n_year x n_loc) non-negative integer event counts
        basis : BasisSet or None
            None for the null model
        kind : str, optional
            Defaults to 'null' without a basis and 'plain' with one
        time : array-like, optional
            Per-year time covariate (n_year,)
        """
        counts_arr = check_counts(counts, grid.n_loc)
        n_year = counts_arr.shape[0]
        t = _check_time(time, n_year)

        if kind is None:
            kind = 'null' if basis is None else 'plain'

        X = design_matrix(grid, n_year, basis, kind=kind, time=t)
        y = counts_arr.ravel()

        X.setflags(write=False)
        y.setflags(write=False)
        return cls(
            _grid=grid, _counts=counts_arr, _time=t, _basis=basis,
            _kind=kind, _X=X, _y=y,
        )

    def with_kind(self, kind: DesignKind) -> SpatialDesign:
        """Same grid, counts, time and basis with another column layout."""
        return SpatialDesign.build(
            self._grid, self._counts, self._basis, kind=kind, time=self._time,
        )

    # === Properties ===

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def counts(self) -> NDArray[np.floating[Any]]:
        """Event counts (n_year x n_loc)."""
        return self._counts

    @property
    def time(self) -> NDArray[np.floating[Any]]:
        """Time covariate (n_year,)."""
        return self._time

    @property
    def basis(self) -> BasisSet | None:
        return self._basis

    @property
    def kind(self) -> DesignKind:
        return self._kind

    @property
    def X(self) -> NDArray[np.floating[Any]]:
        """Design matrix (n x p)."""
        return self._X

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        """Flattened counts (n,), year-major."""
        return self._y

    @property
    def n(self) -> int:
        """Number of observations (n_year * n_loc)."""
        return int(self._X.shape[0])

    @property
    def p(self) -> int:
        """Number of parameters."""
        return int(self._X.shape[1])

    @property
    def n_year(self) -> int:
        return int(self._counts.shape[0])

    @property
    def n_loc(self) -> int:
        return int(self._counts.shape[1])

    @property
    def column_names(self) -> tuple[str, ...]:
        return column_names(self._basis, self._kind)

    @property
    def trend_slice(self) -> slice | None:
        return trend_slice(self._basis, self._kind)

    @property
    def intercept_slice(self) -> slice | None:
        return intercept_slice(self._basis, self._kind)

    def __repr__(self) -> str:
        return (
            f"SpatialDesign(kind={self._kind!r}, n_year={self.n_year}, "
            f"n_loc={self.n_loc}, p={self.p})"
        )


def check_counts(counts: ArrayLike, n_loc: int) -> NDArray[np.floating[Any]]:
    """
    Validate an event-count table against the grid.

    Returns:
        Float copy of the counts (n_year x n_loc)

    Raises:
        DimensionError: If the table is not 2D or has the wrong column count
        ValidationError: If counts are non-finite, negative or fractional
    """
    arr = np.array(check_array(counts, 'counts'), dtype=np.float64)
    check_2d(arr, 'counts')
    if arr.shape[1] != n_loc:
        raise DimensionError(
            f"counts: expected {n_loc} columns (one per location), got {arr.shape[1]}"
        )
    if arr.shape[0] < 1:
        raise ValidationError("counts: needs at least 1 year")
    check_finite(arr, 'counts')
    check_nonnegative(arr, 'counts')
    check_integral(arr, 'counts')
    return arr


def _check_time(time: ArrayLike | None, n_year: int) -> NDArray[np.floating[Any]]:
    """Validate or default the per-year time covariate."""
    if time is None:
        return default_time(n_year)
    t = np.array(check_array(time, 'time'), dtype=np.float64)
    check_1d(t, 'time')
    if t.shape[0] != n_year:
        raise DimensionError(
            f"time: expected {n_year} values (one per year), got {t.shape[0]}"
        )
    check_finite(t, 'time')
    check_nonnegative(t, 'time')
    return t
