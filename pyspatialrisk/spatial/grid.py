"""
SpatialGrid: the fixed set of locations every fit shares.

Wraps longitude and latitude vectors. Immutable after construction so
that basis sets computed from it can be cached and shared between fits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyspatialrisk.core.exceptions import ValidationError
from pyspatialrisk.core.validation import (
    check_array,
    check_finite,
    check_1d,
    check_2d,
    check_consistent_length,
)


@dataclass(frozen=True)
class SpatialGrid:
    """
    Ordered collection of n_loc (longitude, latitude) locations.

    Construction:
        SpatialGrid.from_arrays(lon, lat)
        SpatialGrid.from_table(table)      # (n_loc, 2): lon, lat columns
    """
    _lon: NDArray[np.floating[Any]]
    _lat: NDArray[np.floating[Any]]

    @classmethod
    def from_arrays(cls, lon: ArrayLike, lat: ArrayLike) -> SpatialGrid:
        """Build a grid from separate longitude and latitude vectors."""
        lon_arr = check_array(lon, 'lon').astype(np.float64).ravel()
        lat_arr = check_array(lat, 'lat').astype(np.float64).ravel()
        return cls._build(lon_arr, lat_arr)

    @classmethod
    def from_table(cls, table: ArrayLike) -> SpatialGrid:
        """
        Build a grid from an (n_loc, 2) table.

        Parameters
        ----------
        table : array-like
            First column longitude, second column latitude. pandas
            DataFrames are accepted through their ``.values``.
        """
        arr = check_array(table, 'table').astype(np.float64)
        check_2d(arr, 'table')
        if arr.shape[1] != 2:
            raise ValidationError(
                f"table: expected 2 columns (lon, lat), got {arr.shape[1]}"
            )
        return cls._build(arr[:, 0].copy(), arr[:, 1].copy())

    @classmethod
    def _build(cls, lon: NDArray, lat: NDArray) -> SpatialGrid:
        """Internal builder with validation."""
        check_1d(lon, 'lon')
        check_1d(lat, 'lat')
        check_finite(lon, 'lon')
        check_finite(lat, 'lat')
        check_consistent_length(lon, lat, names=('lon', 'lat'))
        if lon.shape[0] < 1:
            raise ValidationError("grid: needs at least 1 location")

        lon.setflags(write=False)
        lat.setflags(write=False)
        return cls(_lon=lon, _lat=lat)

    @property
    def lon(self) -> NDArray[np.floating[Any]]:
        """Longitudes (n_loc,)."""
        return self._lon

    @property
    def lat(self) -> NDArray[np.floating[Any]]:
        """Latitudes (n_loc,)."""
        return self._lat

    @property
    def n_loc(self) -> int:
        """Number of locations."""
        return int(self._lon.shape[0])

    def same_locations(self, other: SpatialGrid) -> bool:
        """True when other holds the same coordinates in the same order."""
        return self is other or (
            np.array_equal(self._lon, other.lon) and np.array_equal(self._lat, other.lat)
        )

    def __len__(self) -> int:
        return self.n_loc

    def __repr__(self) -> str:
        return (
            f"SpatialGrid(n_loc={self.n_loc}, "
            f"lon=[{self._lon.min():g}, {self._lon.max():g}], "
            f"lat=[{self._lat.min():g}, {self._lat.max():g}])"
        )
