"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np

from pyspatialrisk.spatial import SpatialGrid, simulate_counts


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(scope="session")
def grid3():
    """3x3 grid on {0, 1, 2}^2, lon-major (location l has lon = l // 3)."""
    lon, lat = np.meshgrid([0.0, 1.0, 2.0], [0.0, 1.0, 2.0], indexing="ij")
    return SpatialGrid.from_arrays(lon.ravel(), lat.ravel())


@pytest.fixture(scope="session")
def true_trend(grid3):
    """Trend rising with longitude: 0.2, 1.1, 2.0 events per year per year."""
    return 0.2 + 0.9 * grid3.lon


@pytest.fixture(scope="session")
def trend_counts(grid3, true_trend):
    """20 years of counts with baseline 10 and a longitude-varying trend."""
    return simulate_counts(grid3, 10.0, true_trend, 20, seed=2024)


@pytest.fixture(scope="session")
def flat_counts(grid3):
    """20 years of counts with the same baseline and trend everywhere."""
    return simulate_counts(grid3, 10.0, 0.5, 20, seed=7)
