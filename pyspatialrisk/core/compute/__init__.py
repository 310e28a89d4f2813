"""
Shared compute infrastructure for PySpatialRisk.

IMPORTANT: This is NOT where domain-specific backends live. Those go in
{domain}/backends/. This module contains shared NUMERIC infrastructure.

Submodules:
    timing: Execution timing utilities
    linalg: Linear algebra kernels (generalized Cholesky, robust covariance)
"""

from pyspatialrisk.core.compute.timing import Timer

__all__ = [
    "Timer",
]
