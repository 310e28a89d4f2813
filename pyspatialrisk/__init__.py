"""
PySpatialRisk: spatial-temporal trend models for extreme-event counts.

Fits Poisson count models whose rate varies smoothly over a grid of
locations (tensor-product B-splines) and linearly in time, with robust
covariance estimates and a likelihood-ratio test against a spatially
constant null model.

Submodules:
    core: Result envelope, exceptions, validation, linear algebra
    spatial: Basis, design, optimizer, inference and public solvers
"""

__version__ = "0.1.0"

from pyspatialrisk import core
from pyspatialrisk import spatial

__all__ = [
    "__version__",
    "core",
    "spatial",
]
