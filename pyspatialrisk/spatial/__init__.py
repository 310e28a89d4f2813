"""
Spatially-varying Poisson trend model for gridded event counts.

Public API:
    fit(grid, counts, ...) -> SpatialSolution
    fit_null(grid, counts, ...) -> SpatialSolution
    null_model_test(full, null) -> LRTSolution
    sweep(grid, counts, configs, ...) -> list[SweepEntry]
    simulate_counts(grid, intercept, trend, n_year, ...) -> ndarray
"""

from pyspatialrisk.spatial.grid import SpatialGrid
from pyspatialrisk.spatial.basis import (
    BasisSet,
    BasisCache,
    bspline_basis,
    tensor_basis,
    is_null_configuration,
)
from pyspatialrisk.spatial.design import SpatialDesign, design_matrix, column_names
from pyspatialrisk.spatial._likelihood import (
    INFEASIBLE_LOGLIK,
    log_lik,
    poisson_hessian,
)
from pyspatialrisk.spatial._lrt import LRT_DF_SQUARES_LON_BASES
from pyspatialrisk.spatial.solution import SpatialSolution, LRTSolution
from pyspatialrisk.spatial.solvers import (
    fit,
    fit_null,
    null_model_test,
    sweep,
    SweepEntry,
)
from pyspatialrisk.spatial.simulate import simulate_counts

__all__ = [
    "SpatialGrid",
    "BasisSet",
    "BasisCache",
    "bspline_basis",
    "tensor_basis",
    "is_null_configuration",
    "SpatialDesign",
    "design_matrix",
    "column_names",
    "INFEASIBLE_LOGLIK",
    "log_lik",
    "poisson_hessian",
    "LRT_DF_SQUARES_LON_BASES",
    "SpatialSolution",
    "LRTSolution",
    "fit",
    "fit_null",
    "null_model_test",
    "sweep",
    "SweepEntry",
    "simulate_counts",
]
