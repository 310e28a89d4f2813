"""
Solver dispatch for the spatial Poisson trend model.

Public API:
    fit(grid, counts, ...) -> SpatialSolution
    fit_null(grid, counts, ...) -> SpatialSolution
    null_model_test(full, null) -> LRTSolution
    sweep(grid, counts, configs, ...) -> list[SweepEntry]
"""

from __future__ import annotations

import warnings
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable
import numpy as np
from numpy.typing import ArrayLike

from pyspatialrisk.core.exceptions import ValidationError
from pyspatialrisk.core.result import Result
from pyspatialrisk.core.validation import check_nonnegative_int, check_probability
from pyspatialrisk.spatial._common import FitParams
from pyspatialrisk.spatial._lrt import likelihood_ratio_test
from pyspatialrisk.spatial._uncertainty import estimate_uncertainty
from pyspatialrisk.spatial.backends.cpu import CPUBFGSBackend
from pyspatialrisk.spatial.basis import BasisCache, is_null_configuration, tensor_basis
from pyspatialrisk.spatial.design import N_FIXED, SpatialDesign
from pyspatialrisk.spatial.grid import SpatialGrid
from pyspatialrisk.spatial.solution import LRTSolution, SpatialSolution


def fit(
    grid_or_table,
    counts: ArrayLike,
    *,
    n_knots_lon: int = 4,
    n_knots_lat: int = 4,
    order: int = 4,
    time: ArrayLike | None = None,
    max_iter: int = 100,
    alpha: float = 0.05,
    two_pass: bool = True,
    basis_cache: BasisCache | None = None,
    verbose: bool = False,
) -> SpatialSolution:
    """
    Fit the spatially-varying Poisson trend model.

    The event rate at location l in year y is

        rate = b0 + b_lon * lon + b_lat * lat + t_y * (B_l . gamma)

    with B_l the tensor-product B-spline basis at the location. The
    first pass fits that plain design from least-squares starting values;
    the second pass warm-starts the augmented design, which adds a
    spatial intercept B_l . delta, from the first-pass estimate.

    Parameters
    ----------
    grid_or_table : SpatialGrid or array-like
        Locations, or an (n_loc, 2) lon/lat table
    counts : array-like
        (n_year x n_loc) non-negative integer event counts
    n_knots_lon, n_knots_lat : int
        Breakpoints of the longitude and latitude spline bases
    order : int
        Spline order (4 = cubic). A 0 in any of the three hyperparameters
        fits the intercept/time null model instead.
    time : array-like, optional
        Per-year time covariate (n_year,), non-negative. Defaults to
        0, 1, ..., n_year - 1.
    max_iter : int
        BFGS iteration cap per pass. Hitting it is not an error.
    alpha : float
        Significance level of the Wald intervals
    two_pass : bool
        Refit the augmented design after the plain one
    basis_cache : BasisCache, optional
        Cache for the grid's basis sets (repeated fits on one grid)
    verbose : bool
        Print progress and emit optimizer warnings

    Returns
    -------
    SpatialSolution

    Examples
    --------
    >>> from pyspatialrisk.spatial import SpatialGrid, fit, fit_null, null_model_test
    >>> sol = fit(grid, counts, n_knots_lon=4, n_knots_lat=4, order=4)
    >>> print(sol.summary())
    >>> test = null_model_test(sol, fit_null(grid, counts))
    >>> test.p_value
    """
    grid = _as_grid(grid_or_table)
    n_knots_lon = check_nonnegative_int(n_knots_lon, 'n_knots_lon')
    n_knots_lat = check_nonnegative_int(n_knots_lat, 'n_knots_lat')
    order = check_nonnegative_int(order, 'order')
    max_iter = _check_max_iter(max_iter)
    alpha = check_probability(alpha, 'alpha')

    if is_null_configuration(n_knots_lon, n_knots_lat, order):
        if verbose:
            print("Null configuration: fitting intercept/time model")
        return fit_null(
            grid, counts, time=time, max_iter=max_iter, alpha=alpha, verbose=verbose,
        )

    if basis_cache is not None:
        if not basis_cache.grid.same_locations(grid):
            raise ValidationError("basis_cache was built for a different grid")
        basis = basis_cache.get(n_knots_lon, n_knots_lat, order)
    else:
        basis = tensor_basis(grid, n_knots_lon, n_knots_lat, order)

    design = SpatialDesign.build(grid, counts, basis, kind='plain', time=time)
    backend = CPUBFGSBackend()

    if verbose:
        print(f"Spatial Poisson trend: {design.n_year} years, {design.n_loc} locations, "
              f"{basis.n_bases} basis functions ({basis.dropped} empty dropped)")
        print(f"Backend: {backend.name}")

    first = backend.solve(design, max_iter=max_iter)
    if verbose:
        _report_pass('plain', first)

    if not two_pass:
        return _finish(first, design, alpha, verbose)

    augmented = design.with_kind('augmented')
    result = backend.solve(
        augmented, start=augmented_start(first.params, basis.n_bases), max_iter=max_iter,
    )
    if verbose:
        _report_pass('augmented', result)

    return _finish(result, augmented, alpha, verbose, first_pass=first)


def fit_null(
    grid_or_table,
    counts: ArrayLike,
    *,
    time: ArrayLike | None = None,
    max_iter: int = 100,
    alpha: float = 0.05,
    verbose: bool = False,
) -> SpatialSolution:
    """
    Fit the intercept/time null model, rate = b0 + b1 * t_y.

    Same pipeline as fit() on the two-column design [1, t]; the
    solution carries no spatial surface.
    """
    grid = _as_grid(grid_or_table)
    max_iter = _check_max_iter(max_iter)
    alpha = check_probability(alpha, 'alpha')

    design = SpatialDesign.build(grid, counts, None, time=time)
    if verbose:
        print(f"Null model: {design.n_year} years, {design.n_loc} locations")

    result = CPUBFGSBackend().solve(design, max_iter=max_iter)
    if verbose:
        _report_pass('null', result)
    return _finish(result, design, alpha, verbose)


def null_model_test(
    full: SpatialSolution,
    null: SpatialSolution,
    *,
    squares_lon: bool | None = None,
) -> LRTSolution:
    """
    Likelihood-ratio test of a spatial fit against the null model.

    Both solutions must be fit on the same count table and time covariate.

    Parameters
    ----------
    full : SpatialSolution
        Spatial fit (fit())
    null : SpatialSolution
        Intercept/time fit (fit_null())
    squares_lon : bool, optional
        Degrees-of-freedom rule override, see _lrt.LRT_DF_SQUARES_LON_BASES
    """
    if full.basis is None:
        raise ValidationError("full: expected a spatial fit, got a null-model fit")
    if null.basis is not None:
        raise ValidationError("null: expected a null-model fit, got a spatial fit")
    if full.design.counts.shape != null.design.counts.shape or not np.array_equal(
        full.design.counts, null.design.counts
    ):
        raise ValidationError("full and null fits were made on different count tables")
    if not np.array_equal(full.design.time, null.design.time):
        raise ValidationError("full and null fits were made on different time covariates")

    basis = full.basis
    params = likelihood_ratio_test(
        null.loglik, full.loglik,
        basis.n_knots_lon, basis.n_knots_lat, basis.order,
        squares_lon=squares_lon,
    )

    messages = []
    if not (full.converged and null.converged):
        messages.append(
            "at least one model stopped at its iteration cap; the statistic "
            "compares best iterates"
        )

    return LRTSolution(Result(
        params=params,
        info={'method': 'likelihood_ratio', 'df_rule': params.df_rule},
        timing=None,
        backend_name='cpu_bfgs',
        warnings=tuple(messages),
    ))


@dataclass(frozen=True)
class SweepEntry:
    """One configuration of a robustness sweep."""
    config: tuple[int, int, int]        # (n_knots_lon, n_knots_lat, order)
    solution: SpatialSolution
    lrt: LRTSolution | None             # None for a null configuration


def sweep(
    grid_or_table,
    counts: ArrayLike,
    configs: Iterable[tuple[int, int, int]],
    *,
    max_workers: int | None = None,
    **fit_kwargs: Any,
) -> list[SweepEntry]:
    """
    Fit one model per (n_knots_lon, n_knots_lat, order) configuration.

    Every fit is independent. With max_workers > 1 the fits run in a
    process pool; otherwise they run serially and share one BasisCache.
    Each spatial fit is tested against a single shared null-model fit.

    Parameters
    ----------
    grid_or_table : SpatialGrid or array-like
    counts : array-like
        (n_year x n_loc) event counts
    configs : iterable of (int, int, int)
        Hyperparameter triples
    max_workers : int, optional
        Worker processes; None or 1 runs serially
    **fit_kwargs
        Forwarded to fit() (time, max_iter, alpha, two_pass)

    Returns
    -------
    list[SweepEntry] in the order of configs
    """
    grid = _as_grid(grid_or_table)
    configs = [_check_config(c) for c in configs]
    if 'basis_cache' in fit_kwargs:
        raise ValidationError("sweep manages its own basis cache")
    if max_workers is not None:
        max_workers = check_nonnegative_int(max_workers, 'max_workers')
        if max_workers < 1:
            raise ValidationError(f"max_workers: must be >= 1, got {max_workers}")

    null_kwargs = {k: v for k, v in fit_kwargs.items() if k in ('time', 'max_iter', 'alpha', 'verbose')}
    null = fit_null(grid, counts, **null_kwargs)

    if max_workers is not None and max_workers > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(_fit_config, grid, counts, config, fit_kwargs)
                for config in configs
            ]
            solutions = [f.result() for f in futures]
    else:
        cache = BasisCache(grid)
        solutions = [
            _fit_config(grid, counts, config, {**fit_kwargs, 'basis_cache': cache})
            for config in configs
        ]

    entries = []
    for config, solution in zip(configs, solutions):
        lrt = None
        if solution.basis is not None:
            lrt = null_model_test(solution, null)
        entries.append(SweepEntry(config=config, solution=solution, lrt=lrt))
    return entries


def augmented_start(first: FitParams, n_bases: int) -> np.ndarray:
    """
    Warm start for the augmented design from a plain-design fit.

    [b0, b_lon, b_lat, gamma] -> [b0, b_lon, b_lat, zeros(n_bases), gamma]
    """
    coef = first.coefficients
    if len(coef) != N_FIXED + n_bases:
        raise ValidationError(
            f"first pass has {len(coef)} coefficients, expected {N_FIXED + n_bases}"
        )
    return np.concatenate([coef[:N_FIXED], np.zeros(n_bases), coef[N_FIXED:]])


def _fit_config(grid, counts, config, fit_kwargs):
    """Process-pool entry point for one sweep configuration."""
    n_knots_lon, n_knots_lat, order = config
    return fit(
        grid, counts,
        n_knots_lon=n_knots_lon, n_knots_lat=n_knots_lat, order=order,
        **fit_kwargs,
    )


def _finish(
    result: Result[FitParams],
    design: SpatialDesign,
    alpha: float,
    verbose: bool,
    first_pass: Result[FitParams] | None = None,
) -> SpatialSolution:
    """Attach inference to the accepted pass."""
    if verbose:
        passes = [first_pass, result] if first_pass is not None else [result]
        for r in passes:
            for msg in r.warnings:
                warnings.warn(msg, RuntimeWarning, stacklevel=3)

    uncertainty, messages = estimate_uncertainty(result.params, design, alpha)
    return SpatialSolution(
        _result=result,
        _uncertainty=uncertainty,
        _design=design,
        _first_pass=first_pass,
        _extra_warnings=messages,
    )


def _report_pass(label: str, result: Result[FitParams]) -> None:
    p = result.params
    print(f"  {label}: loglik {p.loglik:.6f}, converged: {p.converged} "
          f"(iterations: {p.n_iter}, evaluations: {result.info['n_function_evals']})")


def _as_grid(grid_or_table) -> SpatialGrid:
    if isinstance(grid_or_table, SpatialGrid):
        return grid_or_table
    return SpatialGrid.from_table(grid_or_table)


def _check_max_iter(max_iter: int) -> int:
    max_iter = check_nonnegative_int(max_iter, 'max_iter')
    if max_iter < 1:
        raise ValidationError(f"max_iter: must be >= 1, got {max_iter}")
    return max_iter


def _check_config(config) -> tuple[int, int, int]:
    values = tuple(config)
    if len(values) != 3:
        raise ValidationError(
            f"config: expected (n_knots_lon, n_knots_lat, order), got {config!r}"
        )
    names = ('n_knots_lon', 'n_knots_lat', 'order')
    return tuple(check_nonnegative_int(v, n) for v, n in zip(values, names))
