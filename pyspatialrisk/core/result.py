"""
Generic result container for all PySpatialRisk computations.

The Result class is the envelope every backend returns. Domain payloads
(fit parameters, test statistics) ride inside it together with metadata,
timing and non-fatal warnings.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (converged, iterations, step scales)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) so a fit can be reused as a warm start
      without being modified
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for model fits and tests.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific parameters (coefficients, statistics, etc.)
        info: Structured metadata (method, convergence, diagnostics)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the backend that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=FitParams(...),
        ...     info={'method': 'BFGS', 'converged': True, 'iterations': 41},
        ...     timing={'total_seconds': 0.5, 'optimization': 0.45},
        ...     backend_name='cpu_bfgs'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
