"""
Core infrastructure for PySpatialRisk.

Shared abstractions and utilities used by the spatial model engine.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing and linear algebra kernels
"""

from pyspatialrisk.core.result import Result
from pyspatialrisk.core.exceptions import (
    PySpatialRiskError,
    ValidationError,
    DimensionError,
    NumericalError,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PySpatialRiskError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
]
