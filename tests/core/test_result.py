"""
Tests for the Result[P] envelope.

Validates:
    - Generic type parameter works with arbitrary payload types
    - Frozen immutability
    - Default warnings tuple
    - has_warning() method
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pyspatialrisk.core.result import Result


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


def _result(**kwargs):
    defaults = dict(
        params=FakeParams(value=1.0),
        info={"method": "BFGS"},
        timing=None,
        backend_name="cpu_bfgs",
    )
    defaults.update(kwargs)
    return Result(**defaults)


# ═══════════════════════════════════════════════════════════════════════
# Construction and defaults
# ═══════════════════════════════════════════════════════════════════════


class TestResultConstruction:

    def test_basic_creation(self):
        result = _result(timing={"total_seconds": 0.01})
        assert result.params.value == 1.0
        assert result.info["method"] == "BFGS"
        assert result.timing["total_seconds"] == 0.01
        assert result.backend_name == "cpu_bfgs"

    def test_warnings_default_empty(self):
        assert _result().warnings == ()

    def test_warnings_explicit(self):
        result = _result(warnings=("BFGS did not converge in 5 iterations",))
        assert len(result.warnings) == 1


class TestImmutability:

    def test_cannot_set_params(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.params = FakeParams(value=2.0)

    def test_cannot_set_warnings(self):
        result = _result()
        with pytest.raises(FrozenInstanceError):
            result.warnings = ("new",)


class TestHasWarning:

    def test_no_warnings_returns_false(self):
        assert not _result().has_warning("converge")

    def test_substring_match(self):
        result = _result(warnings=("BFGS did not converge in 5 iterations: cap",))
        assert result.has_warning("did not converge")
        assert not result.has_warning("singular")
