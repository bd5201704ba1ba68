"""Resolution of strategy parameters to valid values.

Out-of-range or missing values never abort a reduction: they are replaced by a
documented default and a ``ReductionWarning`` is emitted.
"""

from __future__ import annotations

import math
import numbers
import warnings
from typing import Any

import numpy as np

from rwnn_reduce.core.errors import InvalidConfigurationError, ReductionWarning


def resolve_proportion(value: Any, name: str = "p") -> float:
    """Resolve a removal proportion into ``[0.01, 0.99]``."""
    return _resolve_unit_interval(value, name=name, default=0.1, low=0.01, high=0.99)


def resolve_correlation_threshold(value: Any, exact_bounds: bool = False) -> float:
    """Resolve ``rho``; the correlation test accepts the closed interval ``[0, 1]``."""
    if exact_bounds:
        return _resolve_unit_interval(value, name="rho", default=0.99, low=0.0, high=1.0)
    return _resolve_unit_interval(value, name="rho", default=0.99, low=0.01, high=0.99)


def resolve_significance(value: Any) -> float:
    return _resolve_unit_interval(value, name="alpha", default=0.05, low=0.01, high=0.99)


def resolve_tolerance(value: Any) -> float:
    if not _is_real(value):
        _warn("'tolerance' is set to '1e-8' as it was either None, or not numeric.")
        return 1e-8
    if value < 0.0:
        _warn("'tolerance' is set to '1e-8', because it was found to be smaller than '0'.")
        return 1e-8
    return float(value)


def resolve_retrain(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    _warn("'retrain' is set to 'True' as it was either None, or not a boolean.")
    return True


def resolve_choice(value: Any, name: str, choices: dict[str, str], default: str) -> str:
    """Map ``value`` (or its alias) onto a canonical choice.

    A missing value falls back to ``default``; an unknown value is fatal.
    """
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidConfigurationError(f"'{name}' must be a string.")
    canonical = choices.get(value.strip().lower())
    if canonical is None:
        expected = "', '".join(sorted(set(choices.values())))
        raise InvalidConfigurationError(f"'{name}' should be one of '{expected}', got '{value}'.")
    return canonical


def resolve_positive_int(value: Any, name: str, default: int) -> int:
    if not _is_real(value) or value < 1:
        _warn(f"'{name}' was not supplied, or not a positive integer, and is set to {default}.")
        return default
    return int(value)


def _resolve_unit_interval(value: Any, name: str, default: float, low: float, high: float) -> float:
    if not _is_real(value):
        _warn(f"'{name}' is set to '{default}' as it was either None, or not numeric.")
        return default
    if value < 0.0:
        _warn(f"'{name}' is set to '{low}', because it was found to be smaller than '0'.")
        return low
    if value > 1.0:
        _warn(f"'{name}' is set to '{high}', because it was found to be larger than '1'.")
        return high
    return float(value)


def _is_real(value: Any) -> bool:
    if not isinstance(value, numbers.Real) or isinstance(value, (bool, np.bool_)):
        return False
    return not math.isnan(float(value))


def _warn(message: str) -> None:
    warnings.warn(message, ReductionWarning, stacklevel=3)
