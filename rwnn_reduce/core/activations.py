"""Activation functions available to hidden layers."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.errors import InvalidConfigurationError

Array = NDArray[np.float64]

DEFAULT_ACTIVATION = "silu"


def identity(values: Array) -> Array:
    return values


def bent_identity(values: Array) -> Array:
    return (np.sqrt(np.square(values) + 1.0) - 1.0) / 2.0 + values


def sigmoid(values: Array) -> Array:
    """Compute sigmoid activation with stable clipping."""
    clipped = np.clip(values, -50.0, 50.0)
    return 1.0 / (1.0 + np.exp(-clipped))


def tanh(values: Array) -> Array:
    return np.tanh(values)


def relu(values: Array) -> Array:
    return np.maximum(values, 0.0)


def silu(values: Array) -> Array:
    return values * sigmoid(values)


def softplus(values: Array) -> Array:
    """Compute log(1 + exp(x)) without overflow."""
    return np.logaddexp(0.0, values)


def softsign(values: Array) -> Array:
    return values / (1.0 + np.abs(values))


def sqnl(values: Array) -> Array:
    """Square non-linearity, saturating at -1 and 1."""
    return np.select(
        [values < -2.0, values < 0.0, values <= 2.0],
        [-1.0, values + np.square(values) / 4.0, values - np.square(values) / 4.0],
        default=1.0,
    )


def gaussian(values: Array) -> Array:
    return np.exp(-np.square(values))


def sqrbf(values: Array) -> Array:
    """Square radial basis function with compact support on ``|x| < 2``."""
    magnitude = np.abs(values)
    return np.select(
        [magnitude <= 1.0, magnitude < 2.0],
        [1.0 - np.square(values) / 2.0, np.square(2.0 - magnitude) / 2.0],
        default=0.0,
    )


ACTIVATIONS: dict[str, Callable[[Array], Array]] = {
    "identity": identity,
    "bentidentity": bent_identity,
    "sigmoid": sigmoid,
    "tanh": tanh,
    "relu": relu,
    "silu": silu,
    "softplus": softplus,
    "softsign": softsign,
    "sqnl": sqnl,
    "gaussian": gaussian,
    "sqrbf": sqrbf,
}


def resolve_activation(name: str) -> Callable[[Array], Array]:
    """Look up an activation function by its (case-insensitive) identifier."""
    function = ACTIVATIONS.get(name.lower())
    if function is None:
        implemented = "', '".join(ACTIVATIONS)
        raise InvalidConfigurationError(
            f"Invalid activation function '{name}'. The implemented activation functions are: '{implemented}'."
        )
    return function
