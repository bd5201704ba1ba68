"""Fitting random weight neural networks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.activations import DEFAULT_ACTIVATION, resolve_activation
from rwnn_reduce.core.errors import InvalidConfigurationError, ShapeMismatchError
from rwnn_reduce.core.estimation import NORMS
from rwnn_reduce.core.layout import output_row_count
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.normalizer import retrain_output_layer

Array = NDArray[np.float64]
T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RWNNConfig:
    """Architecture and sampling options for ``fit_rwnn``."""

    norm: str = "l2"
    bias_hidden: bool | tuple[bool, ...] = True
    bias_output: bool = True
    activation: str | tuple[str, ...] = DEFAULT_ACTIVATION
    combine_input: bool = False
    combine_hidden: bool = True
    include_data: bool = True
    # Hidden weights are drawn uniformly from [weight_low, weight_high].
    weight_low: float = -1.0
    weight_high: float = 1.0
    feature_count: int | None = None


def fit_rwnn(
    features: Array,
    targets: Array,
    hidden_widths: Sequence[int],
    penalty: float = 0.0,
    config: RWNNConfig | None = None,
    seed: int | np.random.Generator = 7,
) -> Network:
    """Sample the hidden weights once and estimate the output layer in closed form.

    When ``config.feature_count`` is smaller than the number of features, the
    first layer only reads a random subset of them.
    """
    config = config or RWNNConfig()
    features = np.asarray(features, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    if targets.ndim == 1:
        targets = targets.reshape(-1, 1)
    if features.ndim != 2 or features.shape[0] != targets.shape[0]:
        raise ShapeMismatchError("features must be 2-D with one row per target row")

    widths = [int(width) for width in hidden_widths]
    if not widths:
        raise InvalidConfigurationError(
            "When the number of hidden layers is 0 the network reduces to a linear model."
        )
    if any(width <= 0 for width in widths):
        raise InvalidConfigurationError("all hidden_widths values must be positive")
    if penalty < 0.0:
        raise InvalidConfigurationError("penalty has to be larger than or equal to 0")
    if config.norm.lower() not in NORMS:
        raise InvalidConfigurationError("'norm' has to be either 'l1' or 'l2'.")

    biases = [bool(flag) for flag in _per_layer(config.bias_hidden, len(widths), "bias_hidden")]
    activations = [name.lower() for name in _per_layer(config.activation, len(widths), "activation")]
    for name in activations:
        resolve_activation(name)

    input_dim = features.shape[1]
    feature_count = input_dim if config.feature_count is None else int(config.feature_count)
    if not 1 <= feature_count <= input_dim:
        raise InvalidConfigurationError(
            "'feature_count' has to be between 1 and the total number of features."
        )

    rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
    hidden_weights: list[Array] = []
    previous_width = input_dim
    for width, has_bias in zip(widths, biases):
        row_count = previous_width + int(has_bias)
        hidden_weights.append(rng.uniform(config.weight_low, config.weight_high, size=(row_count, width)))
        previous_width = width

    if feature_count < input_dim:
        selected = rng.choice(input_dim, size=feature_count, replace=False)
        silenced = np.setdiff1d(np.arange(input_dim), selected) + int(biases[0])
        hidden_weights[0][silenced, :] = 0.0

    placeholder_rows = output_row_count(
        hidden_widths=widths,
        input_dim=input_dim,
        output_bias=config.bias_output,
        combine_input=config.combine_input,
        combine_hidden=config.combine_hidden,
    )
    network = Network(
        input_dim=input_dim,
        hidden_weights=hidden_weights,
        hidden_biases=biases,
        activations=activations,
        output_weights=np.zeros((placeholder_rows, targets.shape[1])),
        output_bias=config.bias_output,
        combine_input=config.combine_input,
        combine_hidden=config.combine_hidden,
        regularization_norm=config.norm.lower(),
        penalty=float(penalty),
        features=features if config.include_data else None,
        targets=targets if config.include_data else None,
    )
    retrain_output_layer(network, features, targets)
    logger.debug("Fitted network with hidden widths %s", network.hidden_widths)
    return network


def _per_layer(value: T | Sequence[T], layer_count: int, name: str) -> list[T]:
    if isinstance(value, (str, bool)) or not isinstance(value, Sequence):
        return [value] * layer_count
    if len(value) == 1:
        return [value[0]] * layer_count
    if len(value) != layer_count:
        raise InvalidConfigurationError(
            f"'{name}' should have length 1, or be the same length as 'hidden_widths'."
        )
    return list(value)
