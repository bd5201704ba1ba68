"""Forward pass through the randomly weighted hidden layers."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.activations import resolve_activation
from rwnn_reduce.core.errors import ShapeMismatchError

Array = NDArray[np.float64]


def forward(
    features: Array,
    weights: Sequence[Array],
    activations: Sequence[str],
    biases: Sequence[bool],
) -> list[Array]:
    """Return the activation matrix of every hidden layer.

    Layer ``i`` receives the previous layer's activations (or ``features`` for the
    first layer), prefixed by a column of ones when ``biases[i]`` is set.
    """
    if not (len(weights) == len(activations) == len(biases)):
        raise ShapeMismatchError("weights, activations and biases must have the same length")

    hidden_activations: list[Array] = []
    layer_input = np.asarray(features, dtype=np.float64)
    for layer_index, (layer_weight, activation_name, has_bias) in enumerate(
        zip(weights, activations, biases)
    ):
        if has_bias:
            layer_input = np.hstack([np.ones((layer_input.shape[0], 1)), layer_input])
        if layer_input.shape[1] != layer_weight.shape[0]:
            raise ShapeMismatchError(
                f"hidden layer {layer_index} expects {layer_weight.shape[0]} inputs, "
                f"got {layer_input.shape[1]}"
            )
        activation = resolve_activation(activation_name)(layer_input @ layer_weight)
        hidden_activations.append(activation)
        layer_input = activation
    return hidden_activations
