"""Random weight neural networks and ensembles of them."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.errors import InvalidConfigurationError, ShapeMismatchError
from rwnn_reduce.core.forward import forward
from rwnn_reduce.core.layout import output_row_count, output_row_offset

Array = NDArray[np.float64]

ENSEMBLE_METHODS = ("bagging", "boosting", "stacking", "ensemble-deep")


@dataclass
class Network:
    """A feed-forward network with fixed random hidden weights.

    Hidden layer ``i`` has a weight matrix of shape
    ``(inputs_i + hidden_biases[i], width_i)``; when ``hidden_biases[i]`` is set,
    row 0 is the bias row. ``output_weights`` maps the output design matrix
    (see ``rwnn_reduce.core.layout``) to the targets.
    """

    input_dim: int
    hidden_weights: list[Array]
    hidden_biases: list[bool]
    activations: list[str]
    output_weights: Array
    output_bias: bool = True
    combine_input: bool = False
    combine_hidden: bool = True
    regularization_norm: str = "l2"
    penalty: float = 0.0
    sigma: float | None = None
    features: Array | None = field(default=None, repr=False)
    targets: Array | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.input_dim <= 0:
            raise ShapeMismatchError("input_dim must be positive")
        self.hidden_weights = [np.asarray(weight, dtype=np.float64) for weight in self.hidden_weights]
        self.hidden_biases = [bool(flag) for flag in self.hidden_biases]
        self.activations = [str(name).lower() for name in self.activations]
        self.output_weights = np.asarray(self.output_weights, dtype=np.float64)
        if self.output_weights.ndim == 1:
            self.output_weights = self.output_weights.reshape(-1, 1)
        self.check_invariants()

    @property
    def hidden_widths(self) -> list[int]:
        """Neuron count of every hidden layer."""
        return [int(weight.shape[1]) for weight in self.hidden_weights]

    @property
    def layer_count(self) -> int:
        return len(self.hidden_weights)

    @property
    def output_dim(self) -> int:
        return int(self.output_weights.shape[1])

    def parameter_count(self) -> int:
        """Total number of hidden and output weights, zeros included."""
        hidden = sum(int(weight.size) for weight in self.hidden_weights)
        return hidden + int(self.output_weights.size)

    def nonzero_parameter_count(self) -> int:
        hidden = sum(int(np.count_nonzero(weight)) for weight in self.hidden_weights)
        return hidden + int(np.count_nonzero(self.output_weights))

    def output_row_offset(self, layer_index: int) -> int:
        return output_row_offset(
            layer_index=layer_index,
            hidden_widths=self.hidden_widths,
            input_dim=self.input_dim,
            output_bias=self.output_bias,
            combine_input=self.combine_input,
            combine_hidden=self.combine_hidden,
        )

    def expected_output_rows(self) -> int:
        return output_row_count(
            hidden_widths=self.hidden_widths,
            input_dim=self.input_dim,
            output_bias=self.output_bias,
            combine_input=self.combine_input,
            combine_hidden=self.combine_hidden,
        )

    def check_invariants(self) -> None:
        """Raise ``ShapeMismatchError`` unless every layer lines up with its neighbours."""
        if self.layer_count == 0:
            raise ShapeMismatchError("a network needs at least one hidden layer")
        if not (len(self.hidden_weights) == len(self.hidden_biases) == len(self.activations)):
            raise ShapeMismatchError(
                "hidden_weights, hidden_biases and activations must have the same length"
            )

        previous_width = self.input_dim
        for layer_index, (weight, has_bias) in enumerate(zip(self.hidden_weights, self.hidden_biases)):
            if weight.ndim != 2:
                raise ShapeMismatchError(f"hidden layer {layer_index} weights must be a 2-D matrix")
            if weight.shape[1] == 0:
                raise ShapeMismatchError(f"hidden layer {layer_index} has no neurons")
            expected_rows = previous_width + int(has_bias)
            if weight.shape[0] != expected_rows:
                raise ShapeMismatchError(
                    f"hidden layer {layer_index} has {weight.shape[0]} rows, expected {expected_rows}"
                )
            previous_width = weight.shape[1]

        expected_output_rows = self.expected_output_rows()
        if self.output_weights.ndim != 2 or self.output_weights.shape[0] != expected_output_rows:
            raise ShapeMismatchError(
                f"output layer has {self.output_weights.shape[0]} rows, expected {expected_output_rows}"
            )

    def hidden_activations(self, features: Array) -> list[Array]:
        return forward(features, self.hidden_weights, self.activations, self.hidden_biases)

    def output_design(self, features: Array, hidden_activations: list[Array] | None = None) -> Array:
        """Assemble the matrix the output weights are applied to."""
        features = np.asarray(features, dtype=np.float64)
        if hidden_activations is None:
            hidden_activations = self.hidden_activations(features)

        if self.combine_hidden:
            hidden = np.hstack(hidden_activations)
        else:
            hidden = hidden_activations[-1]

        blocks: list[Array] = []
        if self.output_bias:
            blocks.append(np.ones((features.shape[0], 1), dtype=np.float64))
        if self.combine_input:
            blocks.append(features)
        blocks.append(hidden)
        return np.hstack(blocks)

    def predict(self, features: Array) -> Array:
        return self.output_design(features) @ self.output_weights

    def copy(self) -> Network:
        """Deep copy of the weights; stored training data is shared, not copied."""
        duplicate = copy.copy(self)
        duplicate.hidden_weights = [weight.copy() for weight in self.hidden_weights]
        duplicate.hidden_biases = list(self.hidden_biases)
        duplicate.activations = list(self.activations)
        duplicate.output_weights = self.output_weights.copy()
        return duplicate


@dataclass
class Ensemble:
    """Ensemble of networks combined by non-negative weights summing to one."""

    models: list[Network]
    weights: Array
    method: str
    features: Array | None = field(default=None, repr=False)
    targets: Array | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.method = self.method.lower()
        if self.method not in ENSEMBLE_METHODS:
            expected = "', '".join(ENSEMBLE_METHODS)
            raise InvalidConfigurationError(f"'method' should be one of '{expected}', got '{self.method}'.")
        self.models = list(self.models)
        self.weights = np.asarray(self.weights, dtype=np.float64).reshape(-1)
        if not self.models:
            raise InvalidConfigurationError("an ensemble needs at least one model")
        if self.weights.shape[0] != len(self.models):
            raise ShapeMismatchError(
                f"{len(self.models)} models but {self.weights.shape[0]} combination weights"
            )
        if np.any(self.weights < 0.0):
            raise InvalidConfigurationError("combination weights must be non-negative")
        if not np.isclose(float(np.sum(self.weights)), 1.0):
            raise InvalidConfigurationError("combination weights must sum to 1")

    def parameter_count(self) -> int:
        return sum(model.parameter_count() for model in self.models)

    def predict(self, features: Array) -> Array:
        prediction = self.weights[0] * self.models[0].predict(features)
        for weight, model in zip(self.weights[1:], self.models[1:]):
            prediction = prediction + weight * model.predict(features)
        return prediction

    def copy(self) -> Ensemble:
        duplicate = copy.copy(self)
        duplicate.models = [model.copy() for model in self.models]
        duplicate.weights = self.weights.copy()
        return duplicate
