"""Structural edits that keep a network's layers consistent.

Neuron removal deletes columns of a layer, the matching input rows of the next
layer and the matching output-layer rows. Weight removal sets entries to zero
and never changes a shape. All functions mutate the network they are given, so
callers work on a copy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.errors import DegenerateResultError, ShapeMismatchError
from rwnn_reduce.core.layout import feeds_output
from rwnn_reduce.core.network import Network

Array = NDArray[np.float64]
Mask = NDArray[np.bool_]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightPruning:
    """Entries to set to zero: one boolean mask per hidden layer plus one for the output layer."""

    hidden_masks: tuple[Mask, ...]
    output_mask: Mask


@dataclass(frozen=True)
class NeuronPruning:
    """Column indices to delete, keyed by hidden-layer index."""

    remove_indices: Mapping[int, tuple[int, ...]] = field(default_factory=dict)

    def removal_count(self) -> int:
        return sum(len(indices) for indices in self.remove_indices.values())


def remove_neurons(network: Network, layer_index: int, indices: Iterable[int]) -> tuple[int, ...]:
    """Delete neurons ``indices`` from hidden layer ``layer_index``.

    Returns the sorted indices that were removed. Removing every neuron of a
    layer raises ``DegenerateResultError`` before anything is changed.
    """
    if not 0 <= layer_index < network.layer_count:
        raise ShapeMismatchError(f"hidden layer {layer_index} does not exist")
    width = network.hidden_widths[layer_index]
    removal = tuple(sorted({int(index) for index in indices}))
    if not removal:
        return ()
    if removal[0] < 0 or removal[-1] >= width:
        raise ShapeMismatchError(f"neuron indices {removal} out of range for width {width}")
    if len(removal) >= width:
        raise DegenerateResultError(f"removing {len(removal)} neurons would empty hidden layer {layer_index}")

    # The output offset depends only on earlier layers, so it is unaffected by this edit.
    output_rows: Array | None = None
    if feeds_output(layer_index, network.layer_count, network.combine_hidden):
        output_rows = network.output_row_offset(layer_index) + np.asarray(removal)

    network.hidden_weights[layer_index] = np.delete(network.hidden_weights[layer_index], removal, axis=1)
    next_index = layer_index + 1
    if next_index < network.layer_count:
        next_rows = np.asarray(removal) + int(network.hidden_biases[next_index])
        network.hidden_weights[next_index] = np.delete(network.hidden_weights[next_index], next_rows, axis=0)
    if output_rows is not None:
        network.output_weights = np.delete(network.output_weights, output_rows, axis=0)

    logger.debug(
        "Removed neurons %s from hidden layer %d (width %d -> %d)",
        removal,
        layer_index,
        width,
        network.hidden_widths[layer_index],
    )
    return removal


def apply_neuron_pruning(network: Network, instruction: NeuronPruning) -> int:
    """Apply a multi-layer neuron removal; returns the number of neurons removed.

    Every layer is validated before the first edit so a failing instruction
    leaves ``network`` untouched.
    """
    widths = network.hidden_widths
    for layer_index, indices in instruction.remove_indices.items():
        if not 0 <= layer_index < len(widths):
            raise ShapeMismatchError(f"hidden layer {layer_index} does not exist")
        if len(set(indices)) >= widths[layer_index]:
            raise DegenerateResultError(f"instruction would empty hidden layer {layer_index}")

    removed = 0
    for layer_index in sorted(instruction.remove_indices):
        removed += len(remove_neurons(network, layer_index, instruction.remove_indices[layer_index]))
    return removed


def apply_weight_pruning(network: Network, instruction: WeightPruning) -> int:
    """Zero the masked entries in place; returns how many non-zero weights were cleared."""
    if len(instruction.hidden_masks) != network.layer_count:
        raise ShapeMismatchError("one mask per hidden layer is required")
    for layer_index, (weight, mask) in enumerate(zip(network.hidden_weights, instruction.hidden_masks)):
        if mask.shape != weight.shape:
            raise ShapeMismatchError(f"mask for hidden layer {layer_index} has shape {mask.shape}")
    if instruction.output_mask.shape != network.output_weights.shape:
        raise ShapeMismatchError(f"output mask has shape {instruction.output_mask.shape}")

    cleared = 0
    for weight, mask in zip(network.hidden_weights, instruction.hidden_masks):
        cleared += int(np.count_nonzero(weight[mask]))
        weight[mask] = 0.0
    cleared += int(np.count_nonzero(network.output_weights[instruction.output_mask]))
    network.output_weights[instruction.output_mask] = 0.0
    return cleared


def remove_hidden_bias(network: Network, layer_index: int) -> None:
    if not network.hidden_biases[layer_index]:
        return
    network.hidden_weights[layer_index] = network.hidden_weights[layer_index][1:, :]
    network.hidden_biases[layer_index] = False
    logger.debug("Removed bias row of hidden layer %d", layer_index)


def remove_output_bias(network: Network) -> None:
    if not network.output_bias:
        return
    network.output_weights = network.output_weights[1:, :]
    network.output_bias = False
    logger.debug("Removed output bias row")


def silence_input_features(network: Network, feature_indices: Sequence[int]) -> None:
    """Zero the first-layer weights reading the given input features."""
    if not feature_indices:
        return
    rows = np.asarray(feature_indices, dtype=int) + int(network.hidden_biases[0])
    network.hidden_weights[0][rows, :] = 0.0
    logger.debug("Silenced input features %s", tuple(int(index) for index in feature_indices))


def truncate_layers(network: Network, keep_layers: int) -> None:
    """Drop hidden layer ``keep_layers`` and every layer after it.

    With combined hidden layers the output rows of the surviving layers are
    kept as they are. Otherwise the new last layer had no output rows, so zero
    rows are inserted for it and the output layer has to be re-estimated.
    """
    if keep_layers <= 0:
        raise DegenerateResultError("truncation would remove every hidden layer")
    if keep_layers >= network.layer_count:
        return

    if network.combine_hidden:
        surviving_rows = network.output_row_offset(keep_layers)
        output_weights = network.output_weights[:surviving_rows, :]
    else:
        leading_rows = int(network.output_bias) + (network.input_dim if network.combine_input else 0)
        new_last_width = network.hidden_widths[keep_layers - 1]
        output_weights = np.vstack(
            [
                network.output_weights[:leading_rows, :],
                np.zeros((new_last_width, network.output_dim), dtype=np.float64),
            ]
        )

    dropped = network.layer_count - keep_layers
    network.hidden_weights = network.hidden_weights[:keep_layers]
    network.hidden_biases = network.hidden_biases[:keep_layers]
    network.activations = network.activations[:keep_layers]
    network.output_weights = output_weights
    logger.debug("Truncated %d hidden layer(s); %d remain", dropped, keep_layers)
