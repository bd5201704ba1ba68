"""Removal of structure whose output-layer weights have become zero."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.network import Network
from rwnn_reduce.core.parameters import resolve_tolerance
from rwnn_reduce.core.strategy import ReductionContext
from rwnn_reduce.core.structural_editor import (
    NeuronPruning,
    apply_neuron_pruning,
    remove_output_bias,
    silence_input_features,
)

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)


def zero_output_rows(network: Network, tolerance: float) -> Array:
    """Indices of output-weight rows whose entries are all within ``tolerance`` of zero."""
    return np.flatnonzero(np.all(np.abs(network.output_weights) < tolerance, axis=1))


def trace_output_rows(network: Network, rows: Array) -> tuple[bool, tuple[int, ...], NeuronPruning]:
    """Map output rows back to the output bias, input features and hidden neurons.

    A hidden layer of width one keeps its neuron, and a layer whose rows are all
    zero keeps its first neuron so it is never emptied.
    """
    row_set = {int(row) for row in rows}
    bias_hit = network.output_bias and 0 in row_set

    features: tuple[int, ...] = ()
    if network.combine_input:
        start = int(network.output_bias)
        features = tuple(row - start for row in sorted(row_set) if start <= row < start + network.input_dim)

    removal: dict[int, tuple[int, ...]] = {}
    widths = network.hidden_widths
    for layer_index, width in enumerate(widths):
        if not network.combine_hidden and layer_index != network.layer_count - 1:
            continue
        if width == 1:
            continue
        start = network.output_row_offset(layer_index)
        neurons = tuple(row - start for row in sorted(row_set) if start <= row < start + width)
        if len(neurons) >= width:
            neurons = neurons[1:]
        if neurons:
            removal[layer_index] = neurons
    return bias_hit, features, NeuronPruning(remove_indices=removal)


def reduce_output(network: Network, context: ReductionContext) -> None:
    tolerance = resolve_tolerance(context.param("tolerance"))
    rows = zero_output_rows(network, tolerance)
    if rows.size == 0:
        return

    bias_hit, features, instruction = trace_output_rows(network, rows)
    # Neuron offsets are computed against the current layout, so neurons go first.
    removed = apply_neuron_pruning(network, instruction)
    silence_input_features(network, features)
    if bias_hit:
        remove_output_bias(network)
    logger.debug(
        "Output pruning removed %d neurons, silenced %d features, bias removed: %s",
        removed,
        len(features),
        bias_hit,
    )
