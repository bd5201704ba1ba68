"""Clean-up after a reduction and optional re-estimation of the output layer."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.estimation import estimate_output_weights
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.structural_editor import (
    remove_hidden_bias,
    remove_neurons,
    remove_output_bias,
    truncate_layers,
)

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)

ZERO_TOLERANCE = 1e-8


def normalize_network(network: Network) -> bool:
    """Remove degenerate structure until nothing changes; returns whether anything did.

    Repeating the pass makes the result stable: a second call is a no-op.
    """
    changed = False
    while _normalize_once(network):
        changed = True
    return changed


def _normalize_once(network: Network) -> bool:
    changed = False
    for layer_index in range(network.layer_count):
        weights = network.hidden_weights[layer_index]
        if network.hidden_biases[layer_index] and np.sum(np.abs(weights[0, :])) < ZERO_TOLERANCE:
            remove_hidden_bias(network, layer_index)
            changed = True
        if np.all(np.abs(network.hidden_weights[layer_index]) < ZERO_TOLERANCE):
            combine_hidden = network.combine_hidden
            truncate_layers(network, layer_index)
            if not combine_hidden:
                logger.warning(
                    "Hidden layer %d was all zero; the new last layer has no output weights until retrained",
                    layer_index,
                )
            return True

    if not network.combine_hidden:
        # Walk backwards so that removals in layer w + 1 are seen when layer w is checked.
        for layer_index in range(network.layer_count - 2, -1, -1):
            next_index = layer_index + 1
            outgoing = network.hidden_weights[next_index][int(network.hidden_biases[next_index]):, :]
            dead = np.flatnonzero(np.sum(np.abs(outgoing), axis=1) < ZERO_TOLERANCE)
            if dead.size >= network.hidden_widths[layer_index]:
                dead = dead[1:]
            if dead.size > 0:
                remove_neurons(network, layer_index, dead)
                changed = True

    if network.output_bias and np.all(np.abs(network.output_weights[0, :]) < ZERO_TOLERANCE):
        remove_output_bias(network)
        changed = True
    return changed


def retrain_output_layer(network: Network, features: Array, targets: Array) -> None:
    """Re-estimate the output weights for the network's current hidden representation."""
    design = network.output_design(features)
    estimate = estimate_output_weights(design, targets, network.regularization_norm, network.penalty)
    network.output_weights = estimate.weights
    network.sigma = estimate.sigma
