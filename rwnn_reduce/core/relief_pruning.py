"""Relief: pruning by the share each connection contributes to a neuron's input."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.network import Network
from rwnn_reduce.core.parameters import resolve_choice, resolve_proportion
from rwnn_reduce.core.strategy import ReductionContext
from rwnn_reduce.core.structural_editor import WeightPruning, apply_weight_pruning, remove_neurons

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)

RELIEF_TYPES = {"weight": "weight", "w": "weight", "neuron": "neuron", "n": "neuron"}


def connection_importance(source: Array, weights: Array) -> Array:
    """Mean absolute contribution ``|source_i * w_ij|`` of every connection."""
    return np.mean(np.abs(source), axis=0)[:, np.newaxis] * np.abs(weights)


def relief_scores(source: Array, weights: Array, has_bias: bool) -> tuple[Array, Array]:
    """Relative importance of every entry of ``weights`` and the total input of every neuron.

    Each connection's importance is divided by the total importance flowing into
    its destination neuron, bias included, so the scores of one column sum to
    one. A neuron with no incoming importance scores zero everywhere.
    """
    if has_bias:
        bias = np.abs(weights[:1, :])
        incoming = weights[1:, :]
    else:
        bias = np.zeros((1, weights.shape[1]))
        incoming = weights

    importance = connection_importance(source, incoming)
    totals = np.sum(importance, axis=0) + bias[0]
    entries = np.vstack([bias, importance]) if has_bias else importance
    scores = np.zeros_like(entries)
    np.divide(entries, totals, out=scores, where=totals > 0.0)
    return scores, totals


def relief_weight_pruning(network: Network, features: Array, proportion: float) -> WeightPruning:
    """Mark connections whose relief score is below the ``proportion``-quantile pooled over all layers."""
    scores = relief_weight_scores(network, features)
    threshold = float(np.quantile(np.concatenate([score.ravel() for score in scores]), proportion))
    masks = [score < threshold for score in scores]
    return WeightPruning(hidden_masks=tuple(masks[:-1]), output_mask=masks[-1])


def relief_weight_scores(network: Network, features: Array) -> list[Array]:
    """Relief scores of every hidden weight matrix followed by the output weights."""
    hidden_activations = network.hidden_activations(features)
    sources = [features, *hidden_activations[:-1]]

    scores = [
        relief_scores(source, weights, has_bias)[0]
        for weights, source, has_bias in zip(network.hidden_weights, sources, network.hidden_biases)
    ]
    output_source = network.output_design(features, hidden_activations)
    if network.output_bias:
        output_source = output_source[:, 1:]
    scores.append(relief_scores(output_source, network.output_weights, network.output_bias)[0])
    return scores


def relief_neuron_removal(network: Network, layer_index: int, features: Array, proportion: float) -> tuple[int, ...]:
    """Neurons of ``layer_index`` whose normalised total input is below the ``proportion``-quantile."""
    if network.hidden_widths[layer_index] == 1:
        return ()
    if layer_index == 0:
        source = features
    else:
        source = network.hidden_activations(features)[layer_index - 1]

    _, totals = relief_scores(source, network.hidden_weights[layer_index], network.hidden_biases[layer_index])
    grand_total = float(np.sum(totals))
    if grand_total <= 0.0:
        return ()
    shares = totals / grand_total
    return tuple(int(index) for index in np.flatnonzero(shares < float(np.quantile(shares, proportion))))


def reduce_relief(network: Network, context: ReductionContext) -> None:
    mode = resolve_choice(context.param("type"), "type", RELIEF_TYPES, default="neuron")
    proportion = resolve_proportion(context.param("p"))
    features = context.require_features()

    if mode == "weight":
        cleared = apply_weight_pruning(network, relief_weight_pruning(network, features, proportion))
        logger.debug("Relief weight pruning cleared %d weights (p=%.3f)", cleared, proportion)
        return

    for layer_index in range(network.layer_count):
        removal = relief_neuron_removal(network, layer_index, features, proportion)
        if removal:
            remove_neurons(network, layer_index, removal)
            logger.debug("Relief removed %d neurons from layer %d", len(removal), layer_index)
