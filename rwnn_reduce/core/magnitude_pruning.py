"""Weight pruning by magnitude: global, uniform (layer-wise) and LAMP."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.network import Network
from rwnn_reduce.core.parameters import resolve_proportion
from rwnn_reduce.core.strategy import ReductionContext
from rwnn_reduce.core.structural_editor import WeightPruning, apply_weight_pruning

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)


def global_magnitude_pruning(network: Network, proportion: float) -> WeightPruning:
    """Mark weights whose magnitude lies below the pooled ``proportion``-quantile.

    Hidden and output weights, bias rows included, share one threshold.
    """
    matrices = [*network.hidden_weights, network.output_weights]
    pooled = np.concatenate([np.abs(matrix).ravel() for matrix in matrices])
    threshold = float(np.quantile(pooled, proportion))
    masks = [np.abs(matrix) < threshold for matrix in matrices]
    return WeightPruning(hidden_masks=tuple(masks[:-1]), output_mask=masks[-1])


def uniform_magnitude_pruning(network: Network, proportion: float) -> WeightPruning:
    """Mark weights below each layer's own ``proportion``-quantile."""
    masks = [
        np.abs(matrix) < float(np.quantile(np.abs(matrix), proportion))
        for matrix in [*network.hidden_weights, network.output_weights]
    ]
    return WeightPruning(hidden_masks=tuple(masks[:-1]), output_mask=masks[-1])


def lamp_scores(weights: Array) -> Array:
    """Layer-adaptive magnitude scores, computed column by column.

    A weight's score is its square divided by the sum of the squares of all
    weights in the same column whose magnitude is at least as large (itself
    and ties included). A zero denominator gives a score of zero.
    """
    squared = np.square(np.asarray(weights, dtype=np.float64))
    scores = np.zeros_like(squared)
    for column in range(squared.shape[1]):
        values = squared[:, column]
        ordered = np.sort(values)
        tail_sums = np.cumsum(ordered[::-1])[::-1]
        denominators = tail_sums[np.searchsorted(ordered, values, side="left")]
        np.divide(values, denominators, out=scores[:, column], where=denominators > 0.0)
    return scores


def lamp_pruning(network: Network, proportion: float) -> WeightPruning:
    """Mark weights whose LAMP score is below the pooled ``proportion``-quantile."""
    scores = [lamp_scores(matrix) for matrix in [*network.hidden_weights, network.output_weights]]
    threshold = float(np.quantile(np.concatenate([score.ravel() for score in scores]), proportion))
    masks = [score < threshold for score in scores]
    return WeightPruning(hidden_masks=tuple(masks[:-1]), output_mask=masks[-1])


def reduce_global(network: Network, context: ReductionContext) -> None:
    proportion = resolve_proportion(context.param("p"))
    cleared = apply_weight_pruning(network, global_magnitude_pruning(network, proportion))
    logger.debug("Global magnitude pruning cleared %d weights (p=%.3f)", cleared, proportion)


def reduce_uniform(network: Network, context: ReductionContext) -> None:
    proportion = resolve_proportion(context.param("p"))
    cleared = apply_weight_pruning(network, uniform_magnitude_pruning(network, proportion))
    logger.debug("Uniform magnitude pruning cleared %d weights (p=%.3f)", cleared, proportion)


def reduce_lamp(network: Network, context: ReductionContext) -> None:
    proportion = resolve_proportion(context.param("p"))
    cleared = apply_weight_pruning(network, lamp_pruning(network, proportion))
    logger.debug("LAMP pruning cleared %d weights (p=%.3f)", cleared, proportion)
