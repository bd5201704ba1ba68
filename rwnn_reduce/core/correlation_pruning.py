"""Neuron pruning of redundant, highly correlated neurons."""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from rwnn_reduce.core.errors import InvalidConfigurationError
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.parameters import (
    resolve_choice,
    resolve_correlation_threshold,
    resolve_significance,
)
from rwnn_reduce.core.strategy import ReductionContext
from rwnn_reduce.core.structural_editor import remove_neurons

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)

CORRELATION_METHODS = {"pearson": "pearson", "spearman": "spearman", "kendall": "kendall"}


def correlation_matrix(activations: Array, method: str = "pearson") -> Array:
    """Pairwise correlation between the columns of ``activations``.

    Undefined correlations (constant neurons) are reported as zero.
    """
    activations = np.asarray(activations, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        if method == "pearson":
            matrix = np.corrcoef(activations, rowvar=False)
        elif method == "spearman":
            matrix = np.corrcoef(stats.rankdata(activations, axis=0), rowvar=False)
        elif method == "kendall":
            matrix = _kendall_matrix(activations)
        else:
            raise InvalidConfigurationError(f"unknown correlation method '{method}'")
    matrix = np.atleast_2d(matrix)
    return np.nan_to_num(matrix, nan=0.0)


def _kendall_matrix(activations: Array) -> Array:
    column_count = activations.shape[1]
    matrix = np.eye(column_count)
    for row in range(column_count):
        for column in range(row + 1, column_count):
            tau, _ = stats.kendalltau(activations[:, row], activations[:, column])
            matrix[row, column] = matrix[column, row] = tau
    return matrix


def correlated_neurons(correlation: Array, rho: float) -> tuple[int, ...]:
    """Neurons correlated at or above ``rho`` with some lower-indexed neuron.

    Each pair is counted once, so the lower index of a correlated pair survives.
    """
    upper = np.triu(correlation, k=1)
    return tuple(int(index) for index in np.flatnonzero(np.any(upper >= rho, axis=0)))


def not_significantly_uncorrelated(
    correlation: Array, rho: float, alpha: float, observation_count: int
) -> tuple[int, ...]:
    """Neurons whose correlation with some lower-indexed neuron is not significantly below ``rho``.

    Each pair is tested with the Fisher z-transform, ``H0: rho_observed >= rho``
    against ``rho_observed < rho`` at level ``alpha``. A neuron survives only if
    the test rejects for every lower-indexed neuron.
    """
    if observation_count <= 3:
        raise InvalidConfigurationError("the correlation test needs more than 3 observations")

    with np.errstate(divide="ignore", invalid="ignore"):
        observed = np.arctanh(np.clip(correlation, -1.0, 1.0))
        threshold = np.arctanh(rho)
        statistic = (observed - threshold) * np.sqrt(observation_count - 3)
    p_values = np.where(np.triu(np.ones_like(correlation, dtype=bool), k=1), stats.norm.cdf(statistic), 0.0)
    # A NaN p-value (both transforms infinite) cannot reject the null hypothesis.
    rejected = np.nan_to_num(p_values, nan=1.0) < alpha
    return tuple(int(index) for index in np.flatnonzero(~np.all(rejected, axis=0)))


def reduce_correlation(network: Network, context: ReductionContext) -> None:
    method = resolve_choice(context.param("type"), "type", CORRELATION_METHODS, default="pearson")
    rho = resolve_correlation_threshold(context.param("rho"))
    features = context.require_features()

    for layer_index in range(network.layer_count):
        if network.hidden_widths[layer_index] == 1:
            continue
        activations = network.hidden_activations(features)[layer_index]
        removal = correlated_neurons(correlation_matrix(activations, method), rho)
        if removal:
            remove_neurons(network, layer_index, removal)
            logger.debug("Correlation pruning removed %d neurons from layer %d", len(removal), layer_index)


def reduce_correlation_test(network: Network, context: ReductionContext) -> None:
    method = resolve_choice(context.param("type"), "type", CORRELATION_METHODS, default="pearson")
    rho = resolve_correlation_threshold(context.param("rho"), exact_bounds=True)
    alpha = resolve_significance(context.param("alpha"))
    features = context.require_features()

    for layer_index in range(network.layer_count):
        if network.hidden_widths[layer_index] == 1:
            continue
        activations = network.hidden_activations(features)[layer_index]
        removal = not_significantly_uncorrelated(
            correlation_matrix(activations, method), rho, alpha, features.shape[0]
        )
        if removal:
            remove_neurons(network, layer_index, removal)
            logger.debug(
                "Correlation test pruning removed %d neurons from layer %d", len(removal), layer_index
            )
