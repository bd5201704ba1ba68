"""Neuron pruning from activation statistics: APOZ and activation energy."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.errors import ReductionWarning
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.parameters import resolve_choice, resolve_proportion, resolve_tolerance
from rwnn_reduce.core.strategy import ReductionContext
from rwnn_reduce.core.structural_editor import NeuronPruning, apply_neuron_pruning

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)

SELECTION_TYPES = {"global": "global", "glbl": "global", "uniform": "uniform", "unif": "uniform"}


def standardize_layer(activations: Array) -> Array:
    """Centre and scale a layer's activations by the layer-wide mean and standard deviation."""
    deviation = float(np.std(activations, ddof=1)) if activations.size > 1 else 0.0
    if deviation == 0.0:
        return np.zeros_like(activations)
    return (activations - float(np.mean(activations))) / deviation


def apoz_scores(hidden_activations: Sequence[Array], tolerance: float) -> list[Array]:
    """Fraction of observations for which each neuron's standardized activation is near zero."""
    return [
        np.mean(np.abs(standardize_layer(activation)) < tolerance, axis=0)
        for activation in hidden_activations
    ]


def activation_energy_scores(hidden_activations: Sequence[Array]) -> list[Array]:
    """L2 norm of each neuron's standardized activations."""
    return [np.linalg.norm(standardize_layer(activation), axis=0) for activation in hidden_activations]


def select_neurons(removal_scores: Sequence[Array], proportion: float, selection: str) -> NeuronPruning:
    """Pick the neurons with the highest removal scores.

    ``uniform`` removes ``width - round((1 - p) * width)`` neurons from every
    layer; ``global`` ranks all neurons together and removes the same share
    overall. Layers of width one are exempt and no layer is ever emptied. Ties
    are resolved in favour of keeping the lower neuron index.
    """
    removal: dict[int, tuple[int, ...]] = {}
    if selection == "uniform":
        for layer_index, scores in enumerate(removal_scores):
            keep_count = max(1, round((1.0 - proportion) * scores.size))
            order = np.argsort(scores, kind="stable")
            removal[layer_index] = tuple(sorted(int(index) for index in order[keep_count:]))
    else:
        pooled = np.concatenate(list(removal_scores))
        layer_of = np.concatenate(
            [np.full(scores.size, layer_index) for layer_index, scores in enumerate(removal_scores)]
        )
        position_of = np.concatenate([np.arange(scores.size) for scores in removal_scores])
        order = np.argsort(pooled, kind="stable")
        removed = order[round((1.0 - proportion) * pooled.size):]
        for layer_index, scores in enumerate(removal_scores):
            if scores.size <= 1:
                continue
            layer_removed = removed[layer_of[removed] == layer_index]
            if layer_removed.size >= scores.size:
                # Keep the single best neuron of a layer the pooled ranking would empty.
                warnings.warn(
                    f"Global selection would remove every neuron of hidden layer {layer_index}; "
                    "its best-scoring neuron is kept.",
                    ReductionWarning,
                    stacklevel=2,
                )
                layer_removed = layer_removed[1:]
            removal[layer_index] = tuple(sorted(int(index) for index in position_of[layer_removed]))

    for layer_index, scores in enumerate(removal_scores):
        if scores.size <= 1:
            removal[layer_index] = ()
    return NeuronPruning(remove_indices={key: value for key, value in removal.items() if value})


def reduce_apoz(network: Network, context: ReductionContext) -> None:
    selection = resolve_choice(context.param("type"), "type", SELECTION_TYPES, default="uniform")
    proportion = resolve_proportion(context.param("p"))
    tolerance = resolve_tolerance(context.param("tolerance"))
    if not all(name == "relu" for name in network.activations):
        warnings.warn(
            "APOZ was designed for 'relu' activation functions, but no 'relu' activation was found.",
            ReductionWarning,
            stacklevel=2,
        )

    hidden_activations = network.hidden_activations(context.require_features())
    instruction = select_neurons(apoz_scores(hidden_activations, tolerance), proportion, selection)
    removed = apply_neuron_pruning(network, instruction)
    logger.debug("APOZ (%s) removed %d neurons (p=%.3f)", selection, removed, proportion)


def reduce_activation_energy(network: Network, context: ReductionContext) -> None:
    selection = resolve_choice(context.param("type"), "type", SELECTION_TYPES, default="uniform")
    proportion = resolve_proportion(context.param("p"))

    hidden_activations = network.hidden_activations(context.require_features())
    energies = activation_energy_scores(hidden_activations)
    instruction = select_neurons([-energy for energy in energies], proportion, selection)
    removed = apply_neuron_pruning(network, instruction)
    logger.debug("Activation-energy pruning (%s) removed %d neurons (p=%.3f)", selection, removed, proportion)
