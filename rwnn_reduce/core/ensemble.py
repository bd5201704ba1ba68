"""Building stacking ensembles of random weight neural networks."""

from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import nnls

from rwnn_reduce.core.errors import InvalidConfigurationError, ReductionWarning
from rwnn_reduce.core.estimation import estimate_output_weights
from rwnn_reduce.core.network import Ensemble, Network
from rwnn_reduce.core.parameters import resolve_positive_int
from rwnn_reduce.core.rwnn import RWNNConfig, fit_rwnn

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)


def fit_stack_rwnn(
    features: Array,
    targets: Array,
    hidden_widths: Sequence[int],
    penalty: float = 0.0,
    member_count: Any = 100,
    optimise: bool = False,
    folds: Any = 10,
    config: RWNNConfig | None = None,
    seed: int = 7,
) -> Ensemble:
    """Fit ``member_count`` networks and combine them as a stack.

    Unless the caller fixes ``config.feature_count``, every member reads a
    random third of the features. With ``optimise`` the combination weights are
    the non-negative least-squares fit of out-of-fold member predictions to the
    targets, normalised to sum to one; otherwise every member gets equal weight.
    """
    if not isinstance(optimise, bool):
        raise InvalidConfigurationError("'optimise' has to be True/False.")
    member_count = resolve_positive_int(member_count, "member_count", default=100)
    if optimise:
        folds = resolve_positive_int(folds, "folds", default=10)

    features = np.asarray(features, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    if targets.ndim == 1:
        targets = targets.reshape(-1, 1)

    config = config or RWNNConfig()
    if config.feature_count is None:
        config = replace(config, feature_count=math.ceil(features.shape[1] / 3))
    member_config = replace(config, include_data=False)

    rng = np.random.default_rng(seed)
    fold_indices = np.array_split(rng.permutation(features.shape[0]), folds) if optimise else []
    models: list[Network] = []
    out_of_fold = np.zeros((targets.size, member_count))
    for member_index in range(member_count):
        model = fit_rwnn(features, targets, hidden_widths, penalty=penalty, config=member_config, seed=rng)
        if optimise:
            out_of_fold[:, member_index] = _out_of_fold_predictions(model, features, targets, fold_indices).ravel()
        models.append(model)

    if optimise:
        weights = _stacking_weights(out_of_fold, targets.ravel())
    else:
        weights = np.full(member_count, 1.0 / member_count)

    logger.debug("Fitted stack of %d members (optimised=%s)", member_count, optimise)
    return Ensemble(models=models, weights=weights, method="stacking", features=features, targets=targets)


def _out_of_fold_predictions(
    model: Network, features: Array, targets: Array, fold_indices: Sequence[Array]
) -> Array:
    design = model.output_design(features)
    predictions = np.zeros_like(targets)
    for held_out in fold_indices:
        training = np.setdiff1d(np.arange(features.shape[0]), held_out)
        estimate = estimate_output_weights(
            design[training], targets[training], model.regularization_norm, model.penalty
        )
        predictions[held_out] = design[held_out] @ estimate.weights
    return predictions


def _stacking_weights(member_predictions: Array, targets: Array) -> Array:
    weights, _ = nnls(member_predictions, targets)
    total = float(np.sum(weights))
    if total <= 0.0:
        warnings.warn(
            "Stacking weights were all zero; falling back to equal weights.",
            ReductionWarning,
            stacklevel=3,
        )
        return np.full(member_predictions.shape[1], 1.0 / member_predictions.shape[1])
    return weights / total
