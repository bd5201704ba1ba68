"""Closed-form estimation of output-layer weights."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from sklearn.linear_model import Lasso

from rwnn_reduce.core.errors import InvalidConfigurationError, ShapeMismatchError

Array = NDArray[np.float64]

logger = logging.getLogger(__name__)

NORMS = ("l1", "l2")


@dataclass(frozen=True)
class OutputEstimate:
    """Output weights and the residual scale of the fit."""

    weights: Array
    sigma: float | None


def estimate_output_weights(design: Array, target: Array, norm: str, penalty: float) -> OutputEstimate:
    """Solve the regularised least-squares problem for the output layer.

    ``l2`` minimises ``||y - Ob||^2 + penalty * ||b||^2`` through the normal
    equations; ``l1`` minimises ``||y - Ob||^2 + penalty * ||b||_1`` with
    scikit-learn's coordinate-descent Lasso.
    """
    design = np.asarray(design, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    if target.ndim == 1:
        target = target.reshape(-1, 1)
    if design.ndim != 2:
        raise ShapeMismatchError("design must be a 2-D matrix")
    if design.shape[0] != target.shape[0]:
        raise ShapeMismatchError(
            f"design has {design.shape[0]} rows but target has {target.shape[0]}"
        )
    if penalty < 0.0:
        raise InvalidConfigurationError("penalty must be non-negative")

    resolved_norm = norm.lower()
    if resolved_norm not in NORMS:
        raise InvalidConfigurationError(f"'norm' has to be either 'l1' or 'l2', got '{norm}'.")

    if design.shape[1] == 0:
        weights = np.zeros((0, target.shape[1]), dtype=np.float64)
    elif resolved_norm == "l1" and penalty > 0.0:
        weights = _solve_lasso(design, target, penalty)
    else:
        weights = _solve_ridge(design, target, penalty)

    sigma = None
    if resolved_norm == "l2":
        sigma = _residual_scale(design, target, weights)
    logger.debug(
        "Estimated %s output weights of shape %s (penalty=%s)",
        resolved_norm,
        weights.shape,
        penalty,
    )
    return OutputEstimate(weights=weights, sigma=sigma)


def _solve_ridge(design: Array, target: Array, penalty: float) -> Array:
    if penalty == 0.0:
        weights, *_ = np.linalg.lstsq(design, target, rcond=None)
        return weights
    gram = design.T @ design + penalty * np.eye(design.shape[1])
    return np.linalg.solve(gram, design.T @ target)


def _solve_lasso(design: Array, target: Array, penalty: float) -> Array:
    # sklearn scales the squared loss by 1 / (2 n).
    alpha = penalty / (2.0 * design.shape[0])
    model = Lasso(alpha=alpha, fit_intercept=False, max_iter=10_000)
    model.fit(design, target)
    return np.asarray(model.coef_, dtype=np.float64).reshape(target.shape[1], design.shape[1]).T


def _residual_scale(design: Array, target: Array, weights: Array) -> float | None:
    degrees_of_freedom = design.shape[0] - design.shape[1]
    if degrees_of_freedom <= 0:
        return None
    residuals = target - design @ weights
    return float(np.sqrt(np.sum(np.square(residuals)) / (degrees_of_freedom * target.shape[1])))
