"""Entry point for reducing networks and ensembles.

``reduce_network`` dispatches on the target type: a ``Network`` is reduced by
one strategy followed by the normaliser and an optional output re-estimation;
an ``Ensemble`` either distributes the request to every member or, for stacking
ensembles, removes members with negligible combination weight.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import singledispatch
from typing import Any, Union

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.activation_pruning import reduce_activation_energy, reduce_apoz
from rwnn_reduce.core.correlation_pruning import reduce_correlation, reduce_correlation_test
from rwnn_reduce.core.errors import (
    DegenerateResultError,
    InvalidConfigurationError,
    MemberReductionError,
    ReductionError,
    ShapeMismatchError,
)
from rwnn_reduce.core.magnitude_pruning import reduce_global, reduce_lamp, reduce_uniform
from rwnn_reduce.core.network import Ensemble, Network
from rwnn_reduce.core.normalizer import normalize_network, retrain_output_layer
from rwnn_reduce.core.output_pruning import reduce_output
from rwnn_reduce.core.parameters import resolve_retrain, resolve_tolerance
from rwnn_reduce.core.relief_pruning import reduce_relief
from rwnn_reduce.core.strategy import ReductionContext, ReductionStrategy, RegisteredStrategy

Array = NDArray[np.float64]

CustomStrategy = Callable[..., Network]
StrategyArgument = Union[str, CustomStrategy]

logger = logging.getLogger(__name__)

STACK_STRATEGIES = ("stack", "stacking")

_REGISTRY: dict[str, RegisteredStrategy] = {}


def register_strategy(
    name: str,
    strategy: ReductionStrategy,
    aliases: Iterable[str] = (),
    requires_data: bool = False,
    replace: bool = False,
) -> RegisteredStrategy:
    """Make ``strategy`` available to ``reduce_network`` under ``name`` and its aliases."""
    registered = RegisteredStrategy(name=name.lower(), apply=strategy, requires_data=requires_data)
    keys = [registered.name, *(alias.lower() for alias in aliases)]
    for key in keys:
        if key in STACK_STRATEGIES:
            raise InvalidConfigurationError(f"'{key}' is reserved for stacking ensembles")
        if key in _REGISTRY and not replace:
            raise InvalidConfigurationError(f"a strategy named '{key}' is already registered")
    for key in keys:
        _REGISTRY[key] = registered
    return registered


def get_strategy(name: str) -> RegisteredStrategy:
    if not isinstance(name, str):
        raise InvalidConfigurationError("'strategy' is either not implemented, or not a function.")
    key = name.strip().lower()
    registered = _REGISTRY.get(key)
    if registered is None:
        if key in STACK_STRATEGIES:
            raise InvalidConfigurationError(
                "Setting the strategy to 'stack' is only meant for stacking ensemble models."
            )
        raise InvalidConfigurationError(f"'{name}' is not an implemented reduction strategy.")
    return registered


def available_strategies() -> list[str]:
    return sorted(_REGISTRY)


@singledispatch
def reduce_network(
    target: Any,
    strategy: StrategyArgument,
    retrain: Any = True,
    features: Array | None = None,
    targets: Array | None = None,
    **params: Any,
) -> Any:
    """Reduce a ``Network`` or an ``Ensemble`` with the named (or callable) strategy.

    The target itself is never modified; the reduced copy is returned. Data is
    taken from ``features``/``targets`` when both are given, otherwise from the
    data stored on the target. A callable strategy is called as
    ``strategy(network, features, targets, **params)`` and must return a network.
    """
    raise InvalidConfigurationError(f"cannot reduce an object of type {type(target).__name__}")


@reduce_network.register(Network)
def _reduce_single(
    target: Network,
    strategy: StrategyArgument,
    retrain: Any = True,
    features: Array | None = None,
    targets: Array | None = None,
    **params: Any,
) -> Network:
    retrain = resolve_retrain(retrain)
    if callable(strategy):
        strategy_name = getattr(strategy, "__name__", type(strategy).__name__)
        requires_data = True
    else:
        registered = get_strategy(strategy)
        strategy_name = registered.name
        requires_data = registered.requires_data

    features, targets = _resolve_data(features, targets, target.features, target.targets)
    if (requires_data or retrain) and (features is None or targets is None):
        raise InvalidConfigurationError(
            "Data has to be present in the model object, or supplied as 'features' and 'targets'."
        )
    if features is not None and features.shape[1] != target.input_dim:
        raise ShapeMismatchError(
            f"features have {features.shape[1]} columns, the network expects {target.input_dim}"
        )

    working = target.copy()
    parameters_before = working.parameter_count()
    if callable(strategy):
        working = strategy(working, features, targets, **params)
        if not isinstance(working, Network):
            raise InvalidConfigurationError(f"strategy '{strategy_name}' did not return a Network")
    else:
        registered.apply(working, ReductionContext(features=features, targets=targets, params=params))

    normalize_network(working)
    if retrain:
        retrain_output_layer(working, features, targets)
    working.check_invariants()

    parameters_after = working.parameter_count()
    if parameters_after > parameters_before:
        raise DegenerateResultError(
            f"strategy '{strategy_name}' increased the parameter count "
            f"from {parameters_before} to {parameters_after}"
        )
    logger.info(
        "Reduced network with '%s': %d -> %d parameters, hidden widths %s",
        strategy_name,
        parameters_before,
        parameters_after,
        working.hidden_widths,
    )
    return working


@reduce_network.register(Ensemble)
def _reduce_ensemble(
    target: Ensemble,
    strategy: StrategyArgument,
    retrain: Any = True,
    features: Array | None = None,
    targets: Array | None = None,
    **params: Any,
) -> Ensemble:
    if isinstance(strategy, str) and strategy.strip().lower() in STACK_STRATEGIES:
        if target.method != "stacking":
            raise InvalidConfigurationError(
                "Setting the strategy to 'stack' is only meant for stacking ensemble models."
            )
        return prune_stack(target, resolve_tolerance(params.get("tolerance")))

    retrain = resolve_retrain(retrain)
    requires_data = callable(strategy) or get_strategy(strategy).requires_data
    features, targets = _resolve_data(features, targets, target.features, target.targets)
    if (requires_data or retrain) and (features is None or targets is None):
        if any(member.features is None or member.targets is None for member in target.models):
            raise InvalidConfigurationError(
                "Data has to be present in the model object, or supplied as 'features' and 'targets'."
            )

    reduced: dict[int, Network] = {}
    failures: dict[int, Exception] = {}
    for member_index, member in enumerate(target.models):
        try:
            reduced[member_index] = reduce_network(
                member, strategy, retrain, features=features, targets=targets, **params
            )
        except (ReductionError, np.linalg.LinAlgError) as exc:
            logger.warning("Reduction of ensemble member %d failed: %s", member_index, exc)
            failures[member_index] = exc
    if failures:
        raise MemberReductionError(failures=failures, reduced=dict(reduced))

    return Ensemble(
        models=[reduced[member_index] for member_index in range(len(target.models))],
        weights=target.weights.copy(),
        method=target.method,
        features=target.features,
        targets=target.targets,
    )


def prune_stack(ensemble: Ensemble, tolerance: float) -> Ensemble:
    """Drop members whose combination weight is below ``tolerance`` and renormalise.

    A member whose weight equals ``tolerance`` is kept.
    """
    keep = ensemble.weights >= tolerance
    if not np.any(keep):
        raise DegenerateResultError(
            "Because of the chosen tolerance all models were removed; "
            "the tolerance should be lowered to a more appropriate level."
        )
    weights = ensemble.weights[keep]
    pruned = Ensemble(
        models=[model.copy() for model, kept in zip(ensemble.models, keep) if kept],
        weights=weights / np.sum(weights),
        method=ensemble.method,
        features=ensemble.features,
        targets=ensemble.targets,
    )
    logger.info("Stack reduced from %d to %d members", len(ensemble.models), len(pruned.models))
    return pruned


def _resolve_data(
    features: Array | None,
    targets: Array | None,
    stored_features: Array | None,
    stored_targets: Array | None,
) -> tuple[Array | None, Array | None]:
    if features is not None and targets is not None:
        features = np.asarray(features, dtype=np.float64)
        targets = np.asarray(targets, dtype=np.float64)
        if targets.ndim == 1:
            targets = targets.reshape(-1, 1)
        return features, targets
    return stored_features, stored_targets


register_strategy("global", reduce_global, aliases=("glbl", "magnitude", "mag"))
register_strategy("uniform", reduce_uniform, aliases=("unif",))
register_strategy("lamp", reduce_lamp)
register_strategy("apoz", reduce_apoz, requires_data=True)
register_strategy("l2", reduce_activation_energy, requires_data=True)
register_strategy("correlation", reduce_correlation, aliases=("cor",), requires_data=True)
register_strategy("correlationtest", reduce_correlation_test, aliases=("cortest", "ct"), requires_data=True)
register_strategy("relief", reduce_relief, requires_data=True)
register_strategy("output", reduce_output)
