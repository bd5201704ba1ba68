from __future__ import annotations

import numpy as np
import pytest

from rwnn_reduce.core.errors import (
    DegenerateResultError,
    InvalidConfigurationError,
    ReductionWarning,
    ShapeMismatchError,
)
from rwnn_reduce.core.network import Network
from rwnn_reduce.core.reduction import (
    available_strategies,
    get_strategy,
    reduce_network,
    register_strategy,
)
from rwnn_reduce.core.rwnn import RWNNConfig, fit_rwnn
from rwnn_reduce.core.strategy import ReductionContext


def _fitted_network(include_data: bool = True, combine_input: bool = False) -> tuple[Network, np.ndarray, np.ndarray]:
    rng = np.random.default_rng(31)
    features = rng.normal(size=(90, 3))
    targets = np.sin(features[:, :1]) + 0.5 * features[:, 1:2] * features[:, 2:3]
    network = fit_rwnn(
        features,
        targets,
        [8, 6],
        penalty=0.1,
        config=RWNNConfig(include_data=include_data, combine_input=combine_input),
        seed=12,
    )
    return network, features, targets


def test_should_resolve_strategy_aliases_case_insensitively() -> None:
    assert get_strategy("mag").name == "global"
    assert get_strategy("Magnitude").name == "global"
    assert get_strategy("CT").name == "correlationtest"
    assert get_strategy("unif").name == "uniform"
    assert "relief" in available_strategies()


def test_should_reject_unknown_strategy_names() -> None:
    network, _, _ = _fitted_network()

    with pytest.raises(InvalidConfigurationError, match="not an implemented reduction strategy"):
        reduce_network(network, "prune-everything")


def test_should_reject_stack_strategy_for_a_single_network() -> None:
    network, _, _ = _fitted_network()

    with pytest.raises(InvalidConfigurationError, match="stacking ensemble"):
        reduce_network(network, "stack")


def test_should_reject_targets_that_are_not_networks_or_ensembles() -> None:
    with pytest.raises(InvalidConfigurationError):
        reduce_network({"weights": []}, "global")


def test_should_require_data_for_data_dependent_strategies() -> None:
    network, _, _ = _fitted_network(include_data=False)

    with pytest.raises(InvalidConfigurationError, match="Data has to be present"):
        reduce_network(network, "apoz", retrain=False, p=0.2)


def test_should_require_data_for_retraining() -> None:
    network, _, _ = _fitted_network(include_data=False)

    with pytest.raises(InvalidConfigurationError, match="Data has to be present"):
        reduce_network(network, "global", p=0.2)


def test_should_reduce_without_data_when_strategy_and_retrain_do_not_need_it() -> None:
    network, _, _ = _fitted_network(include_data=False)

    reduced = reduce_network(network, "global", retrain=False, p=0.2)

    assert reduced.nonzero_parameter_count() < network.nonzero_parameter_count()


def test_should_prefer_supplied_data_over_stored_data() -> None:
    network, features, targets = _fitted_network(include_data=False)

    reduced = reduce_network(network, "apoz", features=features, targets=targets, type="uniform", p=0.25)

    assert reduced.hidden_widths == [6, 4]


def test_should_reject_features_with_wrong_column_count() -> None:
    network, features, targets = _fitted_network()

    with pytest.raises(ShapeMismatchError):
        reduce_network(network, "global", features=features[:, :2], targets=targets, p=0.2)


def test_should_leave_the_input_network_untouched() -> None:
    network, _, _ = _fitted_network()
    before = network.copy()

    reduce_network(network, "apoz", type="uniform", p=0.5)

    assert network.hidden_widths == before.hidden_widths
    for weights, original in zip(network.hidden_weights, before.hidden_weights):
        np.testing.assert_array_equal(weights, original)
    np.testing.assert_array_equal(network.output_weights, before.output_weights)


def test_should_never_increase_parameter_count_for_built_in_strategies() -> None:
    network, _, _ = _fitted_network(combine_input=True)
    strategies = ["global", "uniform", "lamp", "apoz", "l2", "correlation", "correlationtest", "relief", "output"]

    for strategy in strategies:
        reduced = reduce_network(network, strategy, p=0.3, tolerance=1e-8, rho=0.99, alpha=0.05)

        assert reduced.parameter_count() <= network.parameter_count(), strategy
        assert reduced.output_weights.shape[0] == reduced.expected_output_rows(), strategy
        assert reduced.sigma is not None, strategy


def test_should_clamp_out_of_range_proportion_with_a_warning() -> None:
    network, _, _ = _fitted_network()

    with pytest.warns(ReductionWarning, match="'p' is set to '0.01'"):
        reduced = reduce_network(network, "global", p=-0.5)

    assert reduced.hidden_widths == [8, 6]


def test_should_default_missing_proportion_with_a_warning() -> None:
    network, _, _ = _fitted_network()

    with pytest.warns(ReductionWarning, match="'p' is set to '0.1'"):
        reduce_network(network, "uniform")


def test_should_treat_non_boolean_retrain_as_true_with_a_warning() -> None:
    network, _, _ = _fitted_network()

    with pytest.warns(ReductionWarning, match="'retrain'"):
        reduced = reduce_network(network, "global", retrain="yes", p=0.2)

    assert reduced.sigma is not None


def test_should_keep_output_weights_when_retrain_is_disabled() -> None:
    network, _, _ = _fitted_network()

    reduced = reduce_network(network, "uniform", retrain=False, p=0.2)

    surviving = reduced.output_weights[reduced.output_weights != 0.0]
    assert surviving.size > 0
    assert np.all(np.isin(surviving, network.output_weights))


def test_should_call_user_supplied_strategy_with_data_and_parameters() -> None:
    network, features, _ = _fitted_network()
    calls: list[tuple[int, float]] = []

    def drop_first_neuron(candidate: Network, features: np.ndarray, targets: np.ndarray, **params: float) -> Network:
        calls.append((features.shape[0], params["scale"]))
        candidate.hidden_weights[1] = candidate.hidden_weights[1][:, 1:]
        candidate.output_weights = np.delete(candidate.output_weights, candidate.output_row_offset(1), axis=0)
        return candidate

    reduced = reduce_network(network, drop_first_neuron, scale=0.5)

    assert calls == [(features.shape[0], 0.5)]
    assert reduced.hidden_widths == [8, 5]


def test_should_reject_user_strategy_that_does_not_return_a_network() -> None:
    network, _, _ = _fitted_network()

    with pytest.raises(InvalidConfigurationError, match="did not return a Network"):
        reduce_network(network, lambda candidate, features, targets, **params: None)


def test_should_reject_user_strategy_that_grows_the_network() -> None:
    network, _, _ = _fitted_network()

    def add_neuron(candidate: Network, features: np.ndarray, targets: np.ndarray, **params: float) -> Network:
        candidate.hidden_weights[1] = np.hstack([candidate.hidden_weights[1], candidate.hidden_weights[1][:, :1]])
        candidate.output_weights = np.vstack([candidate.output_weights, candidate.output_weights[-1:]])
        return candidate

    with pytest.raises(DegenerateResultError, match="increased the parameter count"):
        reduce_network(network, add_neuron)


def test_should_dispatch_to_registered_strategies() -> None:
    network, _, _ = _fitted_network()
    seen: list[object] = []

    def zero_output_bias(candidate: Network, context: ReductionContext) -> None:
        seen.append(context.param("marker"))
        candidate.output_weights[0, :] = 0.0

    register_strategy("zero-bias", zero_output_bias, aliases=("zb",), replace=True)
    reduced = reduce_network(network, "ZB", retrain=False, marker="x")

    assert seen == ["x"]
    assert not reduced.output_bias


def test_should_refuse_to_register_reserved_or_duplicate_names() -> None:
    def noop(candidate: Network, context: ReductionContext) -> None:
        return None

    with pytest.raises(InvalidConfigurationError, match="reserved"):
        register_strategy("stack", noop)
    with pytest.raises(InvalidConfigurationError, match="already registered"):
        register_strategy("global", noop)
