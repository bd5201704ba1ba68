from __future__ import annotations

import numpy as np
import pytest

from rwnn_reduce.core.ensemble import fit_stack_rwnn
from rwnn_reduce.core.errors import (
    DegenerateResultError,
    InvalidConfigurationError,
    MemberReductionError,
)
from rwnn_reduce.core.network import Ensemble, Network
from rwnn_reduce.core.reduction import reduce_network
from rwnn_reduce.core.rwnn import RWNNConfig, fit_rwnn


def _data() -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(41)
    features = rng.normal(size=(60, 6))
    targets = features[:, :2] @ np.array([[1.0], [-2.0]]) + np.cos(features[:, 2:3])
    return features, targets


def _member(seed: int, width: int = 5) -> Network:
    features, targets = _data()
    return fit_rwnn(features, targets, [width], penalty=0.1, config=RWNNConfig(include_data=False), seed=seed)


def test_should_keep_only_members_above_tolerance_when_trimming_a_stack() -> None:
    rng = np.random.default_rng(3)
    raw = rng.uniform(0.5, 1.0, size=100)
    raw[::4] = 1e-12
    weights = raw / np.sum(raw)
    base = _member(seed=1)
    ensemble = Ensemble(models=[base.copy() for _ in range(100)], weights=weights, method="stacking")

    reduced = reduce_network(ensemble, "stack", tolerance=1e-8)

    assert len(reduced.models) == 75
    assert np.sum(reduced.weights) == pytest.approx(1.0)
    np.testing.assert_allclose(reduced.weights, weights[weights >= 1e-8] / np.sum(weights[weights >= 1e-8]))
    assert len(ensemble.models) == 100


def test_should_reject_stack_trimming_for_non_stacking_ensembles() -> None:
    members = [_member(seed=1), _member(seed=2)]
    ensemble = Ensemble(models=members, weights=np.array([0.5, 0.5]), method="bagging")

    with pytest.raises(InvalidConfigurationError, match="stacking ensemble"):
        reduce_network(ensemble, "stack", tolerance=1e-8)

    assert ensemble.models[0] is members[0]
    assert ensemble.models[1] is members[1]
    np.testing.assert_array_equal(ensemble.weights, [0.5, 0.5])


def test_should_fail_when_tolerance_would_remove_every_member() -> None:
    ensemble = Ensemble(models=[_member(seed=1), _member(seed=2)], weights=np.array([0.5, 0.5]), method="stacking")

    with pytest.raises(DegenerateResultError, match="all models were removed"):
        reduce_network(ensemble, "stacking", tolerance=0.9)


def test_should_reduce_every_member_when_distributing() -> None:
    features, targets = _data()
    members = [_member(seed=seed, width=6) for seed in range(3)]
    ensemble = Ensemble(
        models=members,
        weights=np.full(3, 1.0 / 3.0),
        method="bagging",
        features=features,
        targets=targets,
    )

    reduced = reduce_network(ensemble, "apoz", type="uniform", p=0.5)

    assert [model.hidden_widths for model in reduced.models] == [[3], [3], [3]]
    assert [model.hidden_widths for model in ensemble.models] == [[6], [6], [6]]
    np.testing.assert_array_equal(reduced.weights, ensemble.weights)
    assert reduced.method == "bagging"


def test_should_report_failed_members_without_changing_the_ensemble() -> None:
    features, targets = _data()
    members = [_member(seed=0, width=4), _member(seed=1, width=2), _member(seed=2, width=4)]
    ensemble = Ensemble(
        models=members,
        weights=np.full(3, 1.0 / 3.0),
        method="bagging",
        features=features,
        targets=targets,
    )

    def fail_on_narrow_members(candidate: Network, features: np.ndarray, targets: np.ndarray) -> Network:
        if candidate.hidden_widths == [2]:
            raise DegenerateResultError("member is too narrow to reduce")
        return candidate

    with pytest.raises(MemberReductionError) as excinfo:
        reduce_network(ensemble, fail_on_narrow_members)

    assert sorted(excinfo.value.failures) == [1]
    assert sorted(excinfo.value.reduced) == [0, 2]
    assert all(model is original for model, original in zip(ensemble.models, members))


def test_should_reject_unknown_strategy_before_touching_members() -> None:
    ensemble = Ensemble(models=[_member(seed=1)], weights=np.array([1.0]), method="boosting")

    with pytest.raises(InvalidConfigurationError):
        reduce_network(ensemble, "unknown-strategy")


def test_should_validate_ensemble_method_and_weights() -> None:
    member = _member(seed=1)

    with pytest.raises(InvalidConfigurationError, match="'method'"):
        Ensemble(models=[member], weights=np.array([1.0]), method="voting")
    with pytest.raises(InvalidConfigurationError, match="sum to 1"):
        Ensemble(models=[member, member], weights=np.array([0.4, 0.4]), method="bagging")
    with pytest.raises(InvalidConfigurationError, match="non-negative"):
        Ensemble(models=[member, member], weights=np.array([1.5, -0.5]), method="bagging")


def test_should_predict_weighted_sum_of_members() -> None:
    features, _ = _data()
    first, second = _member(seed=1), _member(seed=2)
    ensemble = Ensemble(models=[first, second], weights=np.array([0.25, 0.75]), method="ensemble-deep")

    prediction = ensemble.predict(features)

    np.testing.assert_allclose(prediction, 0.25 * first.predict(features) + 0.75 * second.predict(features))


def test_should_fit_stack_with_members_reading_a_third_of_the_features() -> None:
    features, targets = _data()

    ensemble = fit_stack_rwnn(features, targets, [5], penalty=0.1, member_count=5, seed=3)

    assert ensemble.method == "stacking"
    assert len(ensemble.models) == 5
    np.testing.assert_allclose(ensemble.weights, np.full(5, 0.2))
    assert ensemble.features is not None
    for model in ensemble.models:
        assert model.features is None
        read_rows = np.any(model.hidden_weights[0][1:, :] != 0.0, axis=1)
        assert int(np.count_nonzero(read_rows)) == 2


def test_should_optimise_stacking_weights_to_a_convex_combination() -> None:
    features, targets = _data()

    ensemble = fit_stack_rwnn(features, targets, [5], penalty=0.1, member_count=4, optimise=True, folds=3, seed=5)

    assert np.all(ensemble.weights >= 0.0)
    assert np.sum(ensemble.weights) == pytest.approx(1.0)


def test_should_reject_non_boolean_optimise_flag() -> None:
    features, targets = _data()

    with pytest.raises(InvalidConfigurationError, match="'optimise'"):
        fit_stack_rwnn(features, targets, [5], member_count=2, optimise="yes")


def test_should_require_data_once_for_the_whole_ensemble() -> None:
    ensemble = Ensemble(models=[_member(seed=1), _member(seed=2)], weights=np.array([0.5, 0.5]), method="bagging")

    with pytest.raises(InvalidConfigurationError, match="Data has to be present"):
        reduce_network(ensemble, "apoz", p=0.2)


def test_should_collect_numerical_failures_without_stopping_other_members() -> None:
    features, targets = _data()
    members = [_member(seed=0, width=4), _member(seed=1, width=3), _member(seed=2, width=4)]
    ensemble = Ensemble(
        models=members,
        weights=np.full(3, 1.0 / 3.0),
        method="bagging",
        features=features,
        targets=targets,
    )

    def singular_for_width_three(candidate: Network, features: np.ndarray, targets: np.ndarray) -> Network:
        if candidate.hidden_widths == [3]:
            raise np.linalg.LinAlgError("Singular matrix")
        return candidate

    with pytest.raises(MemberReductionError) as excinfo:
        reduce_network(ensemble, singular_for_width_three)

    assert isinstance(excinfo.value.failures[1], np.linalg.LinAlgError)
    assert sorted(excinfo.value.reduced) == [0, 2]


def test_should_keep_stack_members_whose_weight_equals_the_tolerance() -> None:
    ensemble = Ensemble(
        models=[_member(seed=1), _member(seed=2), _member(seed=3)],
        weights=np.array([0.25, 0.25, 0.5]),
        method="stacking",
    )

    reduced = reduce_network(ensemble, "stack", tolerance=0.25)

    assert len(reduced.models) == 3
    np.testing.assert_allclose(reduced.weights, [0.25, 0.25, 0.5])
