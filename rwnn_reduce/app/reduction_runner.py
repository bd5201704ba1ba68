"""Use-case orchestration for network reduction experiments."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np

from rwnn_reduce.core.network import Network
from rwnn_reduce.core.reduction import reduce_network
from rwnn_reduce.core.rwnn import RWNNConfig, fit_rwnn
from rwnn_reduce.infra.datasets import generate_polynomial_regression_dataset


@dataclass(frozen=True)
class ReductionExperimentConfig:
    """Configurable parameters for one fit-then-reduce run."""

    sample_count: int = 400
    noise_scale: float = 0.5
    hidden_widths: tuple[int, ...] = (25, 25)
    penalty: float = 0.1
    activation: str = "silu"
    combine_input: bool = False
    combine_hidden: bool = True
    strategy: str = "global"
    strategy_params: dict[str, Any] = field(default_factory=dict)
    retrain: bool = True
    random_seed: int = 7


@dataclass(frozen=True)
class ReductionReport:
    """Size and accuracy of a network before and after reduction."""

    strategy: str
    parameter_count_before: int
    parameter_count_after: int
    nonzero_count_before: int
    nonzero_count_after: int
    hidden_widths_before: tuple[int, ...]
    hidden_widths_after: tuple[int, ...]
    test_rmse_before: float
    test_rmse_after: float


def run_reduction_experiment(config: ReductionExperimentConfig) -> ReductionReport:
    """Fit a network on synthetic data, reduce it and measure both versions."""
    dataset = generate_polynomial_regression_dataset(
        sample_count=config.sample_count,
        noise_scale=config.noise_scale,
        seed=config.random_seed,
    )
    network = fit_rwnn(
        dataset.train_input,
        dataset.train_target,
        hidden_widths=config.hidden_widths,
        penalty=config.penalty,
        config=RWNNConfig(
            activation=config.activation,
            combine_input=config.combine_input,
            combine_hidden=config.combine_hidden,
        ),
        seed=config.random_seed + 1,
    )
    reduced = reduce_network(network, config.strategy, config.retrain, **config.strategy_params)

    return ReductionReport(
        strategy=config.strategy,
        parameter_count_before=network.parameter_count(),
        parameter_count_after=reduced.parameter_count(),
        nonzero_count_before=network.nonzero_parameter_count(),
        nonzero_count_after=reduced.nonzero_parameter_count(),
        hidden_widths_before=tuple(network.hidden_widths),
        hidden_widths_after=tuple(reduced.hidden_widths),
        test_rmse_before=_rmse(network, dataset.test_input, dataset.test_target),
        test_rmse_after=_rmse(reduced, dataset.test_input, dataset.test_target),
    )


def compare_strategies(
    base_config: ReductionExperimentConfig, strategies: Sequence[str]
) -> list[ReductionReport]:
    """Run the same experiment once per strategy, on identical data and weights."""
    return [run_reduction_experiment(replace(base_config, strategy=strategy)) for strategy in strategies]


def format_reduction_report(report: ReductionReport) -> str:
    """Build a human-readable reduction summary."""
    return "\n".join(
        [
            f"Reduction strategy: {report.strategy}",
            "------------------------------------------------------------",
            f"Parameters: {report.parameter_count_before} -> {report.parameter_count_after}",
            f"Non-zero parameters: {report.nonzero_count_before} -> {report.nonzero_count_after}",
            f"Hidden widths: {list(report.hidden_widths_before)} -> {list(report.hidden_widths_after)}",
            f"Test RMSE: {report.test_rmse_before:.4f} -> {report.test_rmse_after:.4f}",
        ]
    )


def format_strategy_comparison(reports: Sequence[ReductionReport]) -> str:
    lines = [
        f"{'strategy':<16}{'params':>10}{'non-zero':>10}{'rmse':>10}",
        "-" * 46,
    ]
    for report in reports:
        lines.append(
            f"{report.strategy:<16}{report.parameter_count_after:>10}"
            f"{report.nonzero_count_after:>10}{report.test_rmse_after:>10.4f}"
        )
    return "\n".join(lines)


def _rmse(network: Network, features: np.ndarray, targets: np.ndarray) -> float:
    residuals = network.predict(features) - targets
    return float(np.sqrt(np.mean(np.square(residuals))))
