"""Command-line adapter for running reduction experiments."""

from __future__ import annotations

import argparse
import logging
from typing import Any

from rwnn_reduce.app.reduction_runner import (
    ReductionExperimentConfig,
    compare_strategies,
    format_reduction_report,
    format_strategy_comparison,
    run_reduction_experiment,
)
from rwnn_reduce.config.settings import load_settings_from_env
from rwnn_reduce.core.reduction import available_strategies


def build_argument_parser() -> argparse.ArgumentParser:
    """Create CLI parser."""
    settings = load_settings_from_env()

    parser = argparse.ArgumentParser(
        description="Fit a random weight neural network and reduce it with a pruning strategy."
    )
    parser.add_argument(
        "--strategy",
        choices=available_strategies(),
        default="global",
        help="Reduction strategy applied after fitting.",
    )
    parser.add_argument(
        "--compare",
        type=str,
        default="",
        help="Optional comma-separated strategies to compare instead of a single run.",
    )
    parser.add_argument("--p", type=float, default=None, help="Proportion of weights or neurons to remove.")
    parser.add_argument("--rho", type=float, default=None, help="Correlation threshold.")
    parser.add_argument("--alpha", type=float, default=None, help="Significance level of the correlation test.")
    parser.add_argument("--tolerance", type=float, default=None, help="Tolerance used to identify zeroes.")
    parser.add_argument(
        "--type",
        type=str,
        default=None,
        help="Strategy variant: global/uniform (apoz, l2), pearson/spearman/kendall "
        "(correlation), weight/neuron (relief).",
    )
    parser.add_argument(
        "--no-retrain",
        action="store_true",
        help="Keep the output weights instead of re-estimating them after reduction.",
    )
    parser.add_argument("--samples", type=int, default=settings.sample_count, help="Number of samples.")
    parser.add_argument(
        "--hidden-widths",
        type=str,
        default=",".join(str(width) for width in settings.hidden_widths),
        help="Comma-separated hidden-layer widths.",
    )
    parser.add_argument("--penalty", type=float, default=0.1, help="Output-layer penalty constant.")
    parser.add_argument("--activation", type=str, default="silu", help="Hidden-layer activation.")
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.base_seed,
        help="Random seed for deterministic runs.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run a reduction experiment from the command line."""
    parser = build_argument_parser()
    arguments = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, arguments.log_level), format="%(levelname)s %(name)s: %(message)s")

    config = ReductionExperimentConfig(
        sample_count=arguments.samples,
        hidden_widths=tuple(_parse_int_list(arguments.hidden_widths)),
        penalty=arguments.penalty,
        activation=arguments.activation,
        strategy=arguments.strategy,
        strategy_params=_strategy_params(arguments),
        retrain=not arguments.no_retrain,
        random_seed=arguments.seed,
    )
    if arguments.compare.strip():
        strategies = [item.strip() for item in arguments.compare.split(",") if item.strip()]
        print(format_strategy_comparison(compare_strategies(config, strategies)))
        return

    print(format_reduction_report(run_reduction_experiment(config)))


def _strategy_params(arguments: argparse.Namespace) -> dict[str, Any]:
    params = {
        "p": arguments.p,
        "rho": arguments.rho,
        "alpha": arguments.alpha,
        "tolerance": arguments.tolerance,
        "type": arguments.type,
    }
    return {key: value for key, value in params.items() if value is not None}


def _parse_int_list(raw_values: str) -> list[int]:
    values = [item.strip() for item in raw_values.split(",") if item.strip()]
    if not values:
        raise ValueError("Expected at least one integer value.")
    return [int(value) for value in values]


if __name__ == "__main__":
    main()
