"""Sweep removal proportions across reduction strategies and record size/accuracy trade-offs."""

from __future__ import annotations

from dataclasses import asdict, replace
import json
from pathlib import Path
import sys
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from rwnn_reduce.app.reduction_runner import (  # noqa: E402
    ReductionExperimentConfig,
    ReductionReport,
    run_reduction_experiment,
)

STRATEGIES: dict[str, dict[str, Any]] = {
    "global": {},
    "uniform": {},
    "lamp": {},
    "apoz": {"type": "uniform", "tolerance": 1e-8},
    "l2": {"type": "global"},
    "relief": {"type": "neuron"},
}
PROPORTIONS = (0.1, 0.25, 0.5, 0.75)


def main() -> None:
    base = ReductionExperimentConfig(
        sample_count=600,
        noise_scale=0.5,
        hidden_widths=(50, 50),
        penalty=0.1,
        random_seed=7,
    )

    trials: list[dict[str, Any]] = []
    for strategy, params in STRATEGIES.items():
        for proportion in PROPORTIONS:
            config = replace(base, strategy=strategy, strategy_params={**params, "p": proportion})
            report = run_reduction_experiment(config)
            trials.append({"p": proportion, "report": report_to_dict(report)})
            print(
                f"{strategy:<10} p={proportion:<5} "
                f"params={report.parameter_count_after:<6} rmse={report.test_rmse_after:.4f}"
            )

    output = {
        "base_config": asdict(base),
        "trials": trials,
        "best_per_strategy": {
            strategy: best_for_strategy(trials, strategy) for strategy in STRATEGIES
        },
    }
    output_path = Path("reduction_sweep_results.json")
    output_path.write_text(json.dumps(output, indent=2), encoding="utf-8")
    print(f"Wrote {output_path}")


def report_to_dict(report: ReductionReport) -> dict[str, Any]:
    values = asdict(report)
    values["hidden_widths_before"] = list(report.hidden_widths_before)
    values["hidden_widths_after"] = list(report.hidden_widths_after)
    values["compression"] = report.nonzero_count_after / max(1, report.nonzero_count_before)
    return values


def best_for_strategy(trials: list[dict[str, Any]], strategy: str) -> dict[str, Any]:
    """Smallest network whose test RMSE stays within 10% of the unreduced network."""
    candidates = [
        trial
        for trial in trials
        if trial["report"]["strategy"] == strategy
        and trial["report"]["test_rmse_after"] <= 1.1 * trial["report"]["test_rmse_before"]
    ]
    if not candidates:
        return {}
    return min(candidates, key=lambda trial: trial["report"]["nonzero_count_after"])


if __name__ == "__main__":
    main()
