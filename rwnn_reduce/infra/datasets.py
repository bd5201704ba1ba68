"""Synthetic dataset generation for reduction experiments."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

Array = NDArray[np.float64]


@dataclass(frozen=True)
class DatasetSplit:
    """Train/test split for regression."""

    train_input: Array
    train_target: Array
    test_input: Array
    test_target: Array


def generate_polynomial_regression_dataset(
    sample_count: int,
    noise_scale: float,
    seed: int,
    test_ratio: float = 0.2,
) -> DatasetSplit:
    """Create a deterministic regression problem on ``sin(s), cos(s), s, s^2, s^3``.

    ``s`` is evenly spaced on ``[0, pi]`` and the target is a random linear
    combination of the five features plus Gaussian noise.
    """
    if sample_count < 20:
        raise ValueError("sample_count must be at least 20")
    if noise_scale < 0.0:
        raise ValueError("noise_scale must be non-negative")
    if test_ratio <= 0.0 or test_ratio >= 0.5:
        raise ValueError("test_ratio must be between 0 and 0.5")

    rng = np.random.default_rng(seed)
    grid = np.linspace(0.0, np.pi, sample_count)
    input_data = np.column_stack([np.sin(grid), np.cos(grid), grid, grid**2, grid**3])
    coefficients = rng.normal(size=(input_data.shape[1], 1))
    target_data = input_data @ coefficients + rng.normal(0.0, noise_scale, size=(sample_count, 1))

    permutation = rng.permutation(sample_count)
    input_data = input_data[permutation]
    target_data = target_data[permutation]

    split_index = int((1.0 - test_ratio) * sample_count)
    return DatasetSplit(
        train_input=input_data[:split_index],
        train_target=target_data[:split_index],
        test_input=input_data[split_index:],
        test_target=target_data[split_index:],
    )
