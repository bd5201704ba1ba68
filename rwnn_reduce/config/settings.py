"""Environment-backed defaults for reduction experiments."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Global settings loaded from environment variables."""

    base_seed: int = 7
    sample_count: int = 400
    hidden_widths: tuple[int, ...] = (25, 25)


def load_settings_from_env() -> Settings:
    """Load settings from process environment with safe fallbacks."""
    return Settings(
        base_seed=_read_int_env("RWNN_BASE_SEED", 7),
        sample_count=_read_int_env("RWNN_SAMPLE_COUNT", 400),
        hidden_widths=_read_int_tuple_env("RWNN_HIDDEN_WIDTHS", (25, 25)),
    )


def _read_int_env(key: str, default_value: int) -> int:
    raw_value = os.getenv(key)
    if raw_value is None:
        return default_value
    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer.") from exc


def _read_int_tuple_env(key: str, default_value: tuple[int, ...]) -> tuple[int, ...]:
    raw_value = os.getenv(key)
    if raw_value is None:
        return default_value
    try:
        values = tuple(int(item) for item in raw_value.split(",") if item.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a comma-separated list of integers.") from exc
    if not values:
        raise ValueError(f"Environment variable {key} must contain at least one integer.")
    return values
