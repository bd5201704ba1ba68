"""Contract shared by every reduction strategy."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import numpy as np
from numpy.typing import NDArray

from rwnn_reduce.core.errors import InvalidConfigurationError
from rwnn_reduce.core.network import Network

Array = NDArray[np.float64]


@dataclass(frozen=True)
class ReductionContext:
    """Data and keyword parameters available to a strategy."""

    features: Array | None = None
    targets: Array | None = None
    params: Mapping[str, Any] = field(default_factory=dict)

    def param(self, name: str) -> Any:
        return self.params.get(name)

    def require_features(self) -> Array:
        if self.features is None:
            raise InvalidConfigurationError(
                "Data has to be present in the model object, or supplied as 'features' and 'targets'."
            )
        return self.features


class ReductionStrategy(Protocol):
    """Shrinks ``network`` in place.

    Strategies only remove structure or zero weights; they never compute new
    weight values.
    """

    def __call__(self, network: Network, context: ReductionContext) -> None:
        """Apply the strategy to a working copy of the network."""


@dataclass(frozen=True)
class RegisteredStrategy:
    """A strategy together with what it needs from the caller."""

    name: str
    apply: ReductionStrategy
    requires_data: bool = False
