"""Exception and warning types raised by network reduction."""

from __future__ import annotations


class ReductionError(Exception):
    """Base class for fatal reduction failures."""


class InvalidConfigurationError(ReductionError, ValueError):
    """Unknown strategy, unrecognized enum value, or missing data."""


class DegenerateResultError(ReductionError):
    """The requested edit would leave no valid network or ensemble."""


class ShapeMismatchError(ReductionError, ValueError):
    """Matrix dimensions do not line up."""


class MemberReductionError(ReductionError):
    """One or more ensemble members failed to reduce.

    A failure is either a ``ReductionError`` or a numerical failure of the
    output solve (``np.linalg.LinAlgError``).

    The ensemble passed by the caller is left untouched. Members that reduced
    successfully are available in ``reduced`` so the caller can decide what to keep.
    """

    def __init__(self, failures: dict[int, Exception], reduced: dict[int, object]) -> None:
        self.failures = failures
        self.reduced = reduced
        indices = ", ".join(str(index) for index in sorted(failures))
        super().__init__(f"Reduction failed for ensemble member(s): {indices}")


class ReductionWarning(UserWarning):
    """A parameter was missing or out of range and has been corrected."""
