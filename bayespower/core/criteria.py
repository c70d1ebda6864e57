"""
Pass/fail criteria applied to per-replication interval summaries.

The criterion set is closed: one-sided null exclusion (the default
definition of power), width below a threshold (precision / AIPE), interval
containment (coverage), and an optional two-sided null exclusion.
Failed replications never enter the denominator; how many were excluded is
always reported next to the proportion.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence, Tuple, Union

import numpy as np

from ..errors import AggregationError, InvalidSpec

if TYPE_CHECKING:
    from .simulation import ReplicationResult

__all__ = [
    "Criterion",
    "ExcludesNull",
    "ExcludesNullTwoSided",
    "WidthBelow",
    "IntervalContains",
    "Evaluation",
    "CriterionEvaluator",
    "parse_criterion",
]


@dataclass(frozen=True)
class ExcludesNull:
    """Interval lies entirely above *null_value* (``lower > null_value``).

    One-sided on purpose: the alternative is assumed to lie in the expected
    (positive) direction. Use ``ExcludesNullTwoSided`` for either side.
    """

    null_value: float = 0.0

    def check(self, lower: float, upper: float) -> bool:
        return lower > self.null_value

    def describe(self) -> str:
        return f"lower bound > {self.null_value:g}"


@dataclass(frozen=True)
class ExcludesNullTwoSided:
    """Interval excludes *null_value* on either side."""

    null_value: float = 0.0

    def check(self, lower: float, upper: float) -> bool:
        return lower > self.null_value or upper < self.null_value

    def describe(self) -> str:
        return f"interval excludes {self.null_value:g}"


@dataclass(frozen=True)
class WidthBelow:
    """Interval width strictly below *threshold*."""

    threshold: float

    def check(self, lower: float, upper: float) -> bool:
        return (upper - lower) < self.threshold

    def describe(self) -> str:
        return f"width < {self.threshold:g}"


@dataclass(frozen=True)
class IntervalContains:
    """Interval covers *value* (bounds inclusive)."""

    value: float

    def check(self, lower: float, upper: float) -> bool:
        return lower <= self.value <= upper

    def describe(self) -> str:
        return f"interval contains {self.value:g}"


Criterion = Union[ExcludesNull, ExcludesNullTwoSided, WidthBelow, IntervalContains]

_CRITERIA = (ExcludesNull, ExcludesNullTwoSided, WidthBelow, IntervalContains)

# Parse names -> (class, whether the argument is required)
_CRITERION_NAMES = {
    "excludes_null": (ExcludesNull, False),
    "excludes_null_two_sided": (ExcludesNullTwoSided, False),
    "width_below": (WidthBelow, True),
    "interval_contains": (IntervalContains, True),
}


def parse_criterion(value: Union[str, Criterion]) -> Criterion:
    """Build a criterion from a string like ``"excludes_null(0)"``.

    Criterion instances are returned unchanged.

    Raises:
        InvalidSpec: If the name is unknown or a required argument is missing.
    """
    if isinstance(value, _CRITERIA):
        return value
    if not isinstance(value, str):
        raise InvalidSpec(f"criterion must be a string or criterion object, got {type(value).__name__}")

    from ..utils.parsers import _parse_criterion

    try:
        name, argument = _parse_criterion(value)
    except ValueError as e:
        raise InvalidSpec(str(e)) from None

    if name not in _CRITERION_NAMES:
        raise InvalidSpec(f"Unknown criterion '{value}'. Valid options: {', '.join(_CRITERION_NAMES)}")

    cls, required = _CRITERION_NAMES[name]
    if argument is None:
        if required:
            raise InvalidSpec(f"Criterion '{name}' requires an argument, e.g. '{name}(0.5)'")
        return cls()
    return cls(argument)


@dataclass(frozen=True)
class Evaluation:
    """Criterion outcomes over the successful replications.

    Attributes:
        criterion: The criterion that was applied.
        indices: Replication indices that were evaluated, ascending.
        values: One boolean per evaluated replication.
        n_excluded: Failed replications left out of the denominator.
    """

    criterion: Criterion
    indices: Tuple[int, ...]
    values: Tuple[bool, ...]
    n_excluded: int

    @property
    def n_evaluated(self) -> int:
        return len(self.values)

    @property
    def n_passed(self) -> int:
        return int(sum(self.values))

    @property
    def proportion(self) -> float:
        """Share of evaluated replications that pass (0-1)."""
        return float(np.mean(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, item):
        return self.values[item]


class CriterionEvaluator:
    """Applies a criterion to every successful replication result."""

    def evaluate(self, results: Sequence["ReplicationResult"], criterion: Criterion) -> Evaluation:
        """Evaluate *criterion* on *results*.

        Args:
            results: Replication results in index order; failed ones are
                skipped and counted.
            criterion: One of the supported criterion objects.

        Returns:
            ``Evaluation`` with one boolean per successful result.

        Raises:
            InvalidSpec: If *criterion* is not a supported criterion.
            AggregationError: If no result succeeded.
        """
        if not isinstance(criterion, _CRITERIA):
            raise InvalidSpec(f"Unsupported criterion: {criterion!r}")

        indices = []
        values = []
        n_excluded = 0
        for result in results:
            if result.failed:
                n_excluded += 1
                continue
            indices.append(result.index)
            values.append(bool(criterion.check(result.lower, result.upper)))

        if not values:
            raise AggregationError(f"No successful replications to evaluate ({n_excluded} failed)")

        return Evaluation(
            criterion=criterion,
            indices=tuple(indices),
            values=tuple(values),
            n_excluded=n_excluded,
        )
