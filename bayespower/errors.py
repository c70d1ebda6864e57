"""
Exception types for BayesPower.

Configuration problems are fatal and raised before any replication runs.
Per-replication fit problems are recovered by the simulation runner and
recorded as failed results.
"""

__all__ = [
    "InvalidSpec",
    "FitFailure",
    "AggregationError",
    "FailureRateExceeded",
]


class InvalidSpec(ValueError):
    """Raised when a data-generation, model, or simulation spec is malformed."""

    pass


class FitFailure(RuntimeError):
    """Raised when a single model fit does not converge or times out."""

    pass


class AggregationError(RuntimeError):
    """Raised when there are no successful replications to summarise."""

    pass


class FailureRateExceeded(RuntimeError):
    """Raised when the share of failed replications passes the configured limit."""

    pass
