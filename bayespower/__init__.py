"""BayesPower - simulation-based power analysis for Bayesian regression.

Repeats simulate -> fit -> summarise over synthetic datasets from a known
data-generating process (gaussian, poisson or binomial groups), extracts a
credible interval for one coefficient per replication, and reports power
and interval-width statistics.

Example:
    >>> from bayespower import BayesPower
    >>>
    >>> model = BayesPower("y ~ treatment", family="gaussian")
    >>> model.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")
    >>> model.set_priors("Intercept=normal(0, 10), treatment=normal(0, 2)")
    >>> model.find_power(target="treatment")
    >>>
    >>> model.find_sample_size(target="treatment", from_size=20, to_size=100, by=20)
"""

from importlib.metadata import version as _get_version

from .core import (
    DataGenSpec,
    ExcludesNull,
    ExcludesNullTwoSided,
    IntervalContains,
    ModelSpec,
    Prior,
    ReplicationResult,
    ReplicationResults,
    SeedPolicy,
    SimulationReport,
    SimulationRunner,
    SimulationSpec,
    WidthBelow,
    run_simulation,
)
from .errors import AggregationError, FailureRateExceeded, FitFailure, InvalidSpec
from .fitters import get_fitter, reset_fitter, set_fitter
from .model import BayesPower
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, TqdmReporter

__version__ = _get_version("BayesPower")

__all__ = [
    "BayesPower",
    # Specs
    "DataGenSpec",
    "ModelSpec",
    "Prior",
    "SeedPolicy",
    "SimulationSpec",
    # Running
    "SimulationRunner",
    "ReplicationResult",
    "ReplicationResults",
    "SimulationReport",
    "run_simulation",
    # Criteria
    "ExcludesNull",
    "ExcludesNullTwoSided",
    "WidthBelow",
    "IntervalContains",
    # Fitters
    "get_fitter",
    "set_fitter",
    "reset_fitter",
    # Errors
    "InvalidSpec",
    "FitFailure",
    "AggregationError",
    "FailureRateExceeded",
    # Progress
    "SimulationCancelled",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
