"""Core components for the BayesPower framework.

Re-exports the building blocks of a simulation run:

- ``SimulationSpec`` and its parts (``DataGenSpec``, ``ModelSpec``,
  ``Prior``, ``SeedPolicy``) describing one analysis.
- ``SimulationRunner``, ``ReplicationResult``, ``ReplicationResults``:
  the replication loop and its output.
- Criteria and ``CriterionEvaluator``: per-replication pass/fail rules.
- ``ReportAggregator``, ``SimulationReport``, ``run_simulation``: summary
  statistics.
"""

from .criteria import (
    Criterion,
    CriterionEvaluator,
    Evaluation,
    ExcludesNull,
    ExcludesNullTwoSided,
    IntervalContains,
    WidthBelow,
    parse_criterion,
)
from .results import ReportAggregator, SimulationReport, build_power_result, build_sample_size_result, run_simulation
from .simulation import ReplicationResult, ReplicationResults, SimulationRunner
from .specs import DataGenSpec, GroupSpec, ModelSpec, Prior, SeedPolicy, SimulationSpec

__all__ = [
    # Specs
    "Prior",
    "GroupSpec",
    "DataGenSpec",
    "ModelSpec",
    "SeedPolicy",
    "SimulationSpec",
    # Simulation
    "SimulationRunner",
    "ReplicationResult",
    "ReplicationResults",
    # Criteria
    "Criterion",
    "ExcludesNull",
    "ExcludesNullTwoSided",
    "WidthBelow",
    "IntervalContains",
    "Evaluation",
    "CriterionEvaluator",
    "parse_criterion",
    # Results
    "SimulationReport",
    "ReportAggregator",
    "build_power_result",
    "build_sample_size_result",
    "run_simulation",
]
