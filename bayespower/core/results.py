"""
Results processing for BayesPower.

Turns replication results and criterion evaluations into a
``SimulationReport``, and collects sample-size sweeps into per-size series
with the first size reaching the target power.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import AggregationError
from .criteria import WidthBelow

__all__ = [
    "SimulationReport",
    "ReportAggregator",
    "build_power_result",
    "build_sample_size_result",
    "run_simulation",
]


class SimulationReport(Mapping):
    """Read-only mapping of named statistics from one simulation run.

    Keys: ``power``, ``mean_width``, ``proportion_below`` (only when a
    width threshold applies), ``failure_rate``, ``mean_estimate``,
    ``n_replications``, ``n_completed``, ``n_successful``, ``n_failed``.
    Proportions are on the 0-1 scale.
    """

    def __init__(self, statistics: Dict[str, Any], criterion: str, width_threshold: Optional[float] = None):
        self._statistics = MappingProxyType(dict(statistics))
        self.criterion = criterion
        self.width_threshold = width_threshold

    def __getitem__(self, key: str) -> Any:
        return self._statistics[key]

    def __iter__(self):
        return iter(self._statistics)

    def __len__(self) -> int:
        return len(self._statistics)

    def __repr__(self) -> str:
        return f"SimulationReport({dict(self._statistics)!r}, criterion={self.criterion!r})"

    @property
    def power(self) -> float:
        return self._statistics["power"]

    @property
    def mean_width(self) -> float:
        return self._statistics["mean_width"]

    @property
    def failure_rate(self) -> float:
        return self._statistics["failure_rate"]

    @property
    def proportion_below(self) -> Optional[float]:
        return self._statistics.get("proportion_below")

    def to_dict(self) -> Dict[str, Any]:
        return {**self._statistics, "criterion": self.criterion, "width_threshold": self.width_threshold}


class ReportAggregator:
    """Reduces results and evaluations to summary statistics.

    All statistics are plain means over the successful replications;
    ``failure_rate`` is failed over completed replications.
    """

    def aggregate(self, results: Sequence, evaluation, width_threshold: Optional[float] = None) -> SimulationReport:
        """Build the report for one run.

        Args:
            results: Replication results (tombstones included).
            evaluation: ``Evaluation`` from ``CriterionEvaluator``.
            width_threshold: Adds ``proportion_below``. Defaults to the
                threshold of a ``WidthBelow`` criterion, if that is the
                criterion evaluated.

        Raises:
            AggregationError: If no replication succeeded.
        """
        successful = [r for r in results if not r.failed]
        n_completed = len(results)
        n_failed = n_completed - len(successful)
        if not successful:
            raise AggregationError(f"No successful replications to aggregate ({n_failed} failed)")

        criterion = evaluation.criterion
        if width_threshold is None and isinstance(criterion, WidthBelow):
            width_threshold = criterion.threshold

        widths = np.array([r.width for r in successful])
        statistics: Dict[str, Any] = {
            "power": evaluation.proportion,
            "mean_width": float(np.mean(widths)),
            "failure_rate": n_failed / n_completed,
            "mean_estimate": float(np.mean([r.point for r in successful])),
            "n_replications": getattr(results, "n_requested", n_completed),
            "n_completed": n_completed,
            "n_successful": len(successful),
            "n_failed": n_failed,
        }
        if width_threshold is not None:
            statistics["proportion_below"] = float(np.mean(widths < width_threshold))

        return SimulationReport(statistics, criterion.describe(), width_threshold)

    def process_sample_size_results(self, reports: List[Tuple[int, Optional[SimulationReport]]], target_power: float = 80.0) -> Dict[str, Any]:
        """Collect a sample-size sweep.

        Args:
            reports: ``(sample_size, report)`` pairs in sweep order; ``None``
                reports (all replications failed) are skipped.
            target_power: Target power as a percentage (0-100).

        Returns:
            Dict with ``sample_sizes_tested``, per-size ``powers`` (percent),
            ``mean_widths``, ``proportions_below``, ``failure_rates`` and
            ``first_achieved`` (first size reaching the target, or -1).
        """
        sizes, powers, widths, below, failures = [], [], [], [], []
        first_achieved = -1

        for sample_size, report in reports:
            if report is None:
                continue
            power = report.power * 100
            sizes.append(sample_size)
            powers.append(power)
            widths.append(report.mean_width)
            below.append(report.proportion_below)
            failures.append(report.failure_rate)
            if power >= target_power and first_achieved == -1:
                first_achieved = sample_size

        return {
            "sample_sizes_tested": sizes,
            "powers": powers,
            "mean_widths": widths,
            "proportions_below": below if any(b is not None for b in below) else None,
            "failure_rates": failures,
            "first_achieved": first_achieved,
        }


def _describe_spec(spec) -> Dict[str, Any]:
    return {
        "formula": spec.model.formula,
        "family": spec.model.family,
        "link": spec.model.link,
        "target": spec.target,
        "prob_mass": spec.prob_mass,
        "criterion": spec.criterion.describe(),
        "groups": {g.name: g.size for g in spec.data.groups},
    }


def build_power_result(spec, report: SimulationReport, target_power: float, parallel: bool) -> Dict[str, Any]:
    """Result dictionary for a single-size power analysis."""
    return {
        "model": {
            **_describe_spec(spec),
            "sample_size": spec.data.total_size,
            "replications": spec.replications,
            "target_power": target_power,
            "parallel": parallel,
        },
        "results": report.to_dict(),
    }


def build_sample_size_result(spec, sample_sizes: List[int], target_power: float, parallel: bool, analysis_results: Dict) -> Dict[str, Any]:
    """Result dictionary for a sample-size sweep (sizes are per group)."""
    return {
        "model": {
            **_describe_spec(spec),
            "replications": spec.replications,
            "target_power": target_power,
            "parallel": parallel,
            "sample_size_range": {
                "from_size": sample_sizes[0],
                "to_size": sample_sizes[-1],
                "by": sample_sizes[1] - sample_sizes[0] if len(sample_sizes) > 1 else 1,
            },
        },
        "results": analysis_results,
    }


def run_simulation(spec, progress=None, cancel_check=None, **runner_kwargs):
    """Run, evaluate and aggregate *spec* in one call.

    Keyword arguments go to ``SimulationRunner``.

    Returns:
        ``(SimulationReport, ReplicationResults)``
    """
    from .criteria import CriterionEvaluator
    from .simulation import SimulationRunner

    results = SimulationRunner(**runner_kwargs).run(spec, progress=progress, cancel_check=cancel_check)
    evaluation = CriterionEvaluator().evaluate(results, spec.criterion)
    report = ReportAggregator().aggregate(results, evaluation, spec.width_threshold)
    return report, results
