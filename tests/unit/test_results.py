"""Unit tests for bayespower.core.results: aggregation and result builders."""

import pytest

from bayespower.core.criteria import CriterionEvaluator, ExcludesNull, WidthBelow
from bayespower.core.results import (
    ReportAggregator,
    SimulationReport,
    build_power_result,
    build_sample_size_result,
    run_simulation,
)
from bayespower.core.simulation import ReplicationResult, ReplicationResults
from bayespower.errors import AggregationError
from tests.helpers.stubs import FailingFitter, FixedIntervalFitter


def _results(intervals, failed=(), n_requested=None):
    records = []
    for i, (lower, upper) in enumerate(intervals, start=1):
        if i in failed:
            records.append(ReplicationResult.tombstone(i, i, 0.95, "diverged"))
        else:
            records.append(ReplicationResult(i, i, (lower + upper) / 2, lower, upper, 0.95))
    return ReplicationResults(records, n_requested or len(records))


def _aggregate(results, criterion, width_threshold=None):
    evaluation = CriterionEvaluator().evaluate(results, criterion)
    return ReportAggregator().aggregate(results, evaluation, width_threshold)


class TestAggregate:
    """Tests for ReportAggregator.aggregate."""

    def test_power_and_width(self):
        results = _results([(0.1, 0.5), (-0.2, 0.4), (0.3, 0.9), (0.2, 0.6)])
        report = _aggregate(results, ExcludesNull(0.0))

        assert report.power == pytest.approx(0.75)
        assert report.mean_width == pytest.approx((0.4 + 0.6 + 0.6 + 0.4) / 4)
        assert report.failure_rate == 0.0
        assert report["mean_estimate"] == pytest.approx((0.3 + 0.1 + 0.6 + 0.4) / 4)
        assert report.proportion_below is None
        assert "proportion_below" not in report

    def test_width_threshold_from_criterion(self):
        results = _results([(-0.25, 0.25), (-0.4, 0.4), (-0.3, 0.3)])
        report = _aggregate(results, WidthBelow(0.7))

        assert report.power == pytest.approx(2 / 3)
        assert report.proportion_below == pytest.approx(2 / 3)
        assert report.width_threshold == 0.7

    def test_explicit_width_threshold(self):
        results = _results([(0.1, 0.5), (0.1, 0.9)])
        report = _aggregate(results, ExcludesNull(0.0), width_threshold=0.5)
        assert report.proportion_below == pytest.approx(0.5)

    def test_failed_excluded(self):
        intervals = [(0.1, 0.5)] * 10
        report = _aggregate(_results(intervals, failed={3}), ExcludesNull(0.0))

        assert report.failure_rate == pytest.approx(0.1)
        assert report["n_successful"] == 9
        assert report["n_failed"] == 1
        assert report["n_completed"] == 10
        assert report.power == 1.0

    def test_partial_run_counts(self):
        report = _aggregate(_results([(0.1, 0.5)] * 3, n_requested=8), ExcludesNull(0.0))
        assert report["n_replications"] == 8
        assert report["n_completed"] == 3

    def test_no_successes(self):
        results = _results([(0.1, 0.5)] * 2, failed={1, 2})
        evaluation = CriterionEvaluator().evaluate(_results([(0.1, 0.5)]), ExcludesNull(0.0))
        with pytest.raises(AggregationError):
            ReportAggregator().aggregate(results, evaluation)

    def test_report_is_read_only_mapping(self):
        report = _aggregate(_results([(0.1, 0.5)]), ExcludesNull(0.0))
        with pytest.raises(TypeError):
            report["power"] = 0.0
        assert isinstance(report, SimulationReport)
        assert report.to_dict()["criterion"] == "lower bound > 0"


class TestSampleSizeSweep:
    """Tests for ReportAggregator.process_sample_size_results."""

    def _report(self, power, width=0.5):
        return SimulationReport({"power": power, "mean_width": width, "failure_rate": 0.0}, "lower bound > 0")

    def test_first_achieved(self):
        reports = [(20, self._report(0.4)), (30, self._report(0.81)), (40, self._report(0.95))]
        out = ReportAggregator().process_sample_size_results(reports, target_power=80.0)

        assert out["sample_sizes_tested"] == [20, 30, 40]
        assert out["powers"] == pytest.approx([40.0, 81.0, 95.0])
        assert out["first_achieved"] == 30
        assert out["proportions_below"] is None

    def test_never_achieved(self):
        reports = [(20, self._report(0.1)), (30, self._report(0.2))]
        assert ReportAggregator().process_sample_size_results(reports)["first_achieved"] == -1

    def test_missing_reports_skipped(self):
        reports = [(20, None), (30, self._report(0.9))]
        out = ReportAggregator().process_sample_size_results(reports)
        assert out["sample_sizes_tested"] == [30]
        assert out["first_achieved"] == 30


class TestBuilders:
    """Tests for the result dictionaries and run_simulation."""

    def test_build_power_result(self, make_spec):
        spec = make_spec()
        report = _aggregate(_results([(0.1, 0.5)]), ExcludesNull(0.0))
        out = build_power_result(spec, report, 80.0, parallel=False)

        assert out["model"]["formula"] == "y ~ treatment"
        assert out["model"]["groups"] == {"control": 50, "treatment": 50}
        assert out["model"]["sample_size"] == 100
        assert out["results"]["power"] == 1.0

    def test_build_sample_size_result(self, make_spec):
        out = build_sample_size_result(make_spec(), [20, 30, 40], 80.0, False, {"first_achieved": 30})
        assert out["model"]["sample_size_range"] == {"from_size": 20, "to_size": 40, "by": 10}
        assert out["results"]["first_achieved"] == 30

    def test_run_simulation(self, make_spec):
        report, results = run_simulation(make_spec(replications=6), fitter=FixedIntervalFitter())
        assert len(results) == 6
        assert report.power == 1.0
        assert report.mean_width == pytest.approx(0.7)

    def test_run_simulation_with_failures(self, make_spec, quiet):
        report, _ = run_simulation(make_spec(replications=5), fitter=FailingFitter({5}))
        assert report.failure_rate == pytest.approx(0.2)
