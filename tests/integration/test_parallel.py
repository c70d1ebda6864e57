"""
Tests for parallel execution in BayesPower.
"""

import pytest

from bayespower.core.simulation import SimulationRunner
from bayespower.fitters.laplace import LaplaceFitter
from tests.config import N_REPS_CHECK
from tests.helpers.stubs import FailingFitter, SeedEchoFitter


def _joblib_available():
    """Check if joblib is available."""
    import importlib.util

    return importlib.util.find_spec("joblib") is not None


pytestmark = pytest.mark.skipif(not _joblib_available(), reason="joblib not installed")


class TestParallelExecution:
    """Worker-pool runs must match sequential runs record for record."""

    def test_stub_results_match_sequential(self, make_spec):
        spec = make_spec(replications=20)
        sequential = SimulationRunner(fitter=SeedEchoFitter()).run(spec)
        parallel = SimulationRunner(parallel=True, n_cores=2, fitter=SeedEchoFitter()).run(spec)
        assert parallel == sequential

    def test_laplace_results_match_sequential(self, make_spec):
        spec = make_spec(replications=N_REPS_CHECK)
        sequential = SimulationRunner(fitter=LaplaceFitter()).run(spec)
        parallel = SimulationRunner(parallel=True, n_cores=2, fitter=LaplaceFitter()).run(spec)

        assert [r.index for r in parallel] == [r.index for r in sequential]
        for a, b in zip(parallel, sequential):
            assert a.lower == pytest.approx(b.lower)
            assert a.upper == pytest.approx(b.upper)

    def test_failures_tombstoned_in_workers(self, make_spec, quiet):
        results = SimulationRunner(parallel=True, n_cores=2, fitter=FailingFitter({2, 5})).run(make_spec())
        assert [r.index for r in results.failed()] == [2, 5]

    def test_cancel_returns_partial(self, make_spec, quiet):
        calls = {"n": 0}

        def cancel_check():
            calls["n"] += 1
            return calls["n"] > 5

        results = SimulationRunner(parallel=True, n_cores=2, fitter=SeedEchoFitter()).run(
            make_spec(replications=50), cancel_check=cancel_check
        )
        assert results.cancelled
        assert results.n_completed < 50

    def test_single_core_runs_sequentially(self, make_spec):
        runner = SimulationRunner(parallel=True, n_cores=1, fitter=SeedEchoFitter())
        assert len(runner.run(make_spec(replications=3))) == 3
