"""
Integration tests for the BayesPower front end.
"""

import pytest

from bayespower import BayesPower
from bayespower.errors import InvalidSpec
from bayespower.fitters import get_fitter
from bayespower.fitters.laplace import LaplaceFitter
from bayespower.progress import SimulationCancelled
from tests.config import N_REPS_CHECK, N_REPS_LAPLACE, SEED
from tests.helpers.stubs import FixedIntervalFitter, GroupMeansFitter


@pytest.fixture
def model(suppress_output):
    m = BayesPower("y ~ treatment", family="gaussian")
    m.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")
    m.set_priors("Intercept=normal(0, 10), treatment=normal(0, 2)")
    m.set_replications(N_REPS_CHECK)
    return m


class TestConfiguration:
    def test_defaults(self, model):
        assert model.seed == SEED
        assert model.power == 80.0
        assert model.prob_mass == 0.95
        assert model.parallel is False
        assert model.coefficients == ["Intercept", "treatment"]

    def test_chaining(self, model):
        assert model.set_seed(7).set_power(90).set_prob_mass(0.9).set_timeout(5) is model
        assert model.seed == 7
        assert model.power == 90.0

    def test_unknown_family(self):
        with pytest.raises(InvalidSpec, match="Unknown family"):
            BayesPower("y ~ x", family="gamma")

    def test_group_arity_checked(self, model):
        with pytest.raises(InvalidSpec, match="expected"):
            model.set_groups("control=(50, 0), treatment=(50, 0.5)")

    def test_group_size_from_mapping_must_be_integer(self, model):
        with pytest.raises(InvalidSpec, match="integer"):
            model.set_groups({"control": (50.7, 0, 1), "treatment": (50, 0.5, 1)})

    def test_group_mapping(self, model):
        model.set_groups({"control": (40.0, 0, 1), "treatment": (40, 0.5, 1)})
        assert model.data_spec.total_size == 80

    def test_unknown_prior_name(self, model):
        with pytest.raises(InvalidSpec):
            model.set_priors("slope=normal(0, 1)")

    def test_sigma_prior_for_gaussian(self, model):
        model.set_priors({"sigma": "exponential(1)"})
        assert str(model.model_spec.prior_for("sigma")) == "exponential(1)"

    def test_groups_required(self, suppress_output):
        m = BayesPower("y ~ treatment")
        with pytest.raises(InvalidSpec, match="set_groups"):
            m.find_power()

    def test_build_spec(self, model):
        spec = model.build_spec(sample_size=30)
        assert spec.target == "treatment"
        assert spec.data.total_size == 60
        assert spec.seed_policy.seed_for(1) == SEED + 1

    def test_random_seed(self, model):
        model.set_seed(None)
        assert isinstance(model.build_spec().seed_policy.offset, int)

    def test_model_fitter_is_local(self, model):
        model.set_fitter(FixedIntervalFitter())
        assert isinstance(get_fitter(), LaplaceFitter)


class TestFindPower:
    def test_returns_results(self, model):
        model.set_fitter(GroupMeansFitter())
        result = model.find_power(print_results=False, return_results=True)

        assert 0.0 <= result["results"]["power"] <= 1.0
        assert result["results"]["failure_rate"] == 0.0
        assert len(result["replications"]) == N_REPS_CHECK
        assert result["replications"][0].seed == SEED + 1
        assert result["model"]["target"] == "treatment"

    def test_prints_report(self, model, capsys):
        model.set_fitter(FixedIntervalFitter())
        model.find_power(progress_callback=False)
        out = capsys.readouterr().out
        assert "BAYESIAN POWER ANALYSIS RESULTS" in out
        assert "100.0%" in out

    def test_reproducible(self, model):
        model.set_fitter(GroupMeansFitter())
        a = model.find_power(print_results=False, return_results=True)
        b = model.find_power(print_results=False, return_results=True)
        assert a["replications"] == b["replications"]

    def test_unknown_target(self, model):
        with pytest.raises(InvalidSpec, match="not a model coefficient"):
            model.find_power(target="dose", print_results=False)

    def test_progress_callback(self, model):
        seen = []
        model.set_fitter(FixedIntervalFitter())
        model.find_power(print_results=False, progress_callback=lambda c, t: seen.append((c, t)))
        assert seen[0] == (0, N_REPS_CHECK)
        assert seen[-1] == (N_REPS_CHECK, N_REPS_CHECK)

    def test_laplace_default(self, model):
        model.set_replications(N_REPS_LAPLACE)
        result = model.find_power(criterion="excludes_null(0)", width_threshold=1.0, print_results=False, return_results=True)
        assert result["results"]["failure_rate"] == 0.0
        assert result["results"]["proportion_below"] == 1.0


class TestFindSampleSize:
    def test_first_size_when_always_passing(self, model):
        model.set_fitter(FixedIntervalFitter())
        result = model.find_sample_size(from_size=20, to_size=40, by=10, print_results=False, return_results=True)
        assert result["results"]["sample_sizes_tested"] == [20, 30, 40]
        assert result["results"]["first_achieved"] == 20

    def test_never_reached(self, model):
        model.set_fitter(FixedIntervalFitter(-0.5, 0.5))
        result = model.find_sample_size(from_size=20, to_size=30, by=10, print_results=False, return_results=True)
        assert result["results"]["first_achieved"] == -1

    def test_precision_sweep_with_laplace(self, model):
        model.set_replications(N_REPS_LAPLACE)
        result = model.find_sample_size(
            from_size=20, to_size=80, by=60, criterion="width_below(0.8)", print_results=False, return_results=True
        )
        # expected widths are about 1.24 and 0.62
        assert result["results"]["powers"] == [0.0, 100.0]
        assert result["results"]["first_achieved"] == 80

    def test_prints_table(self, model, capsys):
        model.set_fitter(FixedIntervalFitter())
        model.find_sample_size(from_size=20, to_size=30, by=10, progress_callback=False)
        assert "SAMPLE SIZE ANALYSIS RESULTS" in capsys.readouterr().out

    def test_cancel(self, model):
        model.set_fitter(FixedIntervalFitter())
        with pytest.raises(SimulationCancelled):
            model.find_sample_size(from_size=20, to_size=40, by=10, print_results=False, cancel_check=lambda: True)
