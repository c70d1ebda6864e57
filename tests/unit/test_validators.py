"""
Tests for validation utilities.
"""

import pytest

from bayespower.core.criteria import ExcludesNull
from bayespower.core.specs import DataGenSpec, GroupSpec, ModelSpec, Prior, SeedPolicy
from bayespower.errors import InvalidSpec
from bayespower.utils.validators import (
    _validate_data_gen_spec,
    _validate_failure_rate,
    _validate_model_matches_data,
    _validate_model_spec,
    _validate_parallel_settings,
    _validate_prior,
    _validate_prob_mass,
    _validate_replications,
    _validate_sample_size_range,
    _validate_simulation_spec,
    _validate_timeout,
    _ValidationResult,
)


class TestValidationResult:
    """Test _ValidationResult behaviour."""

    def test_raise_if_invalid_lists_all_errors(self):
        result = _ValidationResult(False, ["first", "second"], [])
        with pytest.raises(InvalidSpec) as exc_info:
            result.raise_if_invalid()
        assert "first" in str(exc_info.value)
        assert "second" in str(exc_info.value)

    def test_invalid_spec_is_value_error(self):
        with pytest.raises(ValueError):
            _ValidationResult(False, ["boom"], []).raise_if_invalid()

    def test_merge(self):
        merged = _ValidationResult(True, [], ["w"]).merge(_ValidationResult(False, ["e"], []))
        assert not merged.is_valid
        assert merged.errors == ["e"]
        assert merged.warnings == ["w"]


class TestParameterValidators:
    """Test scalar parameter validators."""

    @pytest.mark.parametrize("value", [0.5, 0.95, 0.99])
    def test_prob_mass_valid(self, value):
        assert _validate_prob_mass(value).is_valid

    @pytest.mark.parametrize("value", [0, 1, 1.5, -0.1, "0.9", True, float("nan")])
    def test_prob_mass_invalid(self, value):
        assert not _validate_prob_mass(value).is_valid

    def test_replications_low_count_warns(self):
        n, result = _validate_replications(50)
        assert n == 50
        assert result.is_valid
        assert result.warnings

    def test_replications_rounding(self):
        n, result = _validate_replications(200.4)
        assert n == 200
        assert any("rounded" in w for w in result.warnings)

    def test_replications_invalid(self):
        _, result = _validate_replications(0)
        assert not result.is_valid

    def test_timeout(self):
        assert _validate_timeout(None).is_valid
        assert _validate_timeout(2.5).is_valid
        assert not _validate_timeout(0).is_valid
        assert not _validate_timeout(-1).is_valid

    def test_failure_rate(self):
        assert _validate_failure_rate(None).is_valid
        assert _validate_failure_rate(0.2).is_valid
        assert not _validate_failure_rate(1.5).is_valid

    def test_sample_size_range(self):
        assert _validate_sample_size_range(20, 100, 20).is_valid
        assert not _validate_sample_size_range(100, 20, 10).is_valid
        assert not _validate_sample_size_range(20, 30, 50).is_valid
        assert _validate_sample_size_range(10, 1000, 10).warnings

    def test_parallel_settings(self):
        (enable, n_cores), result = _validate_parallel_settings(True, 2)
        assert result.is_valid
        assert enable is True
        assert 1 <= n_cores <= 2

        _, result = _validate_parallel_settings("yes", None)
        assert not result.is_valid


class TestPriorValidation:
    """Test prior checks."""

    def test_valid(self):
        assert _validate_prior("x", Prior("normal", (0.0, 1.0))) == []
        assert _validate_prior("x", Prior()) == []

    def test_unknown_family(self):
        assert "unknown family" in _validate_prior("x", Prior("gamma", (1.0, 1.0)))[0]

    def test_wrong_parameter_count(self):
        assert "takes 2 parameter" in _validate_prior("x", Prior("normal", (0.0,)))[0]

    def test_non_positive_scale(self):
        assert "scale must be positive" in _validate_prior("x", Prior("normal", (0.0, 0.0)))[0]


class TestDataGenSpecValidation:
    """Test DataGenSpec checks."""

    def test_valid(self):
        spec = DataGenSpec.gaussian({"control": (0.0, 1.0), "treatment": (0.5, 1.0)}, size=10)
        assert _validate_data_gen_spec(spec).is_valid

    def test_negative_size(self):
        spec = DataGenSpec("poisson", (GroupSpec("a", -1, rate=1.0), GroupSpec("b", 5, rate=1.0)))
        result = _validate_data_gen_spec(spec)
        assert not result.is_valid
        assert "non-negative" in result.errors[0]

    def test_non_integer_size(self):
        spec = DataGenSpec("poisson", (GroupSpec("a", 2.5, rate=1.0),))
        assert "integer" in _validate_data_gen_spec(spec).errors[0]

    def test_probability_out_of_range(self):
        spec = DataGenSpec.binomial({"a": 1.2}, size=10)
        assert "between 0 and 1" in _validate_data_gen_spec(spec).errors[0]

    def test_negative_rate(self):
        spec = DataGenSpec.poisson({"a": -0.5}, size=10)
        assert not _validate_data_gen_spec(spec).is_valid

    @pytest.mark.parametrize("sd", [0.0, -1.0])
    def test_non_positive_sd(self, sd):
        spec = DataGenSpec.gaussian({"a": (0.0, sd)}, size=10)
        assert "sd must be positive" in _validate_data_gen_spec(spec).errors[0]

    def test_aggregated_only_binomial(self):
        spec = DataGenSpec("poisson", (GroupSpec("a", 5, rate=1.0),), aggregated=True)
        assert not _validate_data_gen_spec(spec).is_valid

    def test_duplicate_group(self):
        spec = DataGenSpec("poisson", (GroupSpec("a", 5, rate=1.0), GroupSpec("a", 5, rate=2.0)))
        assert "more than once" in _validate_data_gen_spec(spec).errors[0]

    def test_zero_total(self):
        spec = DataGenSpec.poisson({"a": 1.0}, size=0)
        assert "zero" in _validate_data_gen_spec(spec).errors[0]


class TestModelSpecValidation:
    """Test ModelSpec checks."""

    def test_valid(self, gaussian_model):
        assert _validate_model_spec(gaussian_model).is_valid

    def test_link_not_allowed(self):
        result = _validate_model_spec(ModelSpec("y ~ 1", family="binomial", link="identity"))
        assert "not supported" in result.errors[0]

    def test_prior_for_unknown_parameter(self):
        result = _validate_model_spec(ModelSpec("y ~ treatment", priors={"slope": "normal(0, 1)"}))
        assert "not a model parameter" in result.errors[0]

    def test_sigma_prior_allowed_for_gaussian(self):
        assert _validate_model_spec(ModelSpec("y ~ 1", priors={"sigma": "exponential(1)"})).is_valid

    def test_strict_priors_missing(self):
        spec = ModelSpec("y ~ treatment", priors={"Intercept": "normal(0, 10)"}, strict_priors=True)
        result = _validate_model_spec(spec)
        assert "Missing prior for: treatment, sigma" in result.errors[0]

    def test_bad_formula(self):
        assert not _validate_model_spec(ModelSpec("y ~ ")).is_valid

    def test_trials_needs_binomial(self):
        assert not _validate_model_spec(ModelSpec("y | trials(n_trials) ~ 1", family="poisson")).is_valid


class TestModelMatchesData:
    """Test formula/data compatibility checks."""

    def test_unknown_column(self, gaussian_data):
        result = _validate_model_matches_data(ModelSpec("y ~ dose"), gaussian_data)
        assert "'dose'" in result.errors[0]

    def test_response_must_be_y(self, gaussian_data):
        assert not _validate_model_matches_data(ModelSpec("score ~ treatment"), gaussian_data).is_valid

    def test_aggregated_requires_trials(self):
        data = DataGenSpec.binomial({"a": 0.3}, size=100, aggregated=True)
        assert not _validate_model_matches_data(ModelSpec("y ~ 1", family="binomial"), data).is_valid
        assert _validate_model_matches_data(ModelSpec("y | trials(n_trials) ~ 1", family="binomial"), data).is_valid

    def test_family_mismatch(self, gaussian_data):
        assert not _validate_model_matches_data(ModelSpec("y ~ treatment", family="poisson"), gaussian_data).is_valid


class TestSimulationSpecValidation:
    """Test whole-spec validation."""

    def test_valid(self, make_spec):
        assert _validate_simulation_spec(make_spec()).is_valid

    def test_unknown_target(self, make_spec):
        result = _validate_simulation_spec(make_spec(target="dose"))
        assert "Target 'dose'" in result.errors[0]

    def test_bad_prob_mass(self, make_spec):
        assert not _validate_simulation_spec(make_spec(prob_mass=1.0)).is_valid

    def test_bad_criterion(self, make_spec):
        assert not _validate_simulation_spec(make_spec(criterion="excludes_null")).is_valid

    def test_negative_seeds(self, make_spec):
        assert not _validate_simulation_spec(make_spec(seed_policy=SeedPolicy(offset=-5))).is_valid

    def test_collects_several_errors(self, make_spec):
        result = _validate_simulation_spec(make_spec(replications=0, prob_mass=2.0, criterion=ExcludesNull()))
        assert len(result.errors) >= 2
