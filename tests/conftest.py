"""
Shared pytest fixtures for BayesPower tests.
"""

import warnings

import pytest

from bayespower.core.criteria import ExcludesNull
from bayespower.core.specs import DataGenSpec, ModelSpec, SimulationSpec
from bayespower.fitters import reset_fitter


@pytest.fixture(autouse=True)
def _reset_global_fitter():
    """Every test starts with the default fitter selection."""
    reset_fitter()
    yield
    reset_fitter()


@pytest.fixture
def gaussian_data():
    """Two-group gaussian design, 50 per group, effect 0.5."""
    return DataGenSpec.gaussian({"control": (0.0, 1.0), "treatment": (0.5, 1.0)}, size=50)


@pytest.fixture
def gaussian_model():
    return ModelSpec("y ~ treatment", family="gaussian", priors={"Intercept": "normal(0, 10)", "treatment": "normal(0, 2)"})


@pytest.fixture
def make_spec(gaussian_data, gaussian_model):
    """Factory for gaussian simulation specs with overridable fields."""

    def _make(**overrides):
        fields = dict(
            replications=10,
            data=gaussian_data,
            model=gaussian_model,
            target="treatment",
            prob_mass=0.95,
            criterion=ExcludesNull(0.0),
        )
        fields.update(overrides)
        return SimulationSpec(**fields)

    return _make


@pytest.fixture
def quiet():
    """Silence runner warnings inside a test body."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        yield


@pytest.fixture
def suppress_output(capsys):
    """Swallow the front end's console output."""
    yield
    capsys.readouterr()
