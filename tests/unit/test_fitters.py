"""
Tests for the fitter registry.
"""

import pytest

from bayespower.fitters import ModelFitter, get_fitter, get_fitter_info, reset_fitter, set_fitter
from bayespower.fitters.laplace import LaplaceFitter
from tests.helpers.stubs import FixedIntervalFitter


class TestFitterRegistry:
    """Test get/set/reset of the process-wide default fitter."""

    def test_default_is_laplace(self):
        assert isinstance(get_fitter(), LaplaceFitter)
        assert get_fitter_info()["forced"] is False

    def test_cached_instance(self):
        assert get_fitter() is get_fitter()

    def test_set_by_name(self):
        set_fitter("laplace")
        info = get_fitter_info()
        assert info["name"] == "LaplaceFitter"
        assert info["forced"] is True

    def test_set_instance(self):
        stub = FixedIntervalFitter()
        set_fitter(stub)
        assert get_fitter() is stub

    def test_reset(self):
        set_fitter(FixedIntervalFitter())
        reset_fitter()
        assert isinstance(get_fitter(), LaplaceFitter)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown fitter"):
            set_fitter("stan")

    def test_non_conforming_object(self):
        with pytest.raises(TypeError):
            set_fitter(object())

    def test_stub_satisfies_protocol(self):
        assert isinstance(FixedIntervalFitter(), ModelFitter)
