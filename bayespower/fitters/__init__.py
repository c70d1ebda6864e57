"""
Model fitter abstraction for BayesPower.

The simulation core treats model fitting as a black box: given a
``ModelSpec`` and a dataset it needs a posterior it can summarise for one
coefficient at a requested probability mass. Any object with ``fit`` and
``summarize`` methods matching ``ModelFitter`` can be plugged in (a wrapper
around PyMC, Stan, or a closed-form conjugate model).

The package ships one implementation, the Laplace-approximation fitter,
which is selected by default. Users can override the selection via
set_fitter('laplace' | 'default') or by passing a fitter instance.
"""

from typing import Any, Optional, Protocol, Union, runtime_checkable

import pandas as pd

from ..stats.posterior import IntervalSummary


@runtime_checkable
class ModelFitter(Protocol):
    """Protocol defining the model fitter interface.

    Implementations may cache compiled model structure keyed by the
    (hashable) ``ModelSpec`` to avoid recompiling for every replication.
    """

    def fit(self, model: Any, data: pd.DataFrame, seed: Optional[int] = None) -> Any:
        """Fit *model* to *data*.

        Args:
            model: ``ModelSpec`` describing family, link, formula and priors.
            data: Dataset produced by the data generator.
            seed: Seed for any stochastic step inside the fitter; fits with
                the same seed must be reproducible.

        Returns:
            An opaque posterior handle accepted by ``summarize``.

        Raises:
            FitFailure: If the fit did not converge.
        """
        ...

    def summarize(self, posterior: Any, coefficient: str, prob_mass: float) -> IntervalSummary:
        """Point estimate and credible interval for *coefficient*.

        Returns:
            ``IntervalSummary(point, lower, upper)`` with ``lower <= upper``.
        """
        ...


# Valid fitter names for set_fitter()
_FITTER_NAMES = {"default", "laplace"}

# Global fitter instance
_fitter_instance = None
_fitter_forced = False


def _create_fitter(name: str) -> ModelFitter:
    """Instantiate a fitter by name.

    Raises:
        ValueError: If the name is not recognized.
    """
    if name in ("laplace", "default"):
        from .laplace import LaplaceFitter

        return LaplaceFitter()

    raise ValueError(f"Unknown fitter: {name!r}")


def get_fitter() -> ModelFitter:
    """
    Get the active model fitter.

    On first call, creates the default fitter. Subsequent calls return the
    cached instance unless reset_fitter() is called.
    """
    global _fitter_instance

    if _fitter_instance is not None:
        return _fitter_instance

    _fitter_instance = _create_fitter("default")
    return _fitter_instance


def set_fitter(fitter: Union[str, ModelFitter]) -> None:
    """
    Set the model fitter.

    Args:
        fitter: One of:
            - 'default': the Laplace-approximation fitter
            - 'laplace': same, forced explicitly
            - A ModelFitter instance

    Raises:
        ValueError: If the string is not recognized.
        TypeError: If the object does not implement ``fit``/``summarize``.
    """
    global _fitter_instance, _fitter_forced

    if isinstance(fitter, str):
        name = fitter.lower().strip()
        if name not in _FITTER_NAMES:
            raise ValueError(f"Unknown fitter {fitter!r}. Choose from: {', '.join(sorted(_FITTER_NAMES))}")
        _fitter_instance = _create_fitter(name)
        _fitter_forced = name != "default"
    else:
        if not isinstance(fitter, ModelFitter):
            raise TypeError(f"{type(fitter).__name__} does not implement fit() and summarize()")
        _fitter_instance = fitter
        _fitter_forced = True


def reset_fitter() -> None:
    """Reset the fitter to the default selection."""
    global _fitter_instance, _fitter_forced
    _fitter_instance = None
    _fitter_forced = False


def get_fitter_info() -> dict:
    """
    Get information about the current fitter.

    Returns:
        Dictionary with fitter name, module, and whether it was forced.
    """
    fitter = get_fitter()
    return {
        "name": type(fitter).__name__,
        "module": type(fitter).__module__,
        "forced": _fitter_forced,
    }


__all__ = [
    "ModelFitter",
    "get_fitter",
    "set_fitter",
    "reset_fitter",
    "get_fitter_info",
]
