"""
Posterior summaries and convergence diagnostics.

Fitters return either a Gaussian approximation (mode + covariance) or a
set of posterior draws arranged as chains. Both reduce to the same
``IntervalSummary``: a point estimate and an equal-tailed credible interval
at a requested probability mass.
"""

from typing import Dict, NamedTuple, Sequence

import numpy as np
from scipy import stats

__all__ = [
    "IntervalSummary",
    "normal_interval",
    "quantile_interval",
    "split_rhat",
    "GaussianPosterior",
    "DrawsPosterior",
    "check_convergence",
]


class IntervalSummary(NamedTuple):
    """Point estimate and two-sided credible interval for one coefficient."""

    point: float
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


def normal_interval(mean: float, sd: float, prob_mass: float) -> IntervalSummary:
    """Equal-tailed interval of ``Normal(mean, sd)`` holding *prob_mass*."""
    z = stats.norm.ppf(0.5 + prob_mass / 2)
    return IntervalSummary(float(mean), float(mean - z * sd), float(mean + z * sd))


def quantile_interval(draws: np.ndarray, prob_mass: float) -> IntervalSummary:
    """Posterior mean and equal-tailed quantile interval of *draws*."""
    tail = (1 - prob_mass) / 2
    lower, upper = np.quantile(draws, [tail, 1 - tail])
    return IntervalSummary(float(np.mean(draws)), float(lower), float(upper))


def split_rhat(chains: np.ndarray) -> float:
    """Split potential scale reduction factor (Gelman et al., BDA3 §11.4).

    Each chain is cut in half so within-chain drift also inflates the
    statistic. Values near 1 indicate the chains agree.

    Args:
        chains: Array of shape ``(n_chains, n_draws)`` for one parameter.

    Returns:
        R-hat; ``nan`` if there are fewer than 4 draws per chain.
    """
    chains = np.asarray(chains, dtype=float)
    if chains.ndim != 2 or chains.shape[1] < 4:
        return float("nan")

    half = chains.shape[1] // 2
    split = np.concatenate([chains[:, :half], chains[:, -half:]], axis=0)
    n = split.shape[1]

    chain_means = split.mean(axis=1)
    within = split.var(axis=1, ddof=1).mean()
    between = n * chain_means.var(ddof=1)

    if within <= 0:
        # Constant chains: agree exactly if their means agree
        return 1.0 if between <= 0 else float("inf")

    var_plus = (n - 1) / n * within + between / n
    return float(np.sqrt(var_plus / within))


class GaussianPosterior:
    """Gaussian (Laplace) approximation to a posterior.

    Attributes:
        names: Parameter names, regression coefficients first.
        mode: Posterior mode on the unconstrained scale.
        covariance: Inverse negative Hessian at the mode.
    """

    def __init__(self, names: Sequence[str], mode: np.ndarray, covariance: np.ndarray):
        self.names = list(names)
        self.mode = np.asarray(mode, dtype=float)
        self.covariance = np.asarray(covariance, dtype=float)
        self._index: Dict[str, int] = {name: i for i, name in enumerate(self.names)}

    def index_of(self, name: str) -> int:
        from ..errors import InvalidSpec

        if name not in self._index:
            raise InvalidSpec(f"Unknown coefficient '{name}'. Available: {', '.join(self.names)}")
        return self._index[name]

    def summarize(self, coefficient: str, prob_mass: float) -> IntervalSummary:
        i = self.index_of(coefficient)
        return normal_interval(self.mode[i], np.sqrt(self.covariance[i, i]), prob_mass)


class DrawsPosterior:
    """Posterior represented by draws from several chains.

    Attributes:
        names: Parameter names.
        draws: Array of shape ``(n_chains, n_draws, n_params)``.
    """

    def __init__(self, names: Sequence[str], draws: np.ndarray):
        self.names = list(names)
        self.draws = np.asarray(draws, dtype=float)
        if self.draws.ndim != 3 or self.draws.shape[2] != len(self.names):
            raise ValueError("draws must have shape (n_chains, n_draws, n_params)")
        self._index: Dict[str, int] = {name: i for i, name in enumerate(self.names)}

    def index_of(self, name: str) -> int:
        from ..errors import InvalidSpec

        if name not in self._index:
            raise InvalidSpec(f"Unknown coefficient '{name}'. Available: {', '.join(self.names)}")
        return self._index[name]

    def rhat(self) -> Dict[str, float]:
        """Split R-hat for every parameter."""
        return {name: split_rhat(self.draws[:, :, i]) for i, name in enumerate(self.names)}

    def summarize(self, coefficient: str, prob_mass: float) -> IntervalSummary:
        i = self.index_of(coefficient)
        return quantile_interval(self.draws[:, :, i].ravel(), prob_mass)


def check_convergence(posterior: DrawsPosterior, threshold: float = 1.05) -> None:
    """Raise ``FitFailure`` if any parameter's R-hat exceeds *threshold*.

    Parameters with too few draws for R-hat (``nan``) are not checked.
    """
    from ..errors import FitFailure

    bad = {name: value for name, value in posterior.rhat().items() if not np.isnan(value) and value > threshold}
    if bad:
        worst = max(bad, key=bad.get)
        raise FitFailure(f"Chains did not converge: R-hat for '{worst}' is {bad[worst]:.3f} (threshold {threshold})")
