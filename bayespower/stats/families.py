"""
Likelihood families and link functions.

Each family maps a linear predictor ``eta`` to the log-likelihood of the
observed outcome through its link. Constants that do not depend on the
coefficients (e.g. ``log(y!)``) are kept so log-posterior values are
comparable across fits.
"""

from typing import Callable, Dict, Optional, Tuple

import numpy as np
from scipy.special import expit, gammaln, logit

__all__ = [
    "FAMILIES",
    "LINKS",
    "DEFAULT_LINKS",
    "default_link",
    "inverse_link",
]

FAMILIES = ("gaussian", "poisson", "binomial")
LINKS = ("identity", "log", "logit")

DEFAULT_LINKS = {
    "gaussian": "identity",
    "poisson": "log",
    "binomial": "logit",
}

# Links each family accepts. The mean must stay inside the family's support.
ALLOWED_LINKS = {
    "gaussian": ("identity", "log"),
    "poisson": ("log", "identity"),
    "binomial": ("logit",),
}

_INVERSE_LINKS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "identity": lambda eta: eta,
    "log": np.exp,
    "logit": expit,
}

def default_link(family: str) -> str:
    """Return the canonical link for *family*."""
    return DEFAULT_LINKS[family]


def inverse_link(link: str) -> Callable[[np.ndarray], np.ndarray]:
    """Return the mean function ``mu = g^-1(eta)`` for *link*."""
    return _INVERSE_LINKS[link]


def gaussian_loglik(y: np.ndarray, mu: np.ndarray, sigma: float) -> float:
    resid = y - mu
    n = y.shape[0]
    return float(-n * np.log(sigma) - 0.5 * n * np.log(2 * np.pi) - 0.5 * np.dot(resid, resid) / sigma**2)


def poisson_loglik(y: np.ndarray, eta: np.ndarray, link: str) -> float:
    if link == "log":
        # Stable form: y * eta - exp(eta)
        return float(np.sum(y * eta - np.exp(eta) - gammaln(y + 1)))
    mu = inverse_link(link)(eta)
    if np.any(mu <= 0):
        return -np.inf
    return float(np.sum(y * np.log(mu) - mu - gammaln(y + 1)))


def binomial_loglik(y: np.ndarray, eta: np.ndarray, n_trials: np.ndarray) -> float:
    """Binomial log-likelihood on the logit scale.

    ``log(1 + exp(eta))`` is evaluated with ``logaddexp`` to avoid overflow
    for large linear predictors.
    """
    log_binom = gammaln(n_trials + 1) - gammaln(y + 1) - gammaln(n_trials - y + 1)
    return float(np.sum(log_binom + y * eta - n_trials * np.logaddexp(0.0, eta)))


def log_likelihood(
    family: str,
    link: str,
    y: np.ndarray,
    eta: np.ndarray,
    sigma: Optional[float] = None,
    n_trials: Optional[np.ndarray] = None,
) -> float:
    """Dispatch to the family log-likelihood.

    Args:
        family: ``"gaussian"``, ``"poisson"`` or ``"binomial"``.
        link: Link name; must be allowed for *family*.
        y: Outcome vector.
        eta: Linear predictor, same length as *y*.
        sigma: Residual SD (gaussian only).
        n_trials: Trials per row (binomial only; ones for per-trial data).
    """
    if family == "gaussian":
        return gaussian_loglik(y, inverse_link(link)(eta), sigma)  # type: ignore[arg-type]
    if family == "poisson":
        return poisson_loglik(y, eta, link)
    if family == "binomial":
        trials = n_trials if n_trials is not None else np.ones_like(y)
        return binomial_loglik(y, eta, trials)
    raise ValueError(f"Unknown family: {family!r}")


def starting_intercept(family: str, link: str, y: np.ndarray, n_trials: Optional[np.ndarray] = None) -> Tuple[float, float]:
    """Crude intercept and auxiliary-scale start values for the optimiser.

    Returns:
        ``(intercept_on_link_scale, log_sigma)``; ``log_sigma`` is 0 for
        families without a scale parameter.
    """
    if family == "gaussian":
        mean = float(np.mean(y))
        sd = float(np.std(y))
        start = mean if link == "identity" else np.log(max(mean, 1e-3))
        return start, np.log(max(sd, 1e-3))
    if family == "poisson":
        mean = float(np.mean(y)) + 0.5
        return (np.log(mean) if link == "log" else mean), 0.0
    trials = n_trials if n_trials is not None else np.ones_like(y)
    p = (float(np.sum(y)) + 0.5) / (float(np.sum(trials)) + 1.0)
    return float(logit(p)), 0.0
