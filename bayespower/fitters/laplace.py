"""
Laplace-approximation fitter for BayesPower.

Approximates the posterior of a Bayesian GLM by a multivariate normal
centred on the posterior mode, with covariance equal to the inverse Hessian
of the negative log posterior. This is not an MCMC sampler; it is a fast,
deterministic stand-in that is accurate for the well-identified group
comparisons power analyses typically use.

Gaussian models carry ``sigma`` as an extra parameter, optimised on the log
scale (the Jacobian term is included so priors apply to ``sigma`` itself).
"""

from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize
from scipy.special import expit, gammaln

from ..errors import FitFailure, InvalidSpec
from ..stats.families import inverse_link, log_likelihood, starting_intercept
from ..stats.posterior import DrawsPosterior, GaussianPosterior, IntervalSummary, check_convergence

__all__ = ["LaplaceFitter"]

# Hessians worse conditioned than this are treated as non-identified
MAX_CONDITION_NUMBER = 1e12
GRADIENT_TOLERANCE = 1e-3
# Ridge probe: step this many posterior SDs along the flattest axis; a proper
# log-concave posterior loses at least MIN_RIDGE_DROP nats there
RIDGE_STEP = 5.0
MIN_RIDGE_DROP = 1.0


def _compile_prior(prior) -> Tuple[Callable[[float], float], Callable[[float], float]]:
    """Return ``(log_density, derivative)`` closures for *prior*.

    Normalising constants are computed once so repeated evaluation inside
    the optimiser stays cheap.
    """
    family, params = prior.family, prior.params

    if family == "flat":
        return (lambda x: 0.0), (lambda x: 0.0)

    if family == "normal":
        mean, sd = params
        const = -np.log(sd) - 0.5 * np.log(2 * np.pi)
        return (lambda x: const - 0.5 * ((x - mean) / sd) ** 2), (lambda x: -(x - mean) / sd**2)

    if family == "student_t":
        df, loc, scale = params
        const = gammaln((df + 1) / 2) - gammaln(df / 2) - 0.5 * np.log(df * np.pi) - np.log(scale)
        return (
            lambda x: const - (df + 1) / 2 * np.log1p(((x - loc) / scale) ** 2 / df),
            lambda x: -(df + 1) * (x - loc) / (df * scale**2 + (x - loc) ** 2),
        )

    if family == "cauchy":
        loc, scale = params
        const = -np.log(np.pi * scale)
        return (
            lambda x: const - np.log1p(((x - loc) / scale) ** 2),
            lambda x: -2 * (x - loc) / (scale**2 + (x - loc) ** 2),
        )

    if family == "exponential":
        (rate,) = params
        return (lambda x: np.log(rate) - rate * x if x >= 0 else -np.inf), (lambda x: -rate)

    raise InvalidSpec(f"Unknown prior family: {family!r}")


class _CompiledModel:
    """Data-independent structure of a ``ModelSpec``.

    Built once per spec and reused for every dataset: parsed formula,
    parameter names, and compiled prior densities.
    """

    def __init__(self, spec):
        parsed = spec.parsed_formula
        self.family = spec.family
        self.link = spec.link
        self.response = parsed.response
        self.trials = parsed.trials
        self.intercept = parsed.intercept
        self.terms = parsed.terms
        self.coefficients: List[str] = parsed.coefficients
        self.has_sigma = spec.family == "gaussian"
        self.names: List[str] = self.coefficients + (["sigma"] if self.has_sigma else [])
        self._priors = [_compile_prior(spec.prior_for(name)) for name in self.coefficients]
        self._sigma_prior = _compile_prior(spec.prior_for("sigma")) if self.has_sigma else None

    def design(self, data: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray, Optional[np.ndarray]]:
        """Build ``(X, y, n_trials)`` from a dataset."""
        missing = [c for c in [self.response, self.trials, *[v for t in self.terms for v in t]] if c is not None and c not in data]
        if missing:
            raise InvalidSpec(f"Dataset is missing column(s): {', '.join(missing)}")

        n = len(data)
        columns = []
        if self.intercept:
            columns.append(np.ones(n))
        for term in self.terms:
            col = data[term[0]].to_numpy(dtype=float).copy()
            for name in term[1:]:
                col *= data[name].to_numpy(dtype=float)
            columns.append(col)

        X = np.column_stack(columns) if columns else np.empty((n, 0))
        y = data[self.response].to_numpy(dtype=float)
        n_trials = data[self.trials].to_numpy(dtype=float) if self.trials is not None else None
        return X, y, n_trials

    def _split(self, theta: np.ndarray) -> Tuple[np.ndarray, Optional[float]]:
        p = len(self.coefficients)
        return theta[:p], (theta[p] if self.has_sigma else None)

    def neg_log_posterior(self, theta: np.ndarray, X: np.ndarray, y: np.ndarray, n_trials: Optional[np.ndarray]) -> float:
        beta, log_sigma = self._split(theta)
        eta = X @ beta
        sigma = np.exp(log_sigma) if log_sigma is not None else None

        value = log_likelihood(self.family, self.link, y, eta, sigma=sigma, n_trials=n_trials)
        value += sum(log_density(b) for (log_density, _), b in zip(self._priors, beta))
        if self._sigma_prior is not None:
            # Density of log(sigma) = density of sigma times the Jacobian sigma
            value += self._sigma_prior[0](sigma) + log_sigma

        return -value if np.isfinite(value) else np.inf

    def gradient(self, theta: np.ndarray, X: np.ndarray, y: np.ndarray, n_trials: Optional[np.ndarray]) -> np.ndarray:
        """Gradient of the negative log posterior."""
        beta, log_sigma = self._split(theta)
        eta = X @ beta

        if self.family == "gaussian":
            sigma_sq = np.exp(2 * log_sigma)
            mu = inverse_link(self.link)(eta)
            resid = y - mu
            dmu = mu if self.link == "log" else 1.0
            grad_beta = X.T @ (resid * dmu) / sigma_sq
            grad_sigma = -len(y) + np.dot(resid, resid) / sigma_sq
        elif self.family == "poisson":
            if self.link == "log":
                grad_beta = X.T @ (y - np.exp(eta))
            else:
                with np.errstate(divide="ignore", invalid="ignore"):
                    grad_beta = X.T @ (y / eta - 1.0)
            grad_sigma = None
        else:
            trials = n_trials if n_trials is not None else np.ones_like(y)
            grad_beta = X.T @ (y - trials * expit(eta))
            grad_sigma = None

        grad_beta = grad_beta + np.array([deriv(b) for (_, deriv), b in zip(self._priors, beta)])
        grad = list(grad_beta)
        if self._sigma_prior is not None:
            sigma = np.exp(log_sigma)
            grad.append(grad_sigma + self._sigma_prior[1](sigma) * sigma + 1.0)
        return -np.asarray(grad, dtype=float)

    def start(self, X: np.ndarray, y: np.ndarray, n_trials: Optional[np.ndarray]) -> np.ndarray:
        intercept, log_sigma = starting_intercept(self.family, self.link, y, n_trials)
        theta = np.zeros(len(self.names))
        if self.intercept:
            theta[0] = intercept
        if self.has_sigma:
            theta[-1] = log_sigma
        return theta


def _numerical_hessian(grad: Callable[[np.ndarray], np.ndarray], theta: np.ndarray) -> np.ndarray:
    """Central-difference Hessian from an analytic gradient, symmetrised."""
    k = theta.shape[0]
    hessian = np.empty((k, k))
    for j in range(k):
        step = 1e-5 * max(1.0, abs(theta[j]))
        shift = np.zeros(k)
        shift[j] = step
        hessian[:, j] = (grad(theta + shift) - grad(theta - shift)) / (2 * step)
    return 0.5 * (hessian + hessian.T)


def _ridge_drop(objective: Callable[[np.ndarray], float], mode: np.ndarray, value: float, hessian: np.ndarray) -> float:
    """Smallest rise of *objective* a few posterior SDs either side of *mode*.

    The step runs along the eigenvector with the least curvature, where the
    normal approximation predicts a rise of ``RIDGE_STEP**2 / 2``. A mode that
    BFGS stopped on while the posterior keeps climbing towards infinity
    (complete separation) shows almost no rise on one side.
    """
    eigenvalues, eigenvectors = np.linalg.eigh(hessian)
    step = RIDGE_STEP * eigenvectors[:, 0] / np.sqrt(eigenvalues[0])
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        rises = [objective(mode + step) - value, objective(mode - step) - value]
    return float(min(rises))


class LaplaceFitter:
    """Bayesian GLM fitter using a Laplace (normal) posterior approximation.

    Compiled model structure is cached per ``ModelSpec``, so fitting the
    same model to many simulated datasets only repeats the optimisation.

    Args:
        n_draws: If positive, ``fit`` returns a ``DrawsPosterior`` with this
            many draws per chain from the approximation, and summaries use
            the posterior mean and quantile interval. ``0`` (default)
            returns the analytic ``GaussianPosterior``.
        n_chains: Independent chains drawn when ``n_draws > 0``.
        rhat_threshold: Draws-based fits with any split R-hat above this
            value raise ``FitFailure``.
        max_iter: Optimiser iteration limit.
    """

    def __init__(self, n_draws: int = 0, n_chains: int = 4, rhat_threshold: float = 1.05, max_iter: int = 500):
        if n_draws < 0:
            raise ValueError("n_draws must be non-negative")
        if n_chains < 1:
            raise ValueError("n_chains must be positive")
        self.n_draws = n_draws
        self.n_chains = n_chains
        self.rhat_threshold = rhat_threshold
        self.max_iter = max_iter
        self._compiled: Dict[object, _CompiledModel] = {}

    @property
    def n_compiled(self) -> int:
        """Number of distinct model specs compiled so far."""
        return len(self._compiled)

    def __getstate__(self):
        # Compiled models hold closures; worker processes rebuild their own
        state = self.__dict__.copy()
        state["_compiled"] = {}
        return state

    def _compile(self, model) -> _CompiledModel:
        compiled = self._compiled.get(model)
        if compiled is None:
            compiled = _CompiledModel(model)
            self._compiled[model] = compiled
        return compiled

    def fit(self, model, data: pd.DataFrame, seed: Optional[int] = None):
        """Find the posterior mode and curvature for *model* on *data*.

        Raises:
            FitFailure: If the optimiser does not converge, the mode runs off
                to infinity (separation), the Hessian is not positive
                definite or is ill-conditioned, or (draws mode)
                the chains disagree.
        """
        compiled = self._compile(model)
        X, y, n_trials = compiled.design(data)

        if len(y) == 0:
            raise FitFailure("Dataset is empty")

        def objective(theta):
            return compiled.neg_log_posterior(theta, X, y, n_trials)

        def gradient(theta):
            return compiled.gradient(theta, X, y, n_trials)

        theta0 = compiled.start(X, y, n_trials)
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            result = minimize(objective, theta0, jac=gradient, method="BFGS", options={"maxiter": self.max_iter})

            mode = result.x
            if not np.all(np.isfinite(mode)) or not np.isfinite(result.fun):
                raise FitFailure("Optimiser returned non-finite values")

            # BFGS can stop on precision loss at the optimum; accept if the gradient is flat
            grad_at_mode = gradient(mode)
            tolerance = GRADIENT_TOLERANCE * max(1.0, np.sqrt(len(y)))
            if not result.success and np.max(np.abs(grad_at_mode)) > tolerance:
                raise FitFailure(f"Optimiser did not converge: {result.message}")

            hessian = _numerical_hessian(gradient, mode)

        if not np.all(np.isfinite(hessian)):
            raise FitFailure("Hessian at the mode is not finite")
        try:
            np.linalg.cholesky(hessian)
        except np.linalg.LinAlgError:
            raise FitFailure("Hessian at the mode is not positive definite") from None
        if np.linalg.cond(hessian) > MAX_CONDITION_NUMBER:
            raise FitFailure("Posterior is not identified by the data (ill-conditioned Hessian)")

        if _ridge_drop(objective, mode, result.fun, hessian) < MIN_RIDGE_DROP:
            raise FitFailure("Posterior mode diverged: the posterior is flat along one direction (separation or an all-zero group)")

        covariance = np.linalg.inv(hessian)

        if self.n_draws == 0:
            return _LaplacePosterior(compiled.names, mode, covariance, log_scale=compiled.has_sigma)

        return self._draw(compiled, mode, covariance, seed)

    def _draw(self, compiled: _CompiledModel, mode: np.ndarray, covariance: np.ndarray, seed: Optional[int]) -> DrawsPosterior:
        """Draw chains from the approximation and check they agree."""
        chains = []
        for chain in range(self.n_chains):
            rng = np.random.default_rng(None if seed is None else [int(seed), chain])
            chains.append(rng.multivariate_normal(mode, covariance, size=self.n_draws, method="cholesky"))
        draws = np.stack(chains)
        if compiled.has_sigma:
            draws[:, :, -1] = np.exp(draws[:, :, -1])

        posterior = DrawsPosterior(compiled.names, draws)
        check_convergence(posterior, self.rhat_threshold)
        return posterior

    def summarize(self, posterior, coefficient: str, prob_mass: float) -> IntervalSummary:
        """Point estimate and credible interval for *coefficient*."""
        return posterior.summarize(coefficient, prob_mass)


class _LaplacePosterior(GaussianPosterior):
    """Gaussian posterior whose last parameter may live on the log scale."""

    def __init__(self, names, mode, covariance, log_scale: bool = False):
        super().__init__(names, mode, covariance)
        self._log_scale = {names[-1]} if log_scale else set()

    def summarize(self, coefficient: str, prob_mass: float) -> IntervalSummary:
        summary = super().summarize(coefficient, prob_mass)
        if coefficient in self._log_scale:
            return IntervalSummary(*(float(np.exp(v)) for v in summary))
        return summary
