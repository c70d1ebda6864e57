"""
Custom Fitter Example
=====================

Any object with ``fit`` and ``summarize`` methods can replace the built-in
Laplace fitter. This one uses the conjugate normal model for a known-variance
difference in means, which is exact and very fast.
"""

import numpy as np
from scipy import stats

from bayespower import BayesPower
from bayespower.stats.posterior import IntervalSummary


class KnownVarianceFitter:
    """Normal prior on the difference, known outcome SD."""

    def __init__(self, sd=1.0, prior_sd=2.0):
        self.sd = sd
        self.prior_sd = prior_sd

    def fit(self, model, data, seed=None):
        treated = data["treatment"].to_numpy() == 1
        y = data["y"].to_numpy()
        diff = y[treated].mean() - y[~treated].mean()
        se2 = self.sd**2 * (1 / treated.sum() + 1 / (~treated).sum())
        precision = 1 / se2 + 1 / self.prior_sd**2
        return diff / se2 / precision, np.sqrt(1 / precision)

    def summarize(self, posterior, coefficient, prob_mass):
        mean, sd = posterior
        half = stats.norm.ppf(0.5 + prob_mass / 2) * sd
        return IntervalSummary(mean, mean - half, mean + half)


model = BayesPower("y ~ treatment", family="gaussian")
model.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")
model.set_fitter(KnownVarianceFitter())
model.set_replications(2000)
model.find_power(target="treatment")
