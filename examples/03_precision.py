"""
Precision Planning Example
==========================

Accuracy-in-parameter-estimation for count and binary outcomes: how many
observations are needed so the credible interval for the effect is
reliably narrower than a chosen width.
"""

from bayespower import BayesPower

# Poisson counts: 2 vs 3 events per unit, effect on the log scale
counts = BayesPower("y ~ treatment", family="poisson")
counts.set_groups("control=(60, 2.0), treatment=(60, 3.0)")
counts.set_priors("Intercept=normal(0, 5), treatment=normal(0, 1)")
counts.set_replications(200)
counts.find_sample_size(target="treatment", from_size=40, to_size=160, by=40, criterion="width_below(0.4)")

# Binomial, one success count per arm out of n trials (log odds scale)
trials = BayesPower("y | trials(n_trials) ~ treatment", family="binomial")
trials.set_groups("control=(200, 0.30), treatment=(200, 0.40)", aggregated=True)
trials.set_priors("Intercept=normal(0, 2.5), treatment=normal(0, 1)")
trials.set_replications(200)
trials.find_power(target="treatment", criterion="width_below(0.6)", width_threshold=0.6)
