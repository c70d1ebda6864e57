"""
Basic Power Analysis Example
============================

Two-arm trial with a continuous outcome. Checks whether 50 patients per arm
give enough power to see a 0.5 SD improvement, where "seeing" it means the
95% credible interval for the treatment effect lies above zero.
"""

from bayespower import BayesPower

print("=" * 60)
print("BASIC POWER ANALYSIS EXAMPLE")
print("=" * 60)

# 1. Model: outcome regressed on a 0/1 treatment indicator
model = BayesPower("y ~ treatment", family="gaussian")

# 2. Data-generating process: (size, mean, sd) per group, control first
model.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")

# 3. Priors used when fitting each simulated dataset
model.set_priors("Intercept=normal(0, 10), treatment=normal(0, 2), sigma=exponential(1)")

model.set_replications(500)

# 4. Power at the sizes given to set_groups
print("\n1. POWER (lower bound above zero):")
model.find_power(target="treatment")

# 5. Same run, also reporting how often the interval is narrower than 0.8
print("\n2. POWER AND PRECISION:")
model.find_power(target="treatment", width_threshold=0.8, summary="long")

# 6. Two-sided rule: the interval excludes zero on either side
print("\n3. TWO-SIDED CRITERION:")
model.find_power(target="treatment", criterion="excludes_null_two_sided(0)")
