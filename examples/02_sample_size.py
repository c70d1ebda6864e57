"""
Sample Size Example
===================

Sweeps the per-group sample size and reports the first size whose power
reaches the target (90% here).
"""

from bayespower import BayesPower, TqdmReporter

model = BayesPower("y ~ treatment", family="gaussian")
model.set_groups("control=(50, 0, 1), treatment=(50, 0.4, 1)")
model.set_priors("Intercept=normal(0, 10), treatment=normal(0, 1)")
model.set_power(90)
model.set_replications(300)

# Worker processes; results match a sequential run with the same seed
model.set_parallel(True)

model.find_sample_size(target="treatment", from_size=40, to_size=200, by=20)

# With a tqdm bar instead of the default progress line (needs tqdm)
result = model.find_sample_size(
    target="treatment",
    from_size=40,
    to_size=200,
    by=40,
    progress_callback=TqdmReporter(desc="sample size"),
    print_results=False,
    return_results=True,
)
print(f"First size reaching 90%: {result['results']['first_achieved']}")
