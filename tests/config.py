"""
Shared test configuration constants.

All test files should import from this module to ensure consistency
across the test suite.
"""

# Replication counts
N_REPS_CHECK = 10
"""Smoke tests: just verify no crash, structure, API contract."""

N_REPS_STANDARD = 100
"""Standard tests: end-to-end scenarios with stub fitters."""

N_REPS_LAPLACE = 40
"""Runs that use the real Laplace fitter; kept small for speed."""

SEED = 2137
"""Default random seed for reproducibility."""

PROB_MASS = 0.95
"""Default credible interval mass."""

STUB_HALF_WIDTH = 0.35
"""Half-width of intervals returned by the group-means stub fitter."""
