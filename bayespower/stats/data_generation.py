"""
Data Generator for BayesPower.

Generates one synthetic dataset per replication from a ``DataGenSpec``:
- gaussian: Normal(mean, sd) draws per group
- poisson: Poisson(rate) counts per group
- binomial: Bernoulli(p) rows per group, or one Binomial(size, p) success
  count per group in aggregated mode

Groups are stacked in declared order. Every dataset carries the outcome
``y``, the ``group`` label, and one 0/1 indicator column per non-reference
group so formulas like ``y ~ treatment`` resolve directly.

All draws come from a ``numpy.random.Generator`` created for the call, so
the same ``(spec, seed)`` always reproduces the same frame and global RNG
state is never touched.
"""

from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ..core.specs import DataGenSpec

__all__ = ["DataGenerator", "generate"]


def _draw_group(family: str, group, aggregated: bool, rng: np.random.Generator) -> np.ndarray:
    """Draw the outcome values for a single group."""
    if family == "gaussian":
        return rng.normal(group.mean, group.sd, size=group.size)
    if family == "poisson":
        return rng.poisson(group.rate, size=group.size)
    if aggregated:
        return np.array([rng.binomial(group.size, group.probability)])
    return rng.binomial(1, group.probability, size=group.size)


def generate(spec: "DataGenSpec", seed: int) -> pd.DataFrame:
    """Generate one dataset.

    Args:
        spec: Data-generating process.
        seed: Integer seed; the same seed reproduces the same data.

    Returns:
        DataFrame with columns ``y``, ``group``, one indicator per
        non-reference group, and ``n_trials`` in aggregated binomial mode.

    Raises:
        InvalidSpec: If *spec* or *seed* is invalid.
    """
    from ..errors import InvalidSpec
    from ..utils.validators import _validate_data_gen_spec

    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise InvalidSpec(f"seed must be an integer, got {type(seed).__name__}")
    if seed < 0:
        raise InvalidSpec(f"seed must be non-negative, got {seed}")

    _validate_data_gen_spec(spec).raise_if_invalid()

    rng = np.random.default_rng(int(seed))

    outcomes = []
    labels = []
    trials = []
    for group in spec.groups:
        values = _draw_group(spec.family, group, spec.aggregated, rng)
        outcomes.append(values)
        labels.extend([group.name] * len(values))
        if spec.aggregated:
            trials.append(group.size)

    y = np.concatenate(outcomes) if outcomes else np.empty(0)
    if spec.family != "gaussian":
        y = y.astype(np.int64)

    data = {"y": y, "group": pd.Categorical(labels, categories=list(spec.group_names))}
    label_array = np.asarray(labels, dtype=object)
    for name in spec.indicator_names:
        data[name] = (label_array == name).astype(np.int64)
    if spec.aggregated:
        data["n_trials"] = np.asarray(trials, dtype=np.int64)

    return pd.DataFrame(data)


class DataGenerator:
    """Produces one dataset per replication seed.

    Stateless wrapper around :func:`generate`; kept as a class so callers can
    substitute a generator with the same ``generate(spec, seed)`` method.
    """

    def generate(self, spec: "DataGenSpec", seed: int) -> pd.DataFrame:
        return generate(spec, seed)
