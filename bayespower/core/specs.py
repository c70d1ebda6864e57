"""
Spec objects for BayesPower.

Every object here is a frozen dataclass: a simulation is fully described by
the values passed in, and nothing is read from module-level state. Specs are
hashable so fitters can key compiled-model caches on them.

Validation lives in ``bayespower.utils.validators`` and is applied by the
data generator and the simulation runner, not at construction time.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple, Union

import numpy as np

from ..stats.families import DEFAULT_LINKS, default_link
from .criteria import Criterion, ExcludesNull

__all__ = [
    "Prior",
    "GroupSpec",
    "DataGenSpec",
    "ModelSpec",
    "SeedPolicy",
    "SimulationSpec",
]

PRIOR_FAMILIES = {
    # family: number of parameters
    "normal": 2,  # (mean, sd)
    "student_t": 3,  # (df, location, scale)
    "cauchy": 2,  # (location, scale)
    "exponential": 1,  # (rate,)
    "flat": 0,
}


@dataclass(frozen=True)
class Prior:
    """Prior distribution descriptor for one coefficient.

    Attributes:
        family: ``"normal"``, ``"student_t"``, ``"cauchy"``,
            ``"exponential"`` or ``"flat"``.
        params: Distribution parameters in the order listed in
            ``PRIOR_FAMILIES``.
    """

    family: str = "flat"
    params: Tuple[float, ...] = ()

    @classmethod
    def from_string(cls, value: str) -> "Prior":
        """Parse ``"normal(0, 1)"``-style strings."""
        from ..errors import InvalidSpec
        from ..utils.parsers import _parse_call

        (family, params), error = _parse_call(value)
        if error:
            raise InvalidSpec(error)
        return cls(family, params)

    @property
    def is_flat(self) -> bool:
        return self.family == "flat"

    def logpdf(self, x: float) -> float:
        """Log prior density at *x* (0 for flat priors)."""
        from scipy import stats

        if self.family == "flat":
            return 0.0
        if self.family == "normal":
            mean, sd = self.params
            return float(stats.norm.logpdf(x, loc=mean, scale=sd))
        if self.family == "student_t":
            df, loc, scale = self.params
            return float(stats.t.logpdf(x, df, loc=loc, scale=scale))
        if self.family == "cauchy":
            loc, scale = self.params
            return float(stats.cauchy.logpdf(x, loc=loc, scale=scale))
        if self.family == "exponential":
            (rate,) = self.params
            return float(stats.expon.logpdf(x, scale=1.0 / rate))
        raise ValueError(f"Unknown prior family: {self.family!r}")

    def __str__(self) -> str:
        if not self.params:
            return self.family
        return f"{self.family}({', '.join(f'{p:g}' for p in self.params)})"


@dataclass(frozen=True)
class GroupSpec:
    """Generative parameters for one group.

    Attributes:
        name: Group label; non-reference groups also name their 0/1
            indicator column.
        size: Observations in the group (trials for aggregated binomial).
        mean: Normal mean (gaussian).
        sd: Normal standard deviation (gaussian).
        rate: Poisson rate (poisson).
        probability: Success probability (binomial).
    """

    name: str
    size: int
    mean: Optional[float] = None
    sd: Optional[float] = None
    rate: Optional[float] = None
    probability: Optional[float] = None


@dataclass(frozen=True)
class DataGenSpec:
    """Data-generating process for one synthetic dataset.

    Groups are generated and concatenated in the order given; the first
    group is the reference group (e.g. control before treatment).

    Attributes:
        family: ``"gaussian"``, ``"poisson"`` or ``"binomial"``.
        groups: Ordered group specifications.
        aggregated: Binomial only. ``True`` draws one success count per
            group out of ``size`` trials instead of ``size`` 0/1 rows.
    """

    family: str
    groups: Tuple[GroupSpec, ...]
    aggregated: bool = False

    def __post_init__(self):
        if not isinstance(self.groups, tuple):
            object.__setattr__(self, "groups", tuple(self.groups))

    @classmethod
    def gaussian(cls, groups: Mapping[str, Tuple[float, float]], size: int) -> "DataGenSpec":
        """Build a gaussian spec from ``{name: (mean, sd)}`` with equal group sizes."""
        return cls("gaussian", tuple(GroupSpec(name, size, mean=m, sd=s) for name, (m, s) in groups.items()))

    @classmethod
    def poisson(cls, groups: Mapping[str, float], size: int) -> "DataGenSpec":
        """Build a poisson spec from ``{name: rate}`` with equal group sizes."""
        return cls("poisson", tuple(GroupSpec(name, size, rate=r) for name, r in groups.items()))

    @classmethod
    def binomial(cls, groups: Mapping[str, float], size: int, aggregated: bool = False) -> "DataGenSpec":
        """Build a binomial spec from ``{name: probability}`` with equal group sizes."""
        return cls(
            "binomial",
            tuple(GroupSpec(name, size, probability=p) for name, p in groups.items()),
            aggregated=aggregated,
        )

    @property
    def total_size(self) -> int:
        """Total observations (or trials) across groups."""
        return int(sum(g.size for g in self.groups))

    @property
    def group_names(self) -> Tuple[str, ...]:
        return tuple(g.name for g in self.groups)

    @property
    def indicator_names(self) -> Tuple[str, ...]:
        """0/1 indicator columns, one per non-reference group."""
        return self.group_names[1:]

    def with_group_size(self, size: int) -> "DataGenSpec":
        """Copy of this spec with every group resized to *size*."""
        return replace(self, groups=tuple(replace(g, size=size) for g in self.groups))


@dataclass(frozen=True)
class ModelSpec:
    """Regression model handed to the fitter.

    Attributes:
        formula: brms-style formula, e.g. ``"y ~ treatment"`` or
            ``"y | trials(n_trials) ~ 1"``.
        family: Likelihood family.
        link: Link function; ``None`` selects the family's canonical link.
        priors: Coefficient name -> ``Prior``. Accepts a mapping (values may
            be strings) and is stored as a sorted tuple of pairs.
        default_prior: Prior for coefficients without an explicit entry.
        strict_priors: Require an explicit prior for every coefficient.
    """

    formula: str
    family: str = "gaussian"
    link: Optional[str] = None
    priors: Tuple[Tuple[str, Prior], ...] = ()
    default_prior: Prior = field(default_factory=Prior)
    strict_priors: bool = False

    def __post_init__(self):
        if self.link is None and self.family in DEFAULT_LINKS:
            object.__setattr__(self, "link", default_link(self.family))

        priors = self.priors
        if isinstance(priors, Mapping):
            priors = priors.items()
        normalised = []
        for name, prior in priors:
            if isinstance(prior, str):
                prior = Prior.from_string(prior)
            normalised.append((name, prior))
        object.__setattr__(self, "priors", tuple(sorted(normalised, key=lambda item: item[0])))

        if isinstance(self.default_prior, str):
            object.__setattr__(self, "default_prior", Prior.from_string(self.default_prior))

    @property
    def parsed_formula(self):
        from ..utils.parsers import _parse_formula

        return _parse_formula(self.formula)

    @property
    def coefficients(self) -> Tuple[str, ...]:
        """Coefficient names referenced by the formula, ``Intercept`` first."""
        return tuple(self.parsed_formula.coefficients)

    @property
    def auxiliary(self) -> Tuple[str, ...]:
        """Distributional parameters beyond the regression coefficients."""
        return ("sigma",) if self.family == "gaussian" else ()

    @property
    def prior_dict(self) -> Dict[str, Prior]:
        return dict(self.priors)

    def prior_for(self, name: str) -> Prior:
        """Explicit prior for *name*, falling back to ``default_prior``."""
        return self.prior_dict.get(name, self.default_prior)

    def with_priors(self, priors: Mapping[str, Union[Prior, str]]) -> "ModelSpec":
        """Copy with *priors* merged over the existing ones."""
        merged = {**self.prior_dict, **priors}
        return replace(self, priors=tuple(merged.items()))


@dataclass(frozen=True)
class SeedPolicy:
    """Maps a replication index to the seed used for its data and fit.

    ``seed_for(i) = offset + stride * i``. The default (``offset=0,
    stride=1``) makes the seed equal to the 1-based replication index.
    """

    offset: int = 0
    stride: int = 1

    def seed_for(self, index: int) -> int:
        return int(self.offset + self.stride * index)

    def seeds(self, n: int) -> np.ndarray:
        """Seeds for replications ``1..n``."""
        return self.offset + self.stride * np.arange(1, n + 1, dtype=np.int64)


@dataclass(frozen=True)
class SimulationSpec:
    """Complete, immutable description of one power/precision analysis.

    Attributes:
        replications: Number of simulate-fit-summarise cycles (R).
        data: Data-generating process.
        model: Model fitted to every dataset.
        target: Coefficient whose interval is summarised.
        prob_mass: Credible interval probability mass (e.g. 0.95).
        seed_policy: Replication index -> seed mapping.
        criterion: Pass/fail rule for each replication.
        width_threshold: Optional width cut-off for ``proportion_below``.
    """

    replications: int
    data: DataGenSpec
    model: ModelSpec
    target: str
    prob_mass: float = 0.95
    seed_policy: SeedPolicy = field(default_factory=SeedPolicy)
    criterion: Criterion = field(default_factory=ExcludesNull)
    width_threshold: Optional[float] = None

    def with_sample_size(self, size: int) -> "SimulationSpec":
        """Copy with every group resized to *size*."""
        return replace(self, data=self.data.with_group_size(size))
