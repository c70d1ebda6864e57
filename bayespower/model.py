"""
BayesPower front end.

Builds a ``SimulationSpec`` from a formula, group definitions and priors,
runs it, and prints the report. Every setting lives on the instance and is
copied into the spec at run time; nothing is read from module state.
"""

import warnings
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .core.criteria import Criterion, CriterionEvaluator, parse_criterion
from .core.results import ReportAggregator, build_power_result, build_sample_size_result
from .core.simulation import SimulationRunner
from .core.specs import DataGenSpec, GroupSpec, ModelSpec, Prior, SeedPolicy, SimulationSpec
from .errors import AggregationError, InvalidSpec
from .stats.families import FAMILIES
from .utils.formatters import _format_results
from .utils.parsers import INTERCEPT, _parse_formula, _parser
from .utils.validators import (
    _validate_failure_rate,
    _validate_parallel_settings,
    _validate_power,
    _validate_prob_mass,
    _validate_replications,
    _validate_sample_size,
    _validate_sample_size_range,
    _validate_seed,
    _validate_timeout,
)

# Number of generative parameters after the size, per family
_GROUP_PARAMETERS = {
    "gaussian": ("mean", "sd"),
    "poisson": ("rate",),
    "binomial": ("probability",),
}


class BayesPower:
    """Simulation-based power and precision analysis for Bayesian GLMs.

    Configuration methods (``set_*``) validate immediately and return
    ``self`` for chaining.

    Attributes:
        seed: Base seed; replication ``i`` uses ``seed + i`` (default 2137).
            ``None`` draws a fresh base seed per analysis.
        power: Target power in percent (default 80.0).
        prob_mass: Credible interval mass (default 0.95).
        replications: Replications per sample size (default 1000).
        parallel: Run replications in a worker pool (default ``False``).
        n_cores: Worker count (default ``cpu_count // 2``).
        timeout: Per-replication fit limit in seconds (default ``None``).
        max_failure_rate: Abort when the failed share exceeds this
            (default ``None``, never abort).

    Example:
        >>> model = BayesPower("y ~ treatment", family="gaussian")
        >>> model.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")
        >>> model.set_priors("Intercept=normal(0, 10), treatment=normal(0, 2)")
        >>> model.find_power(target="treatment", criterion="excludes_null(0)")
    """

    def __init__(self, formula: str, family: str = "gaussian", link: Optional[str] = None):
        """Parse *formula* and set every option to its default.

        Args:
            formula: brms-style formula such as ``"y ~ treatment"``,
                ``"y ~ 0 + Intercept + treatment"`` or
                ``"y | trials(n_trials) ~ treatment"``.
            family: ``"gaussian"``, ``"poisson"`` or ``"binomial"``.
            link: Link function; defaults to the family's canonical link.
        """
        if family not in FAMILIES:
            raise InvalidSpec(f"Unknown family '{family}'. Choose from: {', '.join(FAMILIES)}")
        try:
            self._parsed = _parse_formula(formula)
        except ValueError as e:
            raise InvalidSpec(str(e)) from None

        self.formula = formula
        self.family = family
        self.link = link

        self.seed: Optional[int] = 2137
        self.power = 80.0
        self.prob_mass = 0.95
        self.replications = 1000

        import multiprocessing as mp

        self.parallel = False
        self.n_cores = max(1, (mp.cpu_count() or 1) // 2)
        self.timeout: Optional[float] = None
        self.max_failure_rate: Optional[float] = None

        self._groups: Optional[Tuple[GroupSpec, ...]] = None
        self._aggregated = False
        self._priors: Dict[str, Prior] = {}
        self._default_prior = Prior()
        self._strict_priors = False
        self._fitter = None

        print(f"Model: {formula} ({family})")
        print(f"Coefficients: {', '.join(self.coefficients)}")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def coefficients(self) -> List[str]:
        """Coefficient names in the formula, ``Intercept`` first."""
        return self._parsed.coefficients

    @property
    def model_spec(self) -> ModelSpec:
        return ModelSpec(
            formula=self.formula,
            family=self.family,
            link=self.link,
            priors=tuple(self._priors.items()),
            default_prior=self._default_prior,
            strict_priors=self._strict_priors,
        )

    @property
    def data_spec(self) -> DataGenSpec:
        if self._groups is None:
            raise InvalidSpec("No groups defined. Call set_groups() first.")
        return DataGenSpec(self.family, self._groups, aggregated=self._aggregated)

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def set_seed(self, seed: Optional[int] = None):
        """Set the base seed (``None`` for a fresh seed per analysis).

        Returns:
            self: For method chaining.
        """
        _validate_seed(seed).raise_if_invalid()
        self.seed = seed
        if seed is not None:
            print(f"Seed set to: {seed}")
        else:
            print("Random seeding enabled")
        return self

    def set_power(self, power: float):
        """Set the target power (percent) used by ``find_sample_size``."""
        _validate_power(power).raise_if_invalid()
        self.power = float(power)
        return self

    def set_prob_mass(self, prob_mass: float):
        """Set the credible interval probability mass (0-1, exclusive)."""
        _validate_prob_mass(prob_mass).raise_if_invalid()
        self.prob_mass = float(prob_mass)
        return self

    def set_replications(self, replications: int):
        """Set the number of replications per sample size."""
        n_reps, result = _validate_replications(replications)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.replications = n_reps
        return self

    def set_parallel(self, enable: bool = True, n_cores: Optional[int] = None):
        """Enable or disable the joblib worker pool.

        Args:
            enable: ``True`` or ``False``.
            n_cores: Worker count; defaults to ``cpu_count // 2``.
        """
        settings, result = _validate_parallel_settings(enable, n_cores)
        result.raise_if_invalid()
        self.parallel, self.n_cores = settings
        if not self.parallel:
            self.n_cores = 1
        return self

    def set_timeout(self, timeout: Optional[float]):
        """Per-replication fit limit in seconds; overruns count as failures."""
        _validate_timeout(timeout).raise_if_invalid()
        self.timeout = timeout
        return self

    def set_max_failure_rate(self, rate: Optional[float]):
        """Abort an analysis when more than *rate* (0-1) of replications fail."""
        _validate_failure_rate(rate).raise_if_invalid()
        self.max_failure_rate = rate
        return self

    def set_groups(self, groups: Union[str, Mapping[str, Tuple[float, ...]]], aggregated: bool = False):
        """Define the groups of the data-generating process.

        The first group is the reference; every other group gets a 0/1
        indicator column named after it.

        Args:
            groups: ``"name=(size, params...)"`` assignments or a mapping of
                name to ``(size, params...)``. Parameters per family:
                gaussian ``(size, mean, sd)``, poisson ``(size, rate)``,
                binomial ``(size, probability)``.
            aggregated: Binomial only; one success count per group.

        Example:
            >>> model.set_groups("control=(50, 0, 1), treatment=(50, 0.5, 1)")
        """
        if isinstance(groups, str):
            parsed, errors = _parser._parse(groups, "group")
        else:
            parsed, errors = dict(groups), []

        names = _GROUP_PARAMETERS[self.family]
        specs = []
        for name, values in parsed.items():
            values = tuple(values)
            if len(values) != len(names) + 1:
                errors.append(f"{name}: expected (size, {', '.join(names)}) for {self.family}, got {values}")
                continue
            if isinstance(values[0], bool) or float(values[0]) != int(values[0]):
                errors.append(f"{name}: group size must be an integer, got {values[0]}")
                continue
            size = int(values[0])
            specs.append(GroupSpec(name, size, **dict(zip(names, (float(v) for v in values[1:])))))

        if not specs and not errors:
            errors.append("At least one group is required")
        if errors:
            raise InvalidSpec("Error parsing groups:\n" + "\n".join(f"• {e}" for e in errors))

        from .utils.validators import _validate_data_gen_spec

        candidate = DataGenSpec(self.family, tuple(specs), aggregated=aggregated)
        _validate_data_gen_spec(candidate).raise_if_invalid()

        self._groups = candidate.groups
        self._aggregated = aggregated
        print(f"Groups: {', '.join(f'{g.name} (n={g.size})' for g in self._groups)}")
        return self

    def set_priors(self, priors: Union[str, Mapping[str, Union[str, Prior]]], default: Optional[Union[str, Prior]] = None, strict: bool = False):
        """Set priors for coefficients (and ``sigma`` for gaussian models).

        Args:
            priors: ``"name=family(args)"`` assignments or a mapping.
                Families: ``normal(mean, sd)``, ``student_t(df, loc, scale)``,
                ``cauchy(loc, scale)``, ``exponential(rate)``, ``flat``.
            default: Prior for coefficients without an explicit one.
            strict: Require an explicit prior for every coefficient.

        Example:
            >>> model.set_priors("Intercept=normal(0, 10), treatment=normal(0, 2)")
        """
        available = self.coefficients + (["sigma"] if self.family == "gaussian" else [])

        if isinstance(priors, str):
            parsed, errors = _parser._parse(priors, "prior", available)
            values = {name: Prior(family, params) for name, (family, params) in parsed.items()}
        else:
            errors = [f"'{name}' not found. Available: {', '.join(available)}" for name in priors if name not in available]
            values = {}
            for name, prior in priors.items():
                if name not in available:
                    continue
                values[name] = Prior.from_string(prior) if isinstance(prior, str) else prior

        from .utils.validators import _validate_prior

        for name, prior in values.items():
            errors.extend(_validate_prior(name, prior))

        if isinstance(default, str):
            default = Prior.from_string(default)
        if default is not None:
            errors.extend(_validate_prior("default", default))

        if errors:
            raise InvalidSpec("Error parsing priors:\n" + "\n".join(f"• {e}" for e in errors))

        self._priors.update(values)
        if default is not None:
            self._default_prior = default
        self._strict_priors = strict
        print(f"Priors: {', '.join(f'{name} ~ {prior}' for name, prior in self._priors.items())}")
        return self

    def set_fitter(self, fitter):
        """Use *fitter* (a name or a ``ModelFitter``) for this model only."""
        from .fitters import ModelFitter, _create_fitter

        if isinstance(fitter, str):
            fitter = _create_fitter(fitter.lower().strip())
        elif not isinstance(fitter, ModelFitter):
            raise TypeError(f"{type(fitter).__name__} does not implement fit() and summarize()")
        self._fitter = fitter
        return self

    # =========================================================================
    # Analysis
    # =========================================================================

    def build_spec(
        self,
        sample_size: Optional[int] = None,
        target: Optional[str] = None,
        criterion: Union[str, Criterion] = "excludes_null(0)",
        width_threshold: Optional[float] = None,
    ) -> SimulationSpec:
        """Assemble the ``SimulationSpec`` an analysis would run.

        Args:
            sample_size: Observations (or trials) per group; ``None`` keeps
                the sizes given to ``set_groups``.
            target: Coefficient to summarise; defaults to the first
                non-intercept coefficient.
            criterion: Criterion object or string, e.g. ``"width_below(0.5)"``.
            width_threshold: Extra width cut-off reported as
                ``proportion_below``.
        """
        if target is None:
            candidates = [c for c in self.coefficients if c != INTERCEPT]
            target = candidates[0] if candidates else INTERCEPT

        data = self.data_spec
        if sample_size is not None:
            _validate_sample_size(sample_size).raise_if_invalid()
            data = data.with_group_size(sample_size)

        seed = self.seed if self.seed is not None else int(np.random.default_rng().integers(0, 2**31 - 1))

        spec = SimulationSpec(
            replications=self.replications,
            data=data,
            model=self.model_spec,
            target=target,
            prob_mass=self.prob_mass,
            seed_policy=SeedPolicy(offset=seed, stride=1),
            criterion=parse_criterion(criterion),
            width_threshold=width_threshold,
        )

        from .utils.validators import _validate_simulation_spec

        _validate_simulation_spec(spec).raise_if_invalid()
        return spec

    def _runner(self) -> SimulationRunner:
        return SimulationRunner(
            parallel=self.parallel,
            n_cores=self.n_cores,
            timeout=self.timeout,
            max_failure_rate=self.max_failure_rate,
            fitter=self._fitter,
        )

    @staticmethod
    def _make_reporter(progress_callback, print_results: bool, total: int, cancel_check):
        """One reporter per analysis: display callback plus cancel check."""
        from .progress import PrintReporter, ProgressReporter

        if progress_callback is None:
            callback = PrintReporter() if print_results else None
        elif progress_callback is False:
            callback = None
        else:
            callback = progress_callback
        return ProgressReporter(total, callback, cancel_check=cancel_check)

    def find_power(
        self,
        sample_size: Optional[int] = None,
        target: Optional[str] = None,
        criterion: Union[str, Criterion] = "excludes_null(0)",
        width_threshold: Optional[float] = None,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """Estimate power (and precision) at one sample size.

        Args:
            sample_size: Observations per group; ``None`` keeps the sizes
                from ``set_groups``.
            target: Coefficient to summarise.
            criterion: Pass/fail rule per replication.
            width_threshold: Also report the share of intervals narrower
                than this.
            print_results: Print the report.
            summary: ``"short"`` or ``"long"``.
            return_results: Return the result dictionary.
            progress_callback: ``None`` (print progress when printing
                results), ``False`` (none), or a ``(current, total)`` callable;
                one declaring a ``failed`` parameter also gets the
                failure tally.
            cancel_check: Callable returning ``True`` to stop early; the
                partial run is reported.

        Returns:
            dict or None: With *return_results*, a dict with ``"model"``,
            ``"results"`` and ``"replications"`` (``ReplicationResults``).
        """
        spec = self.build_spec(sample_size, target, criterion, width_threshold)

        reporter = self._make_reporter(progress_callback, print_results, spec.replications, cancel_check)
        reporter.start()
        results = self._runner().run(spec, progress=reporter)
        reporter.finish()

        evaluation = CriterionEvaluator().evaluate(results, spec.criterion)
        report = ReportAggregator().aggregate(results, evaluation, spec.width_threshold)
        result = build_power_result(spec, report, self.power, self.parallel)
        result["replications"] = results

        if print_results:
            print(f"\n{'=' * 80}")
            print("BAYESIAN POWER ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            print(_format_results("power", result, summary))

        return result if return_results else None

    def find_sample_size(
        self,
        target: Optional[str] = None,
        from_size: int = 20,
        to_size: int = 200,
        by: int = 10,
        criterion: Union[str, Criterion] = "excludes_null(0)",
        width_threshold: Optional[float] = None,
        print_results: bool = True,
        summary: str = "short",
        return_results: bool = False,
        progress_callback=None,
        cancel_check=None,
    ):
        """Sweep per-group sample sizes and find the first reaching ``power``.

        Args:
            target: Coefficient to summarise.
            from_size: Smallest per-group size.
            to_size: Largest per-group size (inclusive).
            by: Step between sizes.
            criterion: Pass/fail rule per replication.
            width_threshold: Also report the share of narrow intervals.
            print_results: Print the report.
            summary: ``"short"`` or ``"long"``.
            return_results: Return the result dictionary.
            progress_callback: As in ``find_power``.
            cancel_check: Callable returning ``True`` to abort.

        Returns:
            dict or None: With *return_results*, a dict with ``"model"`` and
            ``"results"`` (per-size series and ``first_achieved``).

        Raises:
            SimulationCancelled: If *cancel_check* fires during the sweep.
        """
        from .progress import SimulationCancelled

        validation = _validate_sample_size_range(from_size, to_size, by)
        for warning in validation.warnings:
            print(f"Warning: {warning}")
        validation.raise_if_invalid()

        sample_sizes = list(range(from_size, to_size + 1, by))
        base_spec = self.build_spec(sample_sizes[0], target, criterion, width_threshold)

        total = base_spec.replications * len(sample_sizes)
        reporter = self._make_reporter(progress_callback, print_results, total, cancel_check)
        reporter.start()

        runner = self._runner()
        evaluator = CriterionEvaluator()
        aggregator = ReportAggregator()
        reports = []
        for size in sample_sizes:
            if reporter.cancel_requested():
                raise SimulationCancelled("Simulation cancelled by user")

            spec = base_spec.with_sample_size(size)
            results = runner.run(spec, progress=reporter)
            if results.cancelled:
                raise SimulationCancelled("Simulation cancelled by user")

            try:
                report = aggregator.aggregate(results, evaluator.evaluate(results, spec.criterion), spec.width_threshold)
            except AggregationError as e:
                warnings.warn(f"Sample size {size}: {e}")
                report = None
            reports.append((size, report))

        reporter.finish()

        analysis = aggregator.process_sample_size_results(reports, self.power)
        result = build_sample_size_result(base_spec, sample_sizes, self.power, self.parallel, analysis)

        if print_results:
            print(f"\n{'=' * 80}")
            print("SAMPLE SIZE ANALYSIS RESULTS")
            print(f"{'=' * 80}")
            print(_format_results("sample_size", result, summary))

        return result if return_results else None

    def __repr__(self) -> str:
        groups = "unset" if self._groups is None else ", ".join(g.name for g in self._groups)
        return f"BayesPower({self.formula!r}, family={self.family!r}, groups=[{groups}])"


__all__ = ["BayesPower"]
