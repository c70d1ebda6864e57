"""
Replication loop for BayesPower.

Each replication generates one dataset, fits the model, summarises the
target coefficient, and keeps only the compact ``ReplicationResult``; the
dataset and posterior are dropped straight away. Fit failures, timeouts and
numerical errors become tombstone records and the run continues.
Configuration errors abort the run before the first replication.
"""

import threading
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence, overload

import numpy as np
import pandas as pd

from ..errors import FailureRateExceeded, FitFailure, InvalidSpec

__all__ = ["ReplicationResult", "ReplicationResults", "SimulationRunner"]


@dataclass(frozen=True)
class ReplicationResult:
    """Summary of one replication.

    Attributes:
        index: 1-based replication index.
        seed: Seed used for both the dataset and the fit.
        point: Point estimate of the target coefficient.
        lower: Lower credible bound.
        upper: Upper credible bound.
        prob_mass: Probability mass of the interval.
        failed: ``True`` for a tombstone (fit failed or timed out).
        failure_reason: Why the replication failed.
    """

    index: int
    seed: int
    point: float
    lower: float
    upper: float
    prob_mass: float
    failed: bool = False
    failure_reason: Optional[str] = None

    @property
    def width(self) -> float:
        if self.failed:
            return float("nan")
        return self.upper - self.lower

    @classmethod
    def tombstone(cls, index: int, seed: int, prob_mass: float, reason: str) -> "ReplicationResult":
        nan = float("nan")
        return cls(index, seed, nan, nan, nan, prob_mass, failed=True, failure_reason=reason)


class ReplicationResults(Sequence):
    """Immutable, index-ordered sequence of replication results.

    A cancelled run holds fewer records than were requested; check
    ``n_completed`` against ``n_requested`` (or ``cancelled``).
    """

    def __init__(self, results: Sequence[ReplicationResult], n_requested: int, cancelled: bool = False):
        self._results = tuple(sorted(results, key=lambda r: r.index))
        self.n_requested = n_requested
        self.cancelled = cancelled

    @overload
    def __getitem__(self, item: int) -> ReplicationResult: ...

    @overload
    def __getitem__(self, item: slice) -> Sequence[ReplicationResult]: ...

    def __getitem__(self, item):
        return self._results[item]

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[ReplicationResult]:
        return iter(self._results)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ReplicationResults):
            return NotImplemented
        return self._results == other._results and self.n_requested == other.n_requested

    def __repr__(self) -> str:
        return f"ReplicationResults(n_completed={self.n_completed}, n_requested={self.n_requested}, n_failed={len(self.failed())})"

    @property
    def n_completed(self) -> int:
        return len(self._results)

    def successful(self) -> List[ReplicationResult]:
        return [r for r in self._results if not r.failed]

    def failed(self) -> List[ReplicationResult]:
        return [r for r in self._results if r.failed]

    @property
    def failure_rate(self) -> float:
        """Failed share of the completed replications."""
        if not self._results:
            return 0.0
        return len(self.failed()) / len(self._results)

    def to_frame(self) -> pd.DataFrame:
        """One row per replication, for plotting or inspection."""
        columns = ["index", "seed", "point", "lower", "upper", "width", "prob_mass", "failed", "failure_reason"]
        rows = [
            (r.index, r.seed, r.point, r.lower, r.upper, r.width, r.prob_mass, r.failed, r.failure_reason)
            for r in self._results
        ]
        return pd.DataFrame(rows, columns=columns)


def _call_with_timeout(func: Callable[[], Any], timeout: Optional[float]) -> Any:
    """Run *func*, giving up after *timeout* seconds.

    The call runs in a daemon thread; a call that overruns is abandoned,
    not interrupted.
    """
    if timeout is None:
        return func()

    outcome = {}

    def target():
        try:
            outcome["value"] = func()
        except BaseException as e:  # re-raised in the calling thread
            outcome["error"] = e

    thread = threading.Thread(target=target, name="bayespower-fit", daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        raise FitFailure(f"Fit timed out after {timeout:g} s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


def _run_replication(spec, index: int, fitter, generator, timeout: Optional[float] = None) -> ReplicationResult:
    """Generate, fit and summarise replication *index*."""
    seed = spec.seed_policy.seed_for(index)
    data = generator.generate(spec.data, seed)

    def fit_and_summarize():
        posterior = fitter.fit(spec.model, data, seed=seed)
        return fitter.summarize(posterior, spec.target, spec.prob_mass)

    try:
        point, lower, upper = _call_with_timeout(fit_and_summarize, timeout)
    except InvalidSpec:
        raise
    except FitFailure as e:
        return ReplicationResult.tombstone(index, seed, spec.prob_mass, str(e) or "FitFailure")
    except (np.linalg.LinAlgError, FloatingPointError, ZeroDivisionError, OverflowError, ValueError) as e:
        return ReplicationResult.tombstone(index, seed, spec.prob_mass, f"{type(e).__name__}: {e}")

    point, lower, upper = float(point), float(lower), float(upper)
    if not (np.isfinite(lower) and np.isfinite(upper)) or lower > upper:
        return ReplicationResult.tombstone(index, seed, spec.prob_mass, f"Invalid interval [{lower}, {upper}]")

    return ReplicationResult(index, seed, point, lower, upper, spec.prob_mass)


class SimulationRunner:
    """Runs the replications of a ``SimulationSpec``.

    Replications are independent; with ``parallel=True`` they are dispatched
    to a joblib (loky) worker pool and collected back in index order.

    Args:
        parallel: Run replications in worker processes.
        n_cores: Worker count for parallel mode.
        timeout: Per-replication fit limit in seconds (``None`` = no limit).
        max_failure_rate: Raise ``FailureRateExceeded`` when the failed share
            of completed replications exceeds this (``None`` = never).
        fitter: ``ModelFitter`` to use; defaults to ``get_fitter()``.
        generator: Object with ``generate(spec, seed)``; defaults to
            ``DataGenerator()``.
    """

    def __init__(
        self,
        parallel: bool = False,
        n_cores: int = 1,
        timeout: Optional[float] = None,
        max_failure_rate: Optional[float] = None,
        fitter=None,
        generator=None,
    ):
        from ..utils.validators import _validate_failure_rate, _validate_timeout

        _validate_timeout(timeout).merge(_validate_failure_rate(max_failure_rate)).raise_if_invalid()

        self.parallel = parallel
        self.n_cores = n_cores
        self.timeout = timeout
        self.max_failure_rate = max_failure_rate
        self._fitter = fitter
        self._generator = generator

    @property
    def fitter(self):
        if self._fitter is None:
            from ..fitters import get_fitter

            return get_fitter()
        return self._fitter

    @property
    def generator(self):
        if self._generator is None:
            from ..stats.data_generation import DataGenerator

            self._generator = DataGenerator()
        return self._generator

    def run(
        self,
        spec,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ) -> ReplicationResults:
        """Run every replication of *spec*.

        Args:
            spec: ``SimulationSpec``; validated before anything runs.
            progress: Optional ``ProgressReporter``; every result is recorded
                on it and it is polled for cancellation before each new
                replication.
            cancel_check: Callable returning ``True`` to stop issuing new
                replications; the partial results are returned. Attached
                to *progress* when both are given.

        Returns:
            ``ReplicationResults`` in index order.

        Raises:
            InvalidSpec: If *spec* is invalid.
            FailureRateExceeded: If ``max_failure_rate`` is set and exceeded.
        """
        from ..utils.validators import _validate_simulation_spec

        _validate_simulation_spec(spec).raise_if_invalid()

        from ..progress import ProgressReporter

        if progress is None:
            progress = ProgressReporter(spec.replications, cancel_check=cancel_check)
        elif cancel_check is not None:
            progress.cancel_check = cancel_check

        fitter = self.fitter
        generator = self.generator
        indices = range(1, spec.replications + 1)

        if self.parallel and self.n_cores > 1 and spec.replications > 1:
            snapshot = progress.snapshot()
            try:
                results, cancelled = self._run_parallel(spec, indices, fitter, generator, progress)
            except InvalidSpec:
                raise
            except Exception as e:
                warnings.warn(f"Parallel execution failed ({e}). Falling back to sequential.")
                progress.restore(snapshot)
                results, cancelled = self._run_sequential(spec, indices, fitter, generator, progress)
        else:
            results, cancelled = self._run_sequential(spec, indices, fitter, generator, progress)

        replication_results = ReplicationResults(results, spec.replications, cancelled=cancelled)
        self._check_failures(replication_results)
        return replication_results

    def _run_sequential(self, spec, indices, fitter, generator, progress):
        results: List[ReplicationResult] = []
        for index in indices:
            if progress.cancel_requested():
                return results, True
            result = _run_replication(spec, index, fitter, generator, self.timeout)
            results.append(result)
            progress.record(result)
        return results, False

    def _run_parallel(self, spec, indices, fitter, generator, progress):
        from joblib import Parallel, delayed

        results: List[ReplicationResult] = []
        outputs = Parallel(
            n_jobs=self.n_cores,
            backend="loky",
            verbose=0,
            return_as="generator",
        )(delayed(_run_replication)(spec, index, fitter, generator, self.timeout) for index in indices)

        for result in outputs:
            results.append(result)
            progress.record(result)
            if len(results) < len(indices) and progress.cancel_requested():
                # Closing the generator stops dispatching further replications
                outputs.close()
                return results, True
        return results, False

    def _check_failures(self, results: ReplicationResults):
        n_failed = len(results.failed())
        if results.cancelled:
            warnings.warn(f"Run cancelled after {results.n_completed}/{results.n_requested} replications")
        if n_failed == 0:
            return

        rate = results.failure_rate
        if self.max_failure_rate is not None and rate > self.max_failure_rate:
            raise FailureRateExceeded(
                f"Too many failed replications: {n_failed}/{results.n_completed} ({rate:.1%}), threshold: {self.max_failure_rate:.1%}"
            )

        reasons = {}
        for r in results.failed():
            reasons[r.failure_reason] = reasons.get(r.failure_reason, 0) + 1
        most_common = max(reasons, key=reasons.get)
        warnings.warn(f"{n_failed} replications failed ({rate:.1%}); most common reason: {most_common}")
